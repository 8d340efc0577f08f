"""
Photo ledger (XLSX) renderer: openpyxl.

- Sheet "Photo Ledger": construction header + one row per delivered photo
- Sheet "Validation": findings of the attached validation report
- Built from scratch (no template workbook)
"""

from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from src.core.report import DeliveryReport
from src.domain.errors import ErrorCodes, PolicyRejectError

LEDGER_SHEET_TITLE = "Photo Ledger"
VALIDATION_SHEET_TITLE = "Validation"

# (header, attribute on PhotoListItem, column width)
LEDGER_COLUMNS = [
    ("No.", "number", 8),
    ("Delivery file", "delivery_file_name", 16),
    ("Original file", "original_file_name", 28),
    ("Title", "title", 36),
    ("Major category", "major_category", 14),
    ("Category", "category", 14),
    ("Shooting date", "shooting_date", 14),
    ("Shooting location", "shooting_location", 24),
    ("Representative", "is_representative", 14),
    ("File size", "file_size_formatted", 12),
]

HEADER_FONT = Font(bold=True)


class PhotoLedgerRenderer:
    """
    Photo ledger workbook renderer.

    Usage:
        renderer = PhotoLedgerRenderer(report)
        renderer.render(output_path)
    """

    def __init__(self, report: DeliveryReport):
        self.report = report

    def render(self, output_path: Path) -> Path:
        """
        Write the workbook.

        Raises:
            PolicyRejectError: RENDER_FAILED
        """
        try:
            wb = Workbook()
            self._fill_ledger(wb.active)
            self._fill_validation(wb.create_sheet(VALIDATION_SHEET_TITLE))

            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
            return output_path

        except Exception as e:
            raise PolicyRejectError(
                ErrorCodes.RENDER_FAILED,
                output=str(output_path),
                error=str(e),
            ) from e

    def _fill_ledger(self, ws: Worksheet) -> None:
        ws.title = LEDGER_SHEET_TITLE
        info = self.report.construction_info

        header_rows = [
            ("Construction name", info.construction_name),
            ("Contractor", info.contractor_name),
            ("Orderer", info.orderer_name or ""),
            ("Period", self._period()),
        ]
        for row, (label, value) in enumerate(header_rows, start=1):
            ws.cell(row=row, column=1, value=label).font = HEADER_FONT
            ws.cell(row=row, column=2, value=value)

        table_row = len(header_rows) + 2
        for col, (header, _, width) in enumerate(LEDGER_COLUMNS, start=1):
            ws.cell(row=table_row, column=col, value=header).font = HEADER_FONT
            ws.column_dimensions[get_column_letter(col)].width = width

        for offset, photo in enumerate(self.report.photo_list, start=1):
            for col, (_, attr, _) in enumerate(LEDGER_COLUMNS, start=1):
                ws.cell(
                    row=table_row + offset,
                    column=col,
                    value=self._convert_value(getattr(photo, attr)),
                )

        ws.freeze_panes = ws.cell(row=table_row + 1, column=1)

    def _fill_validation(self, ws: Worksheet) -> None:
        summary = self.report.validation_summary
        if summary is None:
            ws.cell(row=1, column=1, value="Validation has not run")
            return

        ws.cell(row=1, column=1, value="Result").font = HEADER_FONT
        ws.cell(row=1, column=2, value="PASS" if summary.is_valid else "FAIL")

        row = 3
        for severity, items in (("error", summary.errors), ("warning", summary.warnings)):
            for item in items:
                ws.cell(row=row, column=1, value=severity)
                ws.cell(row=row, column=2, value=item)
                row += 1
        ws.column_dimensions["B"].width = 80

    def _period(self) -> str:
        info = self.report.construction_info
        if not info.construction_start_date and not info.construction_end_date:
            return ""
        return f"{info.construction_start_date or ''} ~ {info.construction_end_date or ''}"

    def _convert_value(self, value: Any) -> Any:
        """Booleans as Yes/No, None as empty."""
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if value is None:
            return ""
        return value


def render_photo_ledger(report: DeliveryReport, output_path: Path) -> Path:
    """Shortcut for PhotoLedgerRenderer(report).render(output_path)."""
    return PhotoLedgerRenderer(report).render(output_path)
