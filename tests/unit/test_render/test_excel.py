"""
test_excel.py - photo ledger (XLSX) renderer tests

Checks:
- Header block carries the construction information
- One ledger row per delivered photo, in delivery order
- Validation sheet mirrors the attached report
- Write failures surface as RENDER_FAILED
"""

from pathlib import Path

import pytest
from openpyxl import load_workbook

from src.core.folder_structure import assemble_folder_plan
from src.core.naming import FileNameGenerator
from src.core.photo_xml import build_metadata_document
from src.core.report import build_delivery_report
from src.core.validator import DeliveryValidator
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.render.excel import (
    LEDGER_COLUMNS,
    LEDGER_SHEET_TITLE,
    VALIDATION_SHEET_TITLE,
    PhotoLedgerRenderer,
    render_photo_ledger,
)

# Header block (4 rows) + blank row
TABLE_ROW = 6


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def package(sample_photos, sample_drawings, export_config):
    plan = assemble_folder_plan(sample_photos, sample_drawings, export_config, FileNameGenerator())
    document = build_metadata_document(plan, export_config)
    return plan, document


@pytest.fixture
def report(package, export_config):
    plan, document = package
    validation = DeliveryValidator().validate(document, plan)
    return build_delivery_report(plan, document, export_config.metadata, validation)


# =============================================================================
# Ledger sheet
# =============================================================================

class TestLedgerSheet:
    def test_header_block(self, report, tmp_path: Path):
        output = render_photo_ledger(report, tmp_path / "ledger.xlsx")
        ws = load_workbook(output)[LEDGER_SHEET_TITLE]

        assert ws["A1"].value == "Construction name"
        assert ws["B1"].value == "国道1号 道路改良工事"
        assert ws["B2"].value == "テスト建設株式会社"
        assert ws["B3"].value == "関東地方整備局"
        assert ws["B4"].value == "2024-03-01 ~ 2024-06-30"

    def test_column_headers(self, report, tmp_path: Path):
        output = render_photo_ledger(report, tmp_path / "ledger.xlsx")
        ws = load_workbook(output)[LEDGER_SHEET_TITLE]

        headers = [ws.cell(row=TABLE_ROW, column=col).value for col in range(1, len(LEDGER_COLUMNS) + 1)]
        assert headers == [header for header, _, _ in LEDGER_COLUMNS]
        assert ws.freeze_panes == f"A{TABLE_ROW + 1}"

    def test_rows_in_delivery_order(self, report, tmp_path: Path):
        output = render_photo_ledger(report, tmp_path / "ledger.xlsx")
        ws = load_workbook(output)[LEDGER_SHEET_TITLE]

        names = [ws.cell(row=TABLE_ROW + i, column=2).value for i in range(1, 6)]
        originals = [ws.cell(row=TABLE_ROW + i, column=3).value for i in range(1, 6)]
        assert names == [f"P000000{i}.JPG" for i in range(1, 6)]
        assert originals == ["ph-3.jpg", "ph-5.jpg", "ph-1.jpg", "ph-4.jpg", "ph-2.jpg"]
        assert ws.cell(row=TABLE_ROW + 6, column=1).value is None

    def test_boolean_and_size_cells(self, report, tmp_path: Path):
        output = render_photo_ledger(report, tmp_path / "ledger.xlsx")
        ws = load_workbook(output)[LEDGER_SHEET_TITLE]

        # ph-1 is third in delivery order and the only representative photo
        assert ws.cell(row=TABLE_ROW + 3, column=9).value == "Yes"
        assert ws.cell(row=TABLE_ROW + 1, column=9).value == "No"
        assert ws.cell(row=TABLE_ROW + 1, column=10).value == "2.00 KB"

    def test_missing_period(self, package, export_config, tmp_path: Path):
        plan, document = package
        metadata = export_config.metadata
        bare = type(metadata)(
            construction_name=metadata.construction_name,
            contractor_name=metadata.contractor_name,
        )
        report = build_delivery_report(plan, document, bare)

        ws = load_workbook(render_photo_ledger(report, tmp_path / "ledger.xlsx"))[LEDGER_SHEET_TITLE]
        assert not ws["B3"].value
        assert not ws["B4"].value


# =============================================================================
# Validation sheet
# =============================================================================

class TestValidationSheet:
    def test_passing_report(self, report, tmp_path: Path):
        wb = load_workbook(render_photo_ledger(report, tmp_path / "ledger.xlsx"))
        ws = wb[VALIDATION_SHEET_TITLE]

        assert wb.sheetnames == [LEDGER_SHEET_TITLE, VALIDATION_SHEET_TITLE]
        assert ws["B1"].value == "PASS"
        assert ws["A3"].value is None

    def test_failing_report_lists_findings(self, sample_photos, export_config, tmp_path: Path):
        # ph-4 links dr-1 but no drawing is delivered
        plan = assemble_folder_plan(sample_photos, [], export_config, FileNameGenerator())
        document = build_metadata_document(plan, export_config)
        validation = DeliveryValidator().validate(document, plan)
        report = build_delivery_report(plan, document, export_config.metadata, validation)

        ws = load_workbook(render_photo_ledger(report, tmp_path / "ledger.xlsx"))[VALIDATION_SHEET_TITLE]
        assert ws["B1"].value == "FAIL"
        assert ws["A3"].value == "error"
        findings = [ws.cell(row=row, column=2).value or "" for row in range(3, ws.max_row + 1)]
        assert any("MISSING_DRAWING_FILE" in text for text in findings)

    def test_no_validation(self, package, export_config, tmp_path: Path):
        plan, document = package
        report = build_delivery_report(plan, document, export_config.metadata)

        ws = load_workbook(render_photo_ledger(report, tmp_path / "ledger.xlsx"))[VALIDATION_SHEET_TITLE]
        assert ws["A1"].value == "Validation has not run"


# =============================================================================
# Errors
# =============================================================================

class TestRenderErrors:
    def test_unwritable_target(self, report, tmp_path: Path):
        target = tmp_path / "ledger.xlsx"
        target.mkdir()

        with pytest.raises(PolicyRejectError) as exc_info:
            PhotoLedgerRenderer(report).render(target)
        assert exc_info.value.code == ErrorCodes.RENDER_FAILED
        assert exc_info.value.context["output"] == str(target)
