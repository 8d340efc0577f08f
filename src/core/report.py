"""
Delivery report: statistics, folder layout, validation summary, photo list.

Rendered as text / JSON / CSV; the XLSX ledger lives in src.render.excel.
"""

import csv
import io
import json
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from src.domain.constants import INDEX_XML_FILENAME
from src.domain.schemas import (
    ExportMetadata,
    FolderPlan,
    PackageMetadataDocument,
    ValidationReport,
)

XML_FILE_COUNT = 2  # PHOTO.XML + INDEX_D.XML

CSV_HEADERS = [
    "number",
    "delivery_file_name",
    "original_file_name",
    "title",
    "major_category",
    "category",
    "shooting_date",
    "shooting_location",
    "representative",
    "file_size",
]


@dataclass
class FileStatistics:
    total_files: int
    photo_count: int
    drawing_count: int
    xml_count: int
    total_size: int
    total_size_formatted: str
    representative_photo_count: int


@dataclass
class ValidationSummary:
    is_valid: bool
    error_count: int
    warning_count: int
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class PhotoListItem:
    number: int
    delivery_file_name: str
    original_file_name: str
    title: str
    major_category: str
    category: str
    shooting_date: str
    shooting_location: str | None
    is_representative: bool
    file_size: int
    file_size_formatted: str


@dataclass
class DeliveryReport:
    generated_at: str
    construction_info: ExportMetadata
    statistics: FileStatistics
    folders: list[str]
    files: list[str]
    photo_list: list[PhotoListItem]
    validation_summary: ValidationSummary | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "construction_info": self.construction_info.to_dict(),
            "statistics": asdict(self.statistics),
            "folders": self.folders,
            "files": self.files,
            "validation_summary": (
                asdict(self.validation_summary) if self.validation_summary else None
            ),
            "photo_list": [asdict(p) for p in self.photo_list],
        }


# =============================================================================
# Build
# =============================================================================

def format_file_size(size: int) -> str:
    """1536 → "1.50 KB"; bytes are shown without decimals."""
    if size <= 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB"]
    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(units) - 1:
        value /= 1024
        unit_index += 1

    if unit_index == 0:
        return f"{size} B"
    return f"{value:.2f} {units[unit_index]}"


def _summarize(report: ValidationReport) -> ValidationSummary:
    def line(finding) -> str:
        suffix = f" ({finding.target_file})" if finding.target_file else ""
        return f"[{finding.code}] {finding.message}{suffix}"

    return ValidationSummary(
        is_valid=report.is_valid,
        error_count=len(report.errors),
        warning_count=len(report.warnings),
        errors=[line(e) for e in report.errors],
        warnings=[line(w) for w in report.warnings],
    )


def build_delivery_report(
    plan: FolderPlan,
    document: PackageMetadataDocument,
    metadata: ExportMetadata,
    validation_report: ValidationReport | None = None,
) -> DeliveryReport:
    """
    Args:
        plan: folder plan
        document: metadata document built from the plan
        metadata: construction information
        validation_report: attached when validation has run

    Returns:
        DeliveryReport
    """
    entries_by_name = {e.delivery_name: e for e in plan.photo_entries}
    photo_list = [
        PhotoListItem(
            number=record.photo_number,
            delivery_file_name=record.photo_file_name,
            original_file_name=entries_by_name[record.photo_file_name].original_file_name
            if record.photo_file_name in entries_by_name else "",
            title=record.title,
            major_category=record.major_category,
            category=record.category,
            shooting_date=record.shooting_date,
            shooting_location=record.shooting_location,
            is_representative=record.is_representative,
            file_size=record.file_size,
            file_size_formatted=format_file_size(record.file_size),
        )
        for record in document.records
    ]

    total_size = sum(e.file_size for e in plan.all_entries())
    statistics = FileStatistics(
        total_files=len(plan.photo_entries) + len(plan.drawing_entries) + XML_FILE_COUNT,
        photo_count=len(plan.photo_entries),
        drawing_count=len(plan.drawing_entries),
        xml_count=XML_FILE_COUNT,
        total_size=total_size,
        total_size_formatted=format_file_size(total_size),
        representative_photo_count=sum(1 for r in document.records if r.is_representative),
    )

    folders = [plan.root_folder_name, plan.photo_folder_path]
    if plan.drawing_folder_path:
        folders.append(plan.drawing_folder_path)

    files = [INDEX_XML_FILENAME, plan.metadata_path]
    files += [e.relative_path for e in plan.photo_entries]
    files += [e.relative_path for e in plan.drawing_entries]

    return DeliveryReport(
        generated_at=datetime.now(UTC).isoformat(),
        construction_info=metadata,
        statistics=statistics,
        folders=folders,
        files=files,
        photo_list=photo_list,
        validation_summary=_summarize(validation_report) if validation_report else None,
    )


# =============================================================================
# Render
# =============================================================================

def _truncate(text: str, length: int) -> str:
    return text if len(text) <= length else text[: length - 1] + "…"


def format_report_as_text(report: DeliveryReport) -> str:
    divider = "=" * 70
    sub_divider = "-" * 70
    info = report.construction_info
    stats = report.statistics

    lines = [divider, "Electronic delivery report", divider, ""]
    lines.append(f"Generated at: {report.generated_at}")
    lines.append("")

    lines += [sub_divider, "Construction", sub_divider]
    lines.append(f"Construction name: {info.construction_name}")
    lines.append(f"Contractor: {info.contractor_name}")
    if info.orderer_name:
        lines.append(f"Orderer: {info.orderer_name}")
    if info.construction_start_date:
        lines.append(f"Start date: {info.construction_start_date}")
    if info.construction_end_date:
        lines.append(f"End date: {info.construction_end_date}")
    lines.append("")

    lines += [sub_divider, "Files", sub_divider]
    lines.append(f"Total files: {stats.total_files}")
    lines.append(f"  - photos: {stats.photo_count}")
    lines.append(f"  - drawings: {stats.drawing_count}")
    lines.append(f"  - XML: {stats.xml_count}")
    lines.append(f"Total size: {stats.total_size_formatted}")
    lines.append(f"Representative photos: {stats.representative_photo_count}")
    lines.append("")

    lines += [sub_divider, "Folders", sub_divider]
    lines += [f"  {folder}/" for folder in report.folders]
    lines.append("")

    summary = report.validation_summary
    if summary:
        lines += [sub_divider, "Validation", sub_divider]
        lines.append(f"Result: {'PASS' if summary.is_valid else 'FAIL'}")
        lines.append(f"Errors: {summary.error_count}")
        lines.append(f"Warnings: {summary.warning_count}")
        if summary.errors:
            lines.append("")
            lines.append("Error list:")
            lines += [f"  - {e}" for e in summary.errors]
        if summary.warnings:
            lines.append("")
            lines.append("Warning list:")
            lines += [f"  - {w}" for w in summary.warnings]
        lines.append("")

    lines += [sub_divider, "Photos", sub_divider, ""]
    lines.append(f"{'No.':<8}{'File':<16}{'Title':<30}{'Date':<12}Size")
    lines.append("-" * 80)
    for photo in report.photo_list:
        marker = "*" if photo.is_representative else " "
        lines.append(
            f"{str(photo.number) + marker:<8}"
            f"{photo.delivery_file_name:<16}"
            f"{_truncate(photo.title, 28):<30}"
            f"{photo.shooting_date:<12}"
            f"{photo.file_size_formatted}"
        )
    lines.append("")
    lines.append("* = representative photo")
    lines.append("")
    lines.append(divider)

    return "\n".join(lines)


def format_report_as_json(report: DeliveryReport) -> str:
    return json.dumps(report.to_dict(), ensure_ascii=False, indent=2)


def format_photo_list_as_csv(report: DeliveryReport) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for photo in report.photo_list:
        writer.writerow([
            photo.number,
            photo.delivery_file_name,
            photo.original_file_name,
            photo.title,
            photo.major_category,
            photo.category,
            photo.shooting_date,
            photo.shooting_location or "",
            "Yes" if photo.is_representative else "No",
            photo.file_size_formatted,
        ])
    return buffer.getvalue()
