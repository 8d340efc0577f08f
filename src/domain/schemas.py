"""
Data schemas for the delivery pipeline.

Rules:
- Input snapshots (ClassifiedPhoto/ClassifiedDrawing) are frozen; the engine
  never mutates them
- DeliveryFileEntry and ValidationReport are immutable once created
- ExportJob is mutated only by the export orchestrator
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from src.domain.constants import (
    DEFAULT_COPY_CONCURRENCY,
    DEFAULT_GEODETIC_SYSTEM,
    DEFAULT_MAX_COPY_RETRIES,
    DEFAULT_MAX_FILE_SIZE_MB,
    DEFAULT_RETRY_INITIAL_DELAY,
    DEFAULT_SOFTWARE_NAME,
    DEFAULT_SOFTWARE_VERSION,
    DEFAULT_STANDARD_VERSION,
)

# =============================================================================
# Enums
# =============================================================================

class EntryKind(str, Enum):
    """Delivery file category. Sequence numbers are independent per kind."""
    PHOTO = "photo"
    DRAWING = "drawing"


class Severity(str, Enum):
    """Validation finding severity."""
    ERROR = "error"      # blocking
    WARNING = "warning"  # non-blocking


class OutputFormat(str, Enum):
    """Deliverable form."""
    ZIP = "zip"
    FOLDER = "folder"


class ExportStep(str, Enum):
    """
    Export pipeline state.

    Strictly forward: PREPARING → ... → COMPLETED.
    Any state may move to FAILED. COMPLETED and FAILED are terminal.
    """
    PREPARING = "preparing"
    CREATING_FOLDERS = "creating-folders"
    COPYING_PHOTOS = "copying-photos"
    GENERATING_XML = "generating-xml"
    VALIDATING = "validating"
    CREATING_ARCHIVE = "creating-archive"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExportStep.COMPLETED, ExportStep.FAILED)


class JobResult(str, Enum):
    """Terminal result of an export job."""
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# =============================================================================
# Input Snapshots
# =============================================================================

@dataclass(frozen=True)
class GeoLocation:
    """Geodetic location in decimal degrees."""
    latitude: float
    longitude: float
    geodetic_system: str = DEFAULT_GEODETIC_SYSTEM  # JGD2011, JGD2000, Tokyo


@dataclass(frozen=True)
class ClassifiedPhoto:
    """
    Classified photo snapshot taken at job start.

    binary_ref is opaque to the engine and only resolved by the binary
    storage collaborator during copying.
    """
    id: str
    binary_ref: str
    file_name: str  # original file name, source of the extension
    major_category: str
    category: str
    title: str
    construction_type: str | None = None
    work_type: str | None = None
    detail_type: str | None = None
    shooting_location: str | None = None
    shooting_date: date | datetime | None = None
    is_representative: bool = False
    is_submission_frequency_photo: bool = False
    drawing_id: str | None = None
    location: GeoLocation | None = None
    file_size: int = 0
    remarks: str | None = None
    photographer_name: str | None = None
    contractor_description: str | None = None


@dataclass(frozen=True)
class ClassifiedDrawing:
    """Reference drawing snapshot."""
    id: str
    binary_ref: str
    file_name: str
    title: str | None = None
    file_size: int = 0


# =============================================================================
# Folder Plan
# =============================================================================

@dataclass(frozen=True)
class DeliveryFileEntry:
    """One classified entity paired with its delivery name and path (1:1)."""
    kind: EntryKind
    sequence: int
    delivery_name: str  # P0000001.JPG / D0000001.PDF
    relative_path: str  # PHOTO/PIC/P0000001.JPG
    source_id: str
    binary_ref: str
    original_file_name: str
    file_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "sequence": self.sequence,
            "delivery_name": self.delivery_name,
            "relative_path": self.relative_path,
            "source_id": self.source_id,
            "original_file_name": self.original_file_name,
            "file_size": self.file_size,
        }


@dataclass
class FolderPlan:
    """
    Canonical package layout produced by the folder structure assembler.

    photo_entries / drawing_entries are in sequence order.
    """
    root_folder_name: str
    metadata_path: str
    photo_folder_path: str
    drawing_folder_path: str | None
    photo_entries: list[DeliveryFileEntry] = field(default_factory=list)
    drawing_entries: list[DeliveryFileEntry] = field(default_factory=list)
    photos_by_id: dict[str, ClassifiedPhoto] = field(default_factory=dict)
    drawings_by_id: dict[str, ClassifiedDrawing] = field(default_factory=dict)

    def all_entries(self) -> list[DeliveryFileEntry]:
        """Drawings first, then photos (copy order)."""
        return [*self.drawing_entries, *self.photo_entries]

    def drawing_entry_for(self, drawing_id: str) -> DeliveryFileEntry | None:
        for entry in self.drawing_entries:
            if entry.source_id == drawing_id:
                return entry
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "root_folder_name": self.root_folder_name,
            "metadata_path": self.metadata_path,
            "photo_folder_path": self.photo_folder_path,
            "drawing_folder_path": self.drawing_folder_path,
            "photo_entries": [e.to_dict() for e in self.photo_entries],
            "drawing_entries": [e.to_dict() for e in self.drawing_entries],
        }


# =============================================================================
# Metadata Document (PHOTO.XML)
# =============================================================================

@dataclass(frozen=True)
class PhotoCommonInfo:
    """Common information block of the metadata document."""
    applicable_standard: str
    photo_info_file_name: str
    photo_folder_name: str
    photo_file_folder_name: str
    drawing_folder_name: str | None
    software_name: str
    software_version: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "applicable_standard": self.applicable_standard,
            "photo_info_file_name": self.photo_info_file_name,
            "photo_folder_name": self.photo_folder_name,
            "photo_file_folder_name": self.photo_file_folder_name,
            "drawing_folder_name": self.drawing_folder_name,
            "software_name": self.software_name,
            "software_version": self.software_version,
        }


@dataclass(frozen=True)
class LocationRecord:
    """Geodetic block with degree-minute-second strings."""
    geodetic_system: str
    latitude: str
    longitude: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "geodetic_system": self.geodetic_system,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass(frozen=True)
class PhotoRecord:
    """Per-photo metadata record."""
    photo_number: int
    photo_file_name: str
    major_category: str
    category: str
    title: str
    shooting_date: str  # YYYY-MM-DD, "" when unknown
    photo_file_japanese_name: str | None = None
    construction_type: str | None = None
    work_type: str | None = None
    detail_type: str | None = None
    shooting_location: str | None = None
    is_representative: bool = False
    is_submission_frequency_photo: bool = False
    has_drawing: bool = False
    drawing_file_name: str | None = None
    drawing_title: str | None = None
    remarks: str | None = None
    photographer_name: str | None = None
    contractor_description: str | None = None
    location: LocationRecord | None = None
    file_size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "photo_number": self.photo_number,
            "photo_file_name": self.photo_file_name,
            "photo_file_japanese_name": self.photo_file_japanese_name,
            "major_category": self.major_category,
            "category": self.category,
            "construction_type": self.construction_type,
            "work_type": self.work_type,
            "detail_type": self.detail_type,
            "title": self.title,
            "shooting_location": self.shooting_location,
            "shooting_date": self.shooting_date,
            "is_representative": self.is_representative,
            "is_submission_frequency_photo": self.is_submission_frequency_photo,
            "has_drawing": self.has_drawing,
            "drawing_file_name": self.drawing_file_name,
            "drawing_title": self.drawing_title,
            "remarks": self.remarks,
            "photographer_name": self.photographer_name,
            "contractor_description": self.contractor_description,
            "location": self.location.to_dict() if self.location else None,
            "file_size": self.file_size,
        }


@dataclass(frozen=True)
class PackageMetadataDocument:
    """Structured record set describing every delivered photo."""
    common_info: PhotoCommonInfo
    records: tuple[PhotoRecord, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "common_info": self.common_info.to_dict(),
            "records": [r.to_dict() for r in self.records],
        }


# =============================================================================
# Validation
# =============================================================================

@dataclass(frozen=True)
class ValidationFinding:
    """One rule finding."""
    severity: Severity
    code: str
    message: str
    rule_id: str = ""
    target_file: str | None = None
    target_field: str | None = None
    details: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "rule_id": self.rule_id,
            "target_file": self.target_file,
            "target_field": self.target_field,
            "details": self.details,
        }


@dataclass(frozen=True)
class ValidationReport:
    """Pass/fail verdict plus itemised findings for one package."""
    errors: tuple[ValidationFinding, ...]
    warnings: tuple[ValidationFinding, ...]
    validated_at: str  # ISO 8601
    target_folder: str = ""

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
            "validated_at": self.validated_at,
            "target_folder": self.target_folder,
        }


# =============================================================================
# Export Configuration
# =============================================================================

@dataclass
class ExportMetadata:
    """Construction information written to INDEX_D.XML and the report."""
    construction_name: str = ""
    contractor_name: str = ""
    orderer_name: str | None = None
    construction_start_date: str | None = None
    construction_end_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "construction_name": self.construction_name,
            "contractor_name": self.contractor_name,
            "orderer_name": self.orderer_name,
            "construction_start_date": self.construction_start_date,
            "construction_end_date": self.construction_end_date,
        }


@dataclass
class ExportConfig:
    """Configuration snapshot for one export job."""
    project_id: str
    output_format: OutputFormat = OutputFormat.ZIP
    standard_version: str = DEFAULT_STANDARD_VERSION
    metadata: ExportMetadata = field(default_factory=ExportMetadata)
    allow_warnings: bool = True
    include_drawing_folder: bool = True
    root_folder_name: str | None = None
    photo_ids: list[str] | None = None
    include_report: bool = False
    max_copy_retries: int = DEFAULT_MAX_COPY_RETRIES
    copy_concurrency: int = DEFAULT_COPY_CONCURRENCY
    retry_initial_delay: float = DEFAULT_RETRY_INITIAL_DELAY
    max_file_size_mb: float = DEFAULT_MAX_FILE_SIZE_MB
    software_name: str = DEFAULT_SOFTWARE_NAME
    software_version: str = DEFAULT_SOFTWARE_VERSION

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            # Unchecked until the preparing step; may still be a raw string
            "output_format": (
                self.output_format.value
                if isinstance(self.output_format, OutputFormat)
                else self.output_format
            ),
            "standard_version": self.standard_version,
            "metadata": self.metadata.to_dict(),
            "allow_warnings": self.allow_warnings,
            "include_drawing_folder": self.include_drawing_folder,
            "root_folder_name": self.root_folder_name,
            "photo_ids": self.photo_ids,
            "include_report": self.include_report,
            "max_copy_retries": self.max_copy_retries,
            "copy_concurrency": self.copy_concurrency,
        }


# =============================================================================
# Export Job
# =============================================================================

@dataclass(frozen=True)
class ExportProgress:
    """Progress snapshot handed to progress callbacks."""
    job_id: str
    step: ExportStep
    completed_steps: int
    total_steps: int
    progress_percent: int
    processed_files: int
    total_files: int
    current_file: str | None = None


@dataclass
class ExportJob:
    """
    One run of the export pipeline.

    Created when an export is requested; mutated only by the orchestrator.
    """
    job_id: str
    config: ExportConfig
    step: ExportStep = ExportStep.PREPARING
    completed_steps: int = 0
    processed_files: int = 0
    total_files: int = 0
    current_file: str | None = None
    progress_percent: int = 0
    result: JobResult = JobResult.PENDING
    failed_step: ExportStep | None = None
    failure_code: str | None = None
    failure_reason: str | None = None
    validation_report: ValidationReport | None = None
    archive_path: str | None = None
    document_hash: str | None = None
    cancel_requested: bool = False
    created_at: str = ""
    finished_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.step.is_terminal

    def to_status(self) -> dict[str, Any]:
        """Job status query payload."""
        status: dict[str, Any] = {
            "job_id": self.job_id,
            "project_id": self.config.project_id,
            "state": self.step.value,
            "result": self.result.value,
            "progress_percent": self.progress_percent,
            "processed_files": self.processed_files,
            "total_files": self.total_files,
            "current_file": self.current_file,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }
        if self.is_terminal:
            status["validation_report"] = (
                self.validation_report.to_dict() if self.validation_report else None
            )
            status["archive_path"] = self.archive_path
            status["document_hash"] = self.document_hash
            status["failed_step"] = self.failed_step.value if self.failed_step else None
            status["failure_code"] = self.failure_code
            status["failure_reason"] = self.failure_reason
        return status


# =============================================================================
# Run Log
# =============================================================================

@dataclass
class StepEvent:
    """Step transition recorded in the run log."""
    step: str
    timestamp: str
    processed_files: int = 0
    total_files: int = 0
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "timestamp": self.timestamp,
            "processed_files": self.processed_files,
            "total_files": self.total_files,
            "message": self.message,
        }


@dataclass
class WarningLog:
    """
    Warning entry.

    Required context: level, code, action_id, target, message
    """
    level: str = "warning"
    code: str = ""
    action_id: str = ""
    target: str = ""
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level,
            "code": self.code,
            "action_id": self.action_id,
            "target": self.target,
            "message": self.message,
        }


@dataclass
class RunLog:
    """
    Execution log for one export job.
    """
    run_id: str
    job_id: str
    started_at: str  # ISO 8601
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    document_hash: str | None = None

    steps: list[StepEvent] = field(default_factory=list)
    warnings: list[WarningLog] = field(default_factory=list)

    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "job_id": self.job_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "result": self.result,
            "document_hash": self.document_hash,
            "steps": [s.to_dict() for s in self.steps],
            "warnings": [w.to_dict() for w in self.warnings],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
