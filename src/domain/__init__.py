"""Domain layer: errors and schemas."""

from .errors import ErrorCodes, PolicyRejectError, ValidationCodes
from .schemas import (
    ClassifiedDrawing,
    ClassifiedPhoto,
    ExportConfig,
    ExportJob,
    FolderPlan,
    PackageMetadataDocument,
    RunLog,
    ValidationReport,
)

__all__ = [
    "PolicyRejectError",
    "ErrorCodes",
    "ValidationCodes",
    "ClassifiedPhoto",
    "ClassifiedDrawing",
    "ExportConfig",
    "ExportJob",
    "FolderPlan",
    "PackageMetadataDocument",
    "ValidationReport",
    "RunLog",
]
