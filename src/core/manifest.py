"""
Export manifest: JSON payload → immutable snapshot + ExportConfig.

Shared by the HTTP surface and the CLI. Manifest shape:

    {
      "project_id": "P-001",               # CLI only; HTTP takes it from the path
      "options": {"output_format": "zip", "allow_warnings": true, ...},
      "metadata": {"construction_name": "...", "contractor_name": "..."},
      "photos": [{"id": "...", "binary_ref": "...", "file_name": "...", ...}],
      "drawings": [{"id": "...", "binary_ref": "...", "file_name": "..."}]
    }
"""

from datetime import date, datetime
from typing import Any

from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    ClassifiedDrawing,
    ClassifiedPhoto,
    ExportConfig,
    ExportMetadata,
    GeoLocation,
    OutputFormat,
)

# Options a request may override; everything else comes from settings
OPTION_FIELDS = (
    "output_format",
    "standard_version",
    "allow_warnings",
    "include_drawing_folder",
    "include_report",
    "root_folder_name",
    "photo_ids",
    "max_copy_retries",
    "copy_concurrency",
)


def _require(item: dict[str, Any], key: str, kind: str, index: int) -> str:
    value = item.get(key)
    if not value:
        raise PolicyRejectError(
            ErrorCodes.INVALID_SNAPSHOT,
            kind=kind,
            index=index,
            missing=key,
        )
    return str(value)


def _int_field(item: dict[str, Any], key: str, kind: str, index: int) -> int:
    value = item.get(key, 0) or 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise PolicyRejectError(
            ErrorCodes.INVALID_SNAPSHOT,
            kind=kind,
            index=index,
            field=key,
            value=value,
        ) from e


def _int_option(options: dict[str, Any], key: str) -> None:
    try:
        options[key] = int(options[key])
    except (TypeError, ValueError) as e:
        raise PolicyRejectError(
            ErrorCodes.CONFIG_INVALID,
            field=key,
            value=options[key],
        ) from e


def _mapping(payload: dict[str, Any], key: str, code: str) -> dict[str, Any]:
    value = payload.get(key) or {}
    if not isinstance(value, dict):
        raise PolicyRejectError(code, field=key, reason="must be an object")
    return value


def parse_shooting_date(value: Any) -> date | datetime | None:
    """
    "2024-04-01" → date, "2024-04-01T09:30:00" → datetime, empty → None.

    Raises:
        ValueError: unparseable value
    """
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    text = str(value)
    if "T" in text or " " in text:
        return datetime.fromisoformat(text)
    return date.fromisoformat(text)


def photo_from_dict(item: dict[str, Any], index: int = 0) -> ClassifiedPhoto:
    """
    Raises:
        PolicyRejectError: INVALID_SNAPSHOT
    """
    try:
        shooting_date = parse_shooting_date(item.get("shooting_date"))
    except ValueError as e:
        raise PolicyRejectError(
            ErrorCodes.INVALID_SNAPSHOT,
            kind="photo",
            index=index,
            field="shooting_date",
            value=item.get("shooting_date"),
        ) from e

    location = None
    raw_location = item.get("location")
    if raw_location:
        try:
            location = GeoLocation(
                latitude=float(raw_location["latitude"]),
                longitude=float(raw_location["longitude"]),
                geodetic_system=raw_location.get("geodetic_system", "JGD2011"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise PolicyRejectError(
                ErrorCodes.INVALID_SNAPSHOT,
                kind="photo",
                index=index,
                field="location",
            ) from e

    return ClassifiedPhoto(
        id=_require(item, "id", "photo", index),
        binary_ref=_require(item, "binary_ref", "photo", index),
        file_name=_require(item, "file_name", "photo", index),
        major_category=item.get("major_category", "") or "",
        category=item.get("category", "") or "",
        title=item.get("title", "") or "",
        construction_type=item.get("construction_type"),
        work_type=item.get("work_type"),
        detail_type=item.get("detail_type"),
        shooting_location=item.get("shooting_location"),
        shooting_date=shooting_date,
        is_representative=bool(item.get("is_representative", False)),
        is_submission_frequency_photo=bool(item.get("is_submission_frequency_photo", False)),
        drawing_id=item.get("drawing_id"),
        location=location,
        file_size=_int_field(item, "file_size", "photo", index),
        remarks=item.get("remarks"),
        photographer_name=item.get("photographer_name"),
        contractor_description=item.get("contractor_description"),
    )


def drawing_from_dict(item: dict[str, Any], index: int = 0) -> ClassifiedDrawing:
    return ClassifiedDrawing(
        id=_require(item, "id", "drawing", index),
        binary_ref=_require(item, "binary_ref", "drawing", index),
        file_name=_require(item, "file_name", "drawing", index),
        title=item.get("title"),
        file_size=_int_field(item, "file_size", "drawing", index),
    )


def parse_snapshot(
    payload: dict[str, Any],
) -> tuple[tuple[ClassifiedPhoto, ...], tuple[ClassifiedDrawing, ...]]:
    """Photos and drawings as immutable tuples in input order."""
    photos = payload.get("photos") or []
    drawings = payload.get("drawings") or []
    if not isinstance(photos, list) or not isinstance(drawings, list):
        raise PolicyRejectError(
            ErrorCodes.INVALID_SNAPSHOT,
            reason="photos and drawings must be lists",
        )
    for kind, items in (("photo", photos), ("drawing", drawings)):
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                raise PolicyRejectError(
                    ErrorCodes.INVALID_SNAPSHOT,
                    kind=kind,
                    index=i,
                    reason="entry must be an object",
                )
    return (
        tuple(photo_from_dict(item, i) for i, item in enumerate(photos)),
        tuple(drawing_from_dict(item, i) for i, item in enumerate(drawings)),
    )


def build_export_config(
    project_id: str,
    payload: dict[str, Any],
    settings: dict[str, Any] | None = None,
) -> ExportConfig:
    """
    Merge settings defaults (default.yaml) with per-request options.

    Args:
        project_id: project to export
        payload: manifest / request body
        settings: loaded default.yaml

    Returns:
        ExportConfig

    Raises:
        PolicyRejectError: CONFIG_INVALID (unknown output format, non-numeric
            retry / concurrency, malformed options or metadata)
    """
    settings = settings or {}
    export_defaults: dict[str, Any] = dict(settings.get("export", {}) or {})
    options = _mapping(payload, "options", ErrorCodes.CONFIG_INVALID)
    merged = {
        **{k: v for k, v in export_defaults.items() if k in OPTION_FIELDS},
        **{k: v for k, v in options.items() if k in OPTION_FIELDS},
    }

    if "output_format" in merged:
        try:
            merged["output_format"] = OutputFormat(merged["output_format"])
        except ValueError as e:
            raise PolicyRejectError(
                ErrorCodes.CONFIG_INVALID,
                field="output_format",
                value=merged["output_format"],
            ) from e

    for key in ("max_copy_retries", "copy_concurrency"):
        if key in merged:
            _int_option(merged, key)

    photo_ids = merged.get("photo_ids")
    if photo_ids is not None and not isinstance(photo_ids, list):
        raise PolicyRejectError(ErrorCodes.CONFIG_INVALID, field="photo_ids", value=photo_ids)

    raw_metadata = _mapping(payload, "metadata", ErrorCodes.CONFIG_INVALID)
    metadata = ExportMetadata(
        construction_name=raw_metadata.get("construction_name", ""),
        contractor_name=raw_metadata.get("contractor_name", ""),
        orderer_name=raw_metadata.get("orderer_name"),
        construction_start_date=raw_metadata.get("construction_start_date"),
        construction_end_date=raw_metadata.get("construction_end_date"),
    )

    extra: dict[str, Any] = {}
    if "retry_initial_delay" in export_defaults:
        extra["retry_initial_delay"] = float(export_defaults["retry_initial_delay"])
    validation = settings.get("validation", {}) or {}
    if "max_file_size_mb" in validation:
        extra["max_file_size_mb"] = float(validation["max_file_size_mb"])
    software = settings.get("software", {}) or {}
    if software.get("name"):
        extra["software_name"] = str(software["name"])
    if software.get("version"):
        extra["software_version"] = str(software["version"])

    return ExportConfig(project_id=project_id, metadata=metadata, **merged, **extra)
