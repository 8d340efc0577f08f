"""
Folder structure assembly: classified entities → canonical package layout.

Rules:
- Sequence exhaustion is detected up front, before any entity is named
- Photo order: (category, shooting date ascending, input order)
- Ties broken by input order only, never by id/hash
- Every entity passes exactly once through the job's FileNameGenerator
"""

import logging
from collections.abc import Sequence
from datetime import date, datetime, time

from src.core.categories import ClassificationCodes, default_classification_codes
from src.core.naming import (
    FileNameGenerator,
    extract_sequence_number,
    get_extension,
    is_supported_drawing_extension,
    is_supported_photo_extension,
)
from src.domain.constants import (
    DRAWING_FILE_FOLDER,
    MAX_SEQUENCE,
    PHOTO_FILE_FOLDER,
    PHOTO_ROOT_FOLDER,
    PHOTO_XML_FILENAME,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import (
    ClassifiedDrawing,
    ClassifiedPhoto,
    DeliveryFileEntry,
    EntryKind,
    ExportConfig,
    FolderPlan,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Paths
# =============================================================================

def join_path(*parts: str) -> str:
    """Join archive-relative path parts with '/'."""
    return "/".join(p.strip("/") for p in parts if p)


def generate_folder_paths(
    base_path: str = "",
    include_drawing_folder: bool = True,
    root_name: str | None = None,
) -> dict[str, str | None]:
    """
    Package paths relative to base_path.

    Returns:
        {"root", "pic", "dra", "photo_xml"} ("dra" is None when excluded)
    """
    root = join_path(base_path, root_name or PHOTO_ROOT_FOLDER)
    return {
        "root": root,
        "pic": join_path(root, PHOTO_FILE_FOLDER),
        "dra": join_path(root, DRAWING_FILE_FOLDER) if include_drawing_folder else None,
        "photo_xml": join_path(root, PHOTO_XML_FILENAME),
    }


# =============================================================================
# Assembly
# =============================================================================

def check_sequence_capacity(photo_count: int, drawing_count: int) -> None:
    """
    Raises:
        PolicyRejectError: SEQUENCE_EXHAUSTED
    """
    for kind, count in (("photo", photo_count), ("drawing", drawing_count)):
        if count > MAX_SEQUENCE:
            raise PolicyRejectError(
                ErrorCodes.SEQUENCE_EXHAUSTED,
                kind=kind,
                count=count,
                max_sequence=MAX_SEQUENCE,
            )


def _date_sort_key(value: date | datetime | None) -> datetime:
    # Missing dates sort last within their category
    if value is None:
        return datetime.max
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.min)


def order_photos(
    photos: Sequence[ClassifiedPhoto],
    codes: ClassificationCodes | None = None,
) -> list[ClassifiedPhoto]:
    """
    Deterministic delivery order.

    Args:
        photos: photos in input order
        codes: recognized codes (category ranking)

    Returns:
        New list sorted by (category, shooting date, input index)
    """
    codes = codes or default_classification_codes()
    indexed = list(enumerate(photos))
    indexed.sort(
        key=lambda item: (
            codes.category_rank(item[1].category),
            _date_sort_key(item[1].shooting_date),
            item[0],
        )
    )
    return [photo for _, photo in indexed]


def assemble_folder_plan(
    photos: Sequence[ClassifiedPhoto],
    drawings: Sequence[ClassifiedDrawing],
    config: ExportConfig,
    generator: FileNameGenerator,
    codes: ClassificationCodes | None = None,
) -> FolderPlan:
    """
    Build the folder plan for one job.

    Args:
        photos: photo snapshot (input order)
        drawings: drawing snapshot (input order)
        config: export configuration
        generator: the job's own name generator
        codes: recognized codes used for category ordering

    Returns:
        FolderPlan with one DeliveryFileEntry per entity

    Raises:
        PolicyRejectError: SEQUENCE_EXHAUSTED, UNSUPPORTED_FILE_TYPE
    """
    check_sequence_capacity(len(photos), len(drawings))

    unsupported = [p.file_name for p in photos if not is_supported_photo_extension(p.file_name)]
    unsupported += [d.file_name for d in drawings if not is_supported_drawing_extension(d.file_name)]
    if unsupported:
        raise PolicyRejectError(
            ErrorCodes.UNSUPPORTED_FILE_TYPE,
            files=unsupported,
        )

    include_drawings = config.include_drawing_folder and len(drawings) > 0
    paths = generate_folder_paths(
        include_drawing_folder=include_drawings,
        root_name=config.root_folder_name,
    )

    plan = FolderPlan(
        root_folder_name=paths["root"] or PHOTO_ROOT_FOLDER,
        metadata_path=paths["photo_xml"] or "",
        photo_folder_path=paths["pic"] or "",
        drawing_folder_path=paths["dra"],
    )

    # Drawings first so that photo records can resolve their links
    if include_drawings:
        for drawing in drawings:
            name = generator.next_drawing_file_name(get_extension(drawing.file_name))
            plan.drawing_entries.append(
                DeliveryFileEntry(
                    kind=EntryKind.DRAWING,
                    sequence=extract_sequence_number(name) or 0,
                    delivery_name=name,
                    relative_path=join_path(plan.drawing_folder_path or "", name),
                    source_id=drawing.id,
                    binary_ref=drawing.binary_ref,
                    original_file_name=drawing.file_name,
                    file_size=drawing.file_size,
                )
            )
            plan.drawings_by_id[drawing.id] = drawing

    for photo in order_photos(photos, codes):
        name = generator.next_photo_file_name(get_extension(photo.file_name))
        plan.photo_entries.append(
            DeliveryFileEntry(
                kind=EntryKind.PHOTO,
                sequence=extract_sequence_number(name) or 0,
                delivery_name=name,
                relative_path=join_path(plan.photo_folder_path, name),
                source_id=photo.id,
                binary_ref=photo.binary_ref,
                original_file_name=photo.file_name,
                file_size=photo.file_size,
            )
        )
        plan.photos_by_id[photo.id] = photo

    logger.info(
        "Assembled folder plan: %d photos, %d drawings under %s",
        len(plan.photo_entries),
        len(plan.drawing_entries),
        plan.root_folder_name,
    )
    return plan


# =============================================================================
# Inspection Helpers
# =============================================================================

def validate_folder_structure(plan: FolderPlan) -> list[str]:
    """
    Structural self-check of a plan.

    Returns:
        Problem descriptions (empty when consistent)
    """
    problems: list[str] = []

    if not plan.root_folder_name:
        problems.append("Root folder name is not set")

    if not plan.photo_entries:
        problems.append("No photo files in the package")

    seen: set[str] = set()
    for entry in plan.all_entries():
        if entry.delivery_name in seen:
            problems.append(f"Duplicate delivery name: {entry.delivery_name}")
        seen.add(entry.delivery_name)

    for kind, entries in (("photo", plan.photo_entries), ("drawing", plan.drawing_entries)):
        numbers = sorted(extract_sequence_number(e.delivery_name) or 0 for e in entries)
        for expected, actual in enumerate(numbers, start=1):
            if actual != expected:
                problems.append(
                    f"Non-contiguous {kind} sequence: {actual} (expected {expected})"
                )
                break

    return problems


def get_folder_tree_string(plan: FolderPlan) -> str:
    """Human-readable tree of the package layout."""
    lines = [f"{plan.root_folder_name}/", f"├── {PHOTO_XML_FILENAME}"]
    has_drawings = plan.drawing_folder_path is not None

    lines.append(f"{'├' if has_drawings else '└'}── {PHOTO_FILE_FOLDER}/")
    branch = "│   " if has_drawings else "    "
    for i, entry in enumerate(plan.photo_entries):
        last = i == len(plan.photo_entries) - 1
        lines.append(f"{branch}{'└' if last else '├'}── {entry.delivery_name}")

    if has_drawings:
        lines.append(f"└── {DRAWING_FILE_FOLDER}/")
        for i, entry in enumerate(plan.drawing_entries):
            last = i == len(plan.drawing_entries) - 1
            lines.append(f"    {'└' if last else '├'}── {entry.delivery_name}")

    return "\n".join(lines)
