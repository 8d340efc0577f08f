"""
Deliverable materialisation: single ZIP archive or expanded folder tree.

The staging directory already holds the complete package; this module only
changes its form.
"""

import logging
import shutil
import zipfile
from pathlib import Path

from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import OutputFormat

logger = logging.getLogger(__name__)


def _iter_files(source_dir: Path) -> list[Path]:
    # Sorted for a stable entry order
    return sorted(p for p in source_dir.rglob("*") if p.is_file())


def create_zip_archive(source_dir: Path, archive_path: Path) -> Path:
    """
    Zip a staged package.

    Entry names are relative to source_dir with '/' separators
    (e.g. PHOTO/PIC/P0000001.JPG).

    Args:
        source_dir: staged package root
        archive_path: target .zip path

    Returns:
        archive_path
    """
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = archive_path.with_suffix(archive_path.suffix + ".tmp")

    try:
        with zipfile.ZipFile(temp_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for file_path in _iter_files(source_dir):
                zf.write(file_path, file_path.relative_to(source_dir).as_posix())
        temp_path.replace(archive_path)
    except Exception:
        temp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Created archive {archive_path}")
    return archive_path


def materialize_folder(source_dir: Path, target_dir: Path) -> Path:
    """
    Move the staged package into its final folder.

    Raises:
        PolicyRejectError: ARCHIVE_FAILED when target_dir already exists
    """
    if target_dir.exists():
        raise PolicyRejectError(
            ErrorCodes.ARCHIVE_FAILED,
            reason="target folder already exists",
            target=str(target_dir),
        )
    target_dir.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source_dir), str(target_dir))
    logger.info(f"Materialized folder {target_dir}")
    return target_dir


def create_deliverable(
    source_dir: Path,
    deliverables_dir: Path,
    base_name: str,
    output_format: OutputFormat,
) -> Path:
    """
    Args:
        source_dir: staged package root
        deliverables_dir: job deliverables folder
        base_name: archive / folder name without extension
        output_format: zip or folder

    Returns:
        path of the produced archive or folder
    """
    if output_format == OutputFormat.ZIP:
        return create_zip_archive(source_dir, deliverables_dir / f"{base_name}.zip")
    return materialize_folder(source_dir, deliverables_dir / base_name)


def list_archive_entries(archive_path: Path) -> list[str]:
    with zipfile.ZipFile(archive_path) as zf:
        return zf.namelist()
