"""
Binary storage collaborator.

The engine resolves a binary_ref to a readable stream only while copying;
storage is read-only from the pipeline's point of view.
"""

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Protocol

logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 1024 * 1024


class BinaryStorage(Protocol):
    """Source of photo / drawing bytes."""

    def open_stream(self, binary_ref: str) -> BinaryIO:
        """
        Open a readable binary stream.

        Raises:
            FileNotFoundError: unknown reference
            OSError: read failure (retryable)
        """
        ...


class LocalBinaryStorage:
    """
    Filesystem-backed storage: binary_ref is a path relative to base_dir.

    Usage:
        storage = LocalBinaryStorage(Path("storage"))
        with storage.open_stream("projects/p1/IMG_0001.jpg") as src:
            ...
    """

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir.resolve()

    def resolve(self, binary_ref: str) -> Path:
        """
        Args:
            binary_ref: storage-relative path

        Returns:
            absolute path inside base_dir

        Raises:
            ValueError: reference escapes base_dir
        """
        path = (self.base_dir / binary_ref).resolve()
        if not path.is_relative_to(self.base_dir):
            raise ValueError(f"Binary reference escapes storage root: {binary_ref}")
        return path

    def open_stream(self, binary_ref: str) -> BinaryIO:
        return open(self.resolve(binary_ref), "rb")

    def exists(self, binary_ref: str) -> bool:
        try:
            return self.resolve(binary_ref).is_file()
        except ValueError:
            return False


def copy_to_path(storage: BinaryStorage, binary_ref: str, dest: Path) -> int:
    """
    Stream one binary into dest.

    A partially written file is removed on failure so that a retry starts
    from scratch.

    Returns:
        bytes written
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    try:
        with storage.open_stream(binary_ref) as src, open(dest, "wb") as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
    except Exception:
        dest.unlink(missing_ok=True)
        raise
    return dest.stat().st_size
