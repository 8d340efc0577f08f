"""
SSOT (Single Source of Truth) for one export job: <exports_root>/<job_id>/job.json

Rules:
- job.json is the only persisted record of a job's state
- The job directory is guarded by a per-job FileLock while a run owns it
- Atomic writes: temp → rename + fsync
- No cross-job coordination: each job locks only its own directory

Filesystem durability (best-effort):
- fsync file + directory where supported
- fsync failure logs a warning and continues
"""

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import AsyncGenerator, Generator
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from src.domain.constants import (
    JOB_DELIVERABLES_DIR,
    JOB_JSON_FILENAME,
    JOB_LOGS_DIR,
    JOB_STAGING_DIR,
    OUTPUT_LOCK_FILENAME,
)
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import ExportJob

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10.0

JOB_JSON_SCHEMA_VERSION = "1.0"

# =============================================================================
# Job Directory Layout
# =============================================================================


def job_dir_for(exports_root: Path, job_id: str) -> Path:
    return exports_root / job_id


def staging_dir_for(job_dir: Path) -> Path:
    """Working tree the package is assembled in."""
    return job_dir / JOB_STAGING_DIR


def deliverables_dir_for(job_dir: Path) -> Path:
    """Final archive or expanded folder."""
    return job_dir / JOB_DELIVERABLES_DIR


def logs_dir_for(job_dir: Path) -> Path:
    return job_dir / JOB_LOGS_DIR


# =============================================================================
# Lock Management
# =============================================================================


def _acquire_lock(job_dir: Path, timeout: float, thread_local: bool = True) -> tuple[FileLock, Path]:
    job_dir.mkdir(parents=True, exist_ok=True)
    lock_file = job_dir / OUTPUT_LOCK_FILENAME
    lock = FileLock(lock_file, timeout=timeout, thread_local=thread_local)

    try:
        lock.acquire()
    except Timeout as e:
        raise PolicyRejectError(
            ErrorCodes.OUTPUT_LOCK_TIMEOUT,
            job_dir=str(job_dir),
            timeout=timeout,
        ) from e
    return lock, lock_file


@contextmanager
def output_lock(job_dir: Path, timeout: float = DEFAULT_LOCK_TIMEOUT) -> Generator[Path, None, None]:
    """
    Exclusive lock over one job's output directory.

    Usage:
        with output_lock(job_dir):
            # write staging / deliverables / job.json

    Args:
        job_dir: job folder
        timeout: seconds to wait for the lock

    Yields:
        lock file path

    Raises:
        PolicyRejectError: OUTPUT_LOCK_TIMEOUT
    """
    lock, lock_file = _acquire_lock(job_dir, timeout)
    try:
        yield lock_file
    finally:
        lock.release()


@asynccontextmanager
async def async_output_lock(
    job_dir: Path, timeout: float = DEFAULT_LOCK_TIMEOUT
) -> AsyncGenerator[Path, None]:
    """
    output_lock for coroutines: the wait runs in a worker thread.

    The lock is not thread-local, so the event loop thread can release what
    the worker acquired.

    Raises:
        PolicyRejectError: OUTPUT_LOCK_TIMEOUT
    """
    lock, lock_file = await asyncio.to_thread(_acquire_lock, job_dir, timeout, False)
    try:
        yield lock_file
    finally:
        lock.release()


# =============================================================================
# Atomic Write
# =============================================================================


def _fsync_dir(dir_path: Path) -> None:
    """
    Directory fsync where supported.

    Needed for the rename entry itself to be durable. Mostly effective on
    Linux; some OS / filesystems do not support it.
    """
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.warning(
            f"Directory fsync failed for {dir_path}: {e}. "
            f"Rename durability may not be guaranteed."
        )


def atomic_write_json(path: Path, data: dict) -> None:
    """
    Atomic JSON write.

    - No partial state: temp → rename
    - Durability where supported: file fsync + directory fsync
    - On failure the temp file is removed and the original is kept

    Args:
        path: target path
        data: JSON-serialisable data
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            temp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)

        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as cleanup_error:
                logger.warning(f"Temp file cleanup failed for {temp_path}: {cleanup_error}")
        raise


# =============================================================================
# Job JSON Operations
# =============================================================================


def write_job_json(job_dir: Path, job: ExportJob) -> Path:
    """
    Persist the job's status snapshot.

    Args:
        job_dir: job folder
        job: export job

    Returns:
        job.json path
    """
    job_json_path = job_dir / JOB_JSON_FILENAME
    data = {
        "schema_version": JOB_JSON_SCHEMA_VERSION,
        "config": job.config.to_dict(),
        **job.to_status(),
    }
    atomic_write_json(job_json_path, data)
    return job_json_path


def load_job_json(job_json_path: Path) -> dict[str, Any]:
    """
    Load job.json.

    Raises:
        PolicyRejectError: JOB_JSON_CORRUPT (JSON parse failure)
    """
    try:
        data: dict[str, Any] = json.loads(job_json_path.read_text(encoding="utf-8"))
        return data
    except json.JSONDecodeError as e:
        raise PolicyRejectError(
            ErrorCodes.JOB_JSON_CORRUPT,
            path=str(job_json_path),
            error=str(e),
        ) from e
