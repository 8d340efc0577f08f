#!/usr/bin/env python3
"""
purge_exports.py - retention cleanup for finished export jobs

Based on default.yaml retention.days:
1. Job folders (<exports_root>/EXP-*) whose job finished more than
   retention.days ago are removed (job.json, logs, staging, deliverables)
2. Jobs that are still running (no finished_at) are never touched
3. Folders without a readable job.json fall back to their mtime

Stored photos (storage_root) are never touched.

Usage:
    # dry-run (default)
    uv run python scripts/purge_exports.py

    # actually delete
    uv run python scripts/purge_exports.py --execute

    # single job
    uv run python scripts/purge_exports.py --job EXP-P001-20240401093000-1a2b3c4d --execute

    # cron (03:00 daily)
    0 3 * * * cd /path/to/project && uv run python scripts/purge_exports.py --execute >> /var/log/purge_exports.log 2>&1
"""

import argparse
import json
import logging
import shutil
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.domain.constants import EXPORT_JOB_ID_PREFIX, JOB_JSON_FILENAME  # noqa: E402

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 30


@dataclass
class PurgeResult:
    """Purge result."""
    scanned_jobs: int = 0
    skipped_running: int = 0
    purged_jobs: int = 0
    purged_size_mb: float = 0.0
    errors: list[str] = field(default_factory=list)


def load_retention_days(config_path: Path) -> int:
    """retention.days from default.yaml (default 30)."""
    if not config_path.exists():
        return DEFAULT_RETENTION_DAYS
    with open(config_path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    return int(config.get("retention", {}).get("days", DEFAULT_RETENTION_DAYS))


def get_folder_size(folder: Path) -> int:
    """Total folder size (bytes)."""
    total = 0
    try:
        for item in folder.rglob("*"):
            if item.is_file():
                total += item.stat().st_size
    except OSError:
        pass
    return total


def get_finished_at(job_dir: Path) -> datetime | None:
    """
    When the job reached a terminal state.

    Returns:
        finished_at from job.json, folder mtime when job.json is unreadable,
        None while the job is still running
    """
    job_json_path = job_dir / JOB_JSON_FILENAME
    try:
        data = json.loads(job_json_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return datetime.fromtimestamp(job_dir.stat().st_mtime, tz=UTC)

    finished_at = data.get("finished_at")
    if not finished_at:
        return None
    try:
        parsed = datetime.fromisoformat(finished_at)
    except ValueError:
        return datetime.fromtimestamp(job_dir.stat().st_mtime, tz=UTC)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def purge_job(job_dir: Path, execute: bool, result: PurgeResult) -> None:
    """Remove a single job folder."""
    size_mb = get_folder_size(job_dir) / (1024 * 1024)
    if not execute:
        logger.info(f"[DRY-RUN] would delete: {job_dir} ({size_mb:.2f} MB)")
        result.purged_jobs += 1
        result.purged_size_mb += size_mb
        return

    try:
        shutil.rmtree(job_dir)
    except OSError as e:
        result.errors.append(f"delete failed {job_dir}: {e}")
        logger.error(f"delete failed {job_dir}: {e}")
        return
    result.purged_jobs += 1
    result.purged_size_mb += size_mb
    logger.info(f"deleted: {job_dir} ({size_mb:.2f} MB)")


def purge_exports(
    exports_root: Path,
    retention_days: int,
    execute: bool,
    specific_job: str | None = None,
    now: datetime | None = None,
) -> PurgeResult:
    """Purge finished jobs older than the retention period."""
    result = PurgeResult()

    if not exports_root.exists():
        logger.warning(f"exports directory missing: {exports_root}")
        return result

    if specific_job:
        job_dirs = [exports_root / specific_job]
        if not job_dirs[0].is_dir():
            logger.error(f"job directory missing: {job_dirs[0]}")
            return result
    else:
        job_dirs = sorted(
            d for d in exports_root.iterdir()
            if d.is_dir() and d.name.startswith(EXPORT_JOB_ID_PREFIX)
        )

    cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
    logger.info(f"Scanning {len(job_dirs)} jobs (cutoff {cutoff.isoformat()})")

    for job_dir in job_dirs:
        result.scanned_jobs += 1
        finished_at = get_finished_at(job_dir)
        if finished_at is None:
            result.skipped_running += 1
            continue
        if finished_at < cutoff:
            purge_job(job_dir, execute, result)

    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Retention cleanup for finished export jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="actually delete (default: dry-run)",
    )
    parser.add_argument(
        "--job",
        type=str,
        help="process a single job (e.g. EXP-P001-20240401093000-1a2b3c4d)",
    )
    parser.add_argument(
        "--exports-root",
        type=str,
        default="exports",
        help="exports directory (default: exports)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default="default.yaml",
        help="settings file (default: default.yaml)",
    )
    parser.add_argument(
        "--days",
        type=int,
        help="override retention.days",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    exports_root = PROJECT_ROOT / args.exports_root
    retention_days = args.days if args.days is not None else load_retention_days(PROJECT_ROOT / args.config)
    logger.info(f"Retention: {retention_days} days")

    if not args.execute:
        logger.info("=" * 50)
        logger.info("DRY-RUN (nothing is deleted)")
        logger.info("add --execute to delete")
        logger.info("=" * 50)

    result = purge_exports(
        exports_root=exports_root,
        retention_days=retention_days,
        execute=args.execute,
        specific_job=args.job,
    )

    logger.info("=" * 50)
    logger.info("Purge result:")
    logger.info(f"  scanned: {result.scanned_jobs} jobs ({result.skipped_running} running, skipped)")
    logger.info(f"  purged: {result.purged_jobs} jobs ({result.purged_size_mb:.2f} MB)")
    if result.errors:
        logger.warning(f"  errors: {len(result.errors)}")
        for err in result.errors[:5]:
            logger.warning(f"    - {err}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
