"""
test_purge_exports.py - purge_exports.py script tests

Test cases:
- TC1: finished jobs past retention are purged
- TC2: running jobs (no finished_at) are never touched
- TC3: unreadable job.json falls back to folder mtime
- TC4: dry-run deletes nothing
- TC5: single job / non-job folders
"""

import json
import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

# Path for importing the scripts modules
sys.path.insert(0, str(Path(__file__).parent.parent.parent.parent / "scripts"))

from purge_exports import (
    DEFAULT_RETENTION_DAYS,
    PurgeResult,
    get_finished_at,
    get_folder_size,
    load_retention_days,
    main,
    purge_exports,
)

NOW = datetime(2024, 7, 1, 3, 0, tzinfo=UTC)


def create_job(exports_root: Path, job_id: str, finished_at: datetime | None, size_kb: int = 10) -> Path:
    """Job folder with job.json and a fake deliverable."""
    job_dir = exports_root / job_id
    (job_dir / "deliverables").mkdir(parents=True)
    (job_dir / "deliverables" / f"{job_id}.zip").write_bytes(b"x" * (size_kb * 1024))
    status = {
        "job_id": job_id,
        "state": "completed" if finished_at else "copying-photos",
        "finished_at": finished_at.isoformat() if finished_at else None,
    }
    (job_dir / "job.json").write_text(json.dumps(status), encoding="utf-8")
    return job_dir


# =============================================================================
# TC1: retention
# =============================================================================

class TestRetentionPurge:
    def test_old_jobs_purged(self, tmp_path: Path):
        old = create_job(tmp_path, "EXP-OLD", NOW - timedelta(days=35))
        recent = create_job(tmp_path, "EXP-NEW", NOW - timedelta(days=5))

        result = purge_exports(tmp_path, retention_days=30, execute=True, now=NOW)

        assert result.scanned_jobs == 2
        assert result.purged_jobs == 1
        assert result.purged_size_mb > 0
        assert not old.exists()
        assert recent.exists()

    def test_failed_jobs_purged_too(self, tmp_path: Path):
        job_dir = create_job(tmp_path, "EXP-FAILED", NOW - timedelta(days=40))
        status = json.loads((job_dir / "job.json").read_text(encoding="utf-8"))
        status["state"] = "failed"
        (job_dir / "job.json").write_text(json.dumps(status), encoding="utf-8")

        result = purge_exports(tmp_path, retention_days=30, execute=True, now=NOW)
        assert result.purged_jobs == 1


# =============================================================================
# TC2: running jobs
# =============================================================================

class TestRunningJobs:
    def test_running_job_skipped(self, tmp_path: Path):
        running = create_job(tmp_path, "EXP-RUNNING", None)
        old_time = (NOW - timedelta(days=90)).timestamp()
        os.utime(running, (old_time, old_time))

        result = purge_exports(tmp_path, retention_days=30, execute=True, now=NOW)

        assert result.skipped_running == 1
        assert result.purged_jobs == 0
        assert running.exists()

    def test_get_finished_at_running(self, tmp_path: Path):
        job_dir = create_job(tmp_path, "EXP-RUNNING", None)
        assert get_finished_at(job_dir) is None


# =============================================================================
# TC3: fallback to mtime
# =============================================================================

class TestMtimeFallback:
    def test_corrupt_job_json(self, tmp_path: Path):
        job_dir = create_job(tmp_path, "EXP-CORRUPT", NOW)
        (job_dir / "job.json").write_text("{broken", encoding="utf-8")
        old_time = (NOW - timedelta(days=60)).timestamp()
        os.utime(job_dir, (old_time, old_time))

        assert get_finished_at(job_dir) == datetime.fromtimestamp(old_time, tz=UTC)

        result = purge_exports(tmp_path, retention_days=30, execute=True, now=NOW)
        assert result.purged_jobs == 1
        assert not job_dir.exists()

    def test_naive_timestamp_treated_as_utc(self, tmp_path: Path):
        job_dir = create_job(tmp_path, "EXP-NAIVE", None)
        (job_dir / "job.json").write_text(
            json.dumps({"finished_at": "2024-06-01T00:00:00"}), encoding="utf-8"
        )
        assert get_finished_at(job_dir) == datetime(2024, 6, 1, tzinfo=UTC)


# =============================================================================
# TC4: dry-run
# =============================================================================

class TestDryRun:
    def test_nothing_deleted(self, tmp_path: Path):
        old = create_job(tmp_path, "EXP-OLD", NOW - timedelta(days=35))

        result = purge_exports(tmp_path, retention_days=30, execute=False, now=NOW)

        assert result.purged_jobs == 1
        assert old.exists()


# =============================================================================
# TC5: selection
# =============================================================================

class TestSelection:
    def test_non_job_folders_ignored(self, tmp_path: Path):
        other = tmp_path / "cache"
        other.mkdir()
        old_time = (NOW - timedelta(days=90)).timestamp()
        os.utime(other, (old_time, old_time))

        result = purge_exports(tmp_path, retention_days=30, execute=True, now=NOW)

        assert result.scanned_jobs == 0
        assert other.exists()

    def test_specific_job(self, tmp_path: Path):
        target = create_job(tmp_path, "EXP-A", NOW - timedelta(days=35))
        untouched = create_job(tmp_path, "EXP-B", NOW - timedelta(days=35))

        result = purge_exports(tmp_path, retention_days=30, execute=True, specific_job="EXP-A", now=NOW)

        assert result.scanned_jobs == 1
        assert not target.exists()
        assert untouched.exists()

    def test_specific_job_missing(self, tmp_path: Path):
        result = purge_exports(tmp_path, retention_days=30, execute=True, specific_job="EXP-NONE", now=NOW)
        assert result == PurgeResult()

    def test_missing_exports_root(self, tmp_path: Path):
        result = purge_exports(tmp_path / "nope", retention_days=30, execute=True, now=NOW)
        assert result.scanned_jobs == 0


# =============================================================================
# Helpers / CLI
# =============================================================================

class TestHelpers:
    def test_folder_size(self, tmp_path: Path):
        job_dir = create_job(tmp_path, "EXP-SIZE", NOW, size_kb=3)
        (job_dir / "job.json").write_text("{}", encoding="utf-8")
        assert get_folder_size(job_dir) == 3 * 1024 + 2

    def test_retention_days_from_config(self, tmp_path: Path):
        config_path = tmp_path / "default.yaml"
        config_path.write_text("retention:\n  days: 7\n", encoding="utf-8")
        assert load_retention_days(config_path) == 7

    def test_retention_days_default(self, tmp_path: Path):
        assert load_retention_days(tmp_path / "missing.yaml") == DEFAULT_RETENTION_DAYS

    def test_main_dry_run(self, tmp_path: Path):
        old = create_job(tmp_path, "EXP-OLD", datetime.now(UTC) - timedelta(days=35))

        code = main(["--exports-root", str(tmp_path), "--days", "30"])

        assert code == 0
        assert old.exists()

    def test_main_execute(self, tmp_path: Path):
        old = create_job(tmp_path, "EXP-OLD", datetime.now(UTC) - timedelta(days=35))

        code = main(["--exports-root", str(tmp_path), "--days", "30", "--execute"])

        assert code == 0
        assert not old.exists()
