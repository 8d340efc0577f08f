"""
Run logging: run log schema, step events, warnings

Rules:
- Warning required context: level, code, action_id, target, message
- One run log per export job, saved under <job_dir>/logs/
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.ids import generate_run_id
from src.core.ssot_job import atomic_write_json
from src.domain.schemas import RunLog, StepEvent, ValidationReport, WarningLog

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(job_id: str) -> RunLog:
    """
    New RunLog.

    Args:
        job_id: export job ID

    Returns:
        initialised RunLog
    """
    now = datetime.now(UTC).isoformat()
    run_id = generate_run_id()

    return RunLog(
        run_id=run_id,
        job_id=job_id,
        started_at=now,
        result="pending",
    )


def record_step(
    run_log: RunLog,
    step: str,
    processed_files: int = 0,
    total_files: int = 0,
    message: str = "",
) -> None:
    """Append a step transition."""
    run_log.steps.append(
        StepEvent(
            step=step,
            timestamp=datetime.now(UTC).isoformat(),
            processed_files=processed_files,
            total_files=total_files,
            message=message,
        )
    )


def emit_warning(
    run_log: RunLog,
    code: str,
    action_id: str,
    target: str,
    message: str,
) -> None:
    """
    Record a warning event.

    Args:
        run_log: RunLog instance
        code: warning code
        action_id: pipeline action (e.g. copy_retry, validation)
        target: file or field concerned
        message: warning message
    """
    run_log.warnings.append(
        WarningLog(
            level="warning",
            code=code,
            action_id=action_id,
            target=target,
            message=message,
        )
    )


def emit_validation_warnings(run_log: RunLog, report: ValidationReport) -> None:
    for finding in report.warnings:
        emit_warning(
            run_log,
            code=finding.code,
            action_id="validation",
            target=finding.target_file or finding.target_field or "",
            message=finding.message,
        )


def complete_run_log(
    run_log: RunLog,
    success: bool,
    document_hash: str | None = None,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    Finish a RunLog.

    Args:
        run_log: RunLog instance
        success: whether the job completed
        document_hash: metadata document hash (when built)
        error_code: failure code
        error_context: failure context
    """
    now = datetime.now(UTC).isoformat()
    run_log.finished_at = now
    run_log.result = "success" if success else "failed"
    run_log.document_hash = document_hash

    if not success:
        run_log.error_code = error_code
        run_log.error_context = error_context


def save_run_log(run_log: RunLog, logs_dir: Path) -> Path:
    """
    Save a RunLog.

    Returns:
        written file path
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    return log_path


def load_run_log(log_path: Path) -> dict[str, Any]:
    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path) -> list[Path]:
    """
    All run log files in a logs/ directory.

    Returns:
        log file paths (newest first)
    """
    if not logs_dir.exists():
        return []

    logs = list(logs_dir.glob("run_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
