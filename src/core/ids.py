"""
ID generation: export job_id, run_id

Rules:
- job_id is unique per requested export (a retry is a new job)
- run_id identifies one execution log
"""

import uuid
from datetime import UTC, datetime

from src.domain.constants import EXPORT_JOB_ID_PREFIX, RUN_ID_PREFIX


def generate_export_job_id(project_id: str) -> str:
    """
    Export job ID.

    Format: EXP-{project}-{timestamp}-{uuid[:8]}

    Args:
        project_id: project the export belongs to

    Returns:
        job_id string (safe as a directory name)
    """
    timestamp = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]
    return f"{EXPORT_JOB_ID_PREFIX}{_sanitize_for_id(project_id)}-{timestamp}-{unique}"


def generate_run_id() -> str:
    """
    Run ID.

    Format: RUN-{timestamp}-{uuid[:8]}
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"{RUN_ID_PREFIX}{timestamp}-{unique}"


def _sanitize_for_id(value: str) -> str:
    """
    Make a value safe for use inside an ID.

    - whitespace / '-' / '_' → '_'
    - other non-ASCII-alphanumerics dropped
    - at most 20 characters
    """
    sanitized = ""
    for c in value:
        if c.isascii() and c.isalnum():
            sanitized += c
        elif c in " _-":
            sanitized += "_"

    while "__" in sanitized:
        sanitized = sanitized.replace("__", "_")

    sanitized = sanitized.strip("_")

    return sanitized[:20] if sanitized else "UNKNOWN"
