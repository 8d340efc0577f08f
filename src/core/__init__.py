"""
Core layer: packaging and operational safety.

Everything that decides what ends up in a delivery package lives here,
so changes are reviewed conservatively.

Roles:
- Naming, folder plan, PHOTO.XML / INDEX_D.XML, validation
- SSOT (job.json), output lock, hashing, run logs
"""

from .hashing import compute_data_hash, compute_document_hash, compute_file_hash
from .ids import generate_export_job_id, generate_run_id
from .logging import create_run_log, emit_warning, save_run_log
from .naming import FileNameGenerator, generate_drawing_file_name, generate_photo_file_name
from .ssot_job import (
    async_output_lock,
    atomic_write_json,
    load_job_json,
    output_lock,
    write_job_json,
)

__all__ = [
    # ssot_job
    "output_lock",
    "async_output_lock",
    "atomic_write_json",
    "write_job_json",
    "load_job_json",
    # ids
    "generate_export_job_id",
    "generate_run_id",
    # hashing
    "compute_data_hash",
    "compute_document_hash",
    "compute_file_hash",
    # naming
    "FileNameGenerator",
    "generate_photo_file_name",
    "generate_drawing_file_name",
    # logging
    "create_run_log",
    "emit_warning",
    "save_run_log",
]
