"""
Application Services.

Roles:
- export_jobs: job registry, scheduling, cancellation, status lookup
"""

from .export_jobs import ExportJobService

__all__ = [
    "ExportJobService",
]
