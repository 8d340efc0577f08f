"""
FastAPI Routes.

API routes (REST): export jobs
"""

from . import exports

__all__ = ["exports"]
