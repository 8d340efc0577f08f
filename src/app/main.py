"""
FastAPI application entry point.

Run:
- dev: uv run uvicorn src.app.main:app --reload
- prod: uv run uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI

from src.app.routes import exports
from src.app.services.export_jobs import ExportJobService
from src.core.categories import load_classification_codes
from src.core.storage import LocalBinaryStorage

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """Load default.yaml."""
    if config_path is None:
        config_path = PROJECT_ROOT / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def resolve_path(value: str | None, default: str) -> Path:
    """Relative paths in default.yaml are relative to the project root."""
    path = Path(value or default)
    return path if path.is_absolute() else PROJECT_ROOT / path


def allow_all(user: str | None, project_id: str) -> bool:
    """Default authorizer; deployments replace app.state.authorizer."""
    return True


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle.

    Startup: load config, build storage + export service
    Shutdown: cancel running exports
    """
    config = load_config()
    paths = config.get("paths", {}) or {}

    app.state.config = config
    app.state.exports_root = resolve_path(paths.get("exports_root"), "exports")
    app.state.storage_root = resolve_path(paths.get("storage_root"), "storage")
    app.state.standard_path = resolve_path(paths.get("standard"), "standard.yaml")
    if not hasattr(app.state, "authorizer"):
        app.state.authorizer = allow_all

    app.state.export_service = ExportJobService(
        exports_root=app.state.exports_root,
        storage=LocalBinaryStorage(app.state.storage_root),
        classification_codes=load_classification_codes(app.state.standard_path),
        settings=config,
    )
    logger.info(f"Exports root: {app.state.exports_root}")

    yield

    await app.state.export_service.shutdown()


# =============================================================================
# App Instance
# =============================================================================

app = FastAPI(
    title="Photo Delivery Pipeline",
    description="Classified construction photos → electronic delivery package (PHOTO/PIC/DRA + PHOTO.XML)",
    version="0.1.0",
    lifespan=lifespan,
)


# =============================================================================
# Routes
# =============================================================================

app.include_router(exports.api_router, prefix="/api", tags=["Exports API"])


# =============================================================================
# Root Endpoints
# =============================================================================


@app.get("/")
async def root() -> dict[str, Any]:
    return {
        "message": "Photo Delivery Pipeline",
        "endpoints": {
            "create_export": "/api/projects/{project_id}/exports",
            "export_status": "/api/exports/{job_id}",
        },
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check."""
    return {"status": "ok"}


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
