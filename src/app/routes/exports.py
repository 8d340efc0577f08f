"""
Exports Routes: electronic delivery export jobs.

- POST /api/projects/{project_id}/exports → create + schedule (202)
- GET  /api/exports/{job_id}              → job status
- POST /api/exports/{job_id}/cancel       → request cancellation
- GET  /api/exports/{job_id}/report       → validation report
- GET  /api/exports/{job_id}/download     → deliverable (ZIP)
"""

import json
import zipfile
from io import BytesIO
from pathlib import Path
from typing import Any

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, StreamingResponse

from src.app.services.export_jobs import ExportJobService
from src.domain.constants import get_mime_type
from src.domain.errors import ErrorCodes, PolicyRejectError

api_router = APIRouter()  # API endpoints

USER_HEADER = "X-User-Id"

STATUS_BY_CODE = {
    ErrorCodes.JOB_NOT_FOUND: 404,
    ErrorCodes.JOB_TERMINAL: 409,
    ErrorCodes.CONFIG_INVALID: 400,
    ErrorCodes.INVALID_SNAPSHOT: 400,
}


def get_service(request: Request) -> ExportJobService:
    """Export service from app state."""
    return request.app.state.export_service


def _http_error(error: PolicyRejectError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_CODE.get(error.code, 400),
        detail={"code": error.code, "message": str(error), **error.to_dict()},
    )


# =============================================================================
# Create
# =============================================================================

@api_router.post("/projects/{project_id}/exports", status_code=202)
async def create_export(
    request: Request,
    project_id: str,
    background_tasks: BackgroundTasks,
) -> dict[str, Any]:
    """
    Start an export for a project.

    Body: export manifest (options, metadata, photos, drawings).
    """
    authorizer = request.app.state.authorizer
    user = request.headers.get(USER_HEADER)
    if not authorizer(user, project_id):
        raise HTTPException(
            status_code=403,
            detail={"code": "FORBIDDEN", "message": f"Export not allowed for project '{project_id}'"},
        )

    try:
        payload = await request.json()
    except json.JSONDecodeError as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_JSON", "message": str(e)},
        ) from e
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_JSON", "message": "Request body must be an object"},
        )

    service = get_service(request)
    try:
        job = service.create_job(project_id, payload)
    except PolicyRejectError as e:
        raise _http_error(e) from e

    background_tasks.add_task(service.run_job, job.job_id)

    return {
        "job_id": job.job_id,
        "status_url": f"/api/exports/{job.job_id}",
        "state": job.step.value,
    }


# =============================================================================
# Query
# =============================================================================

@api_router.get("/exports/{job_id}")
async def get_export(request: Request, job_id: str) -> dict[str, Any]:
    """Job status (state, progress, counters; report / archive once terminal)."""
    try:
        return get_service(request).get_status(job_id)
    except PolicyRejectError as e:
        raise _http_error(e) from e


@api_router.post("/exports/{job_id}/cancel")
async def cancel_export(request: Request, job_id: str) -> dict[str, Any]:
    try:
        job = get_service(request).cancel(job_id)
    except PolicyRejectError as e:
        raise _http_error(e) from e
    return {"job_id": job.job_id, "cancel_requested": job.cancel_requested}


@api_router.get("/exports/{job_id}/report")
async def get_export_report(request: Request, job_id: str) -> JSONResponse:
    try:
        status = get_service(request).get_status(job_id)
    except PolicyRejectError as e:
        raise _http_error(e) from e

    report = status.get("validation_report")
    if report is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "REPORT_NOT_AVAILABLE", "message": f"No validation report for '{job_id}'"},
        )
    return JSONResponse(content=report)


@api_router.get("/exports/{job_id}/download", response_model=None)
async def download_export(request: Request, job_id: str) -> FileResponse | StreamingResponse:
    """
    Deliverable download.

    ZIP jobs return the archive; folder jobs are zipped on the fly.
    """
    try:
        status = get_service(request).get_status(job_id)
    except PolicyRejectError as e:
        raise _http_error(e) from e

    archive_path = status.get("archive_path")
    if status.get("state") != "completed" or not archive_path:
        raise HTTPException(
            status_code=409,
            detail={"code": "NOT_COMPLETED", "message": f"Export '{job_id}' has no deliverable"},
        )

    path = Path(archive_path)
    if path.is_file():
        return FileResponse(path=path, filename=path.name, media_type=get_mime_type(path.name))

    if not path.is_dir():
        raise HTTPException(
            status_code=404,
            detail={"code": "NO_FILES", "message": "Deliverable no longer exists"},
        )

    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for file_path in sorted(p for p in path.rglob("*") if p.is_file()):
            zf.write(file_path, file_path.relative_to(path).as_posix())
    buffer.seek(0)

    return StreamingResponse(
        buffer,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{job_id}.zip"'},
    )
