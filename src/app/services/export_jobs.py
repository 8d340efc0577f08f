"""
Export Job Service: job registry for the HTTP surface.

Rules:
- Authorization is decided by the route before a job is created
- One orchestrator per job; jobs never share generator / validator state
- Finished jobs leave memory; their status is served from job.json
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from src.core.categories import ClassificationCodes
from src.core.exporter import ExportOrchestrator
from src.core.manifest import build_export_config, parse_snapshot
from src.core.ssot_job import DEFAULT_LOCK_TIMEOUT, job_dir_for, load_job_json
from src.core.storage import BinaryStorage
from src.domain.constants import JOB_JSON_FILENAME
from src.domain.errors import ErrorCodes, PolicyRejectError
from src.domain.schemas import ExportJob, ExportStep

logger = logging.getLogger(__name__)

TERMINAL_STATES = (ExportStep.COMPLETED.value, ExportStep.FAILED.value)


class ExportJobService:
    """
    In-process registry of export jobs.

    Usage:
        service = ExportJobService(exports_root, storage, codes, settings)
        job = service.create_job("P-001", body)
        await service.run_job(job.job_id)
    """

    def __init__(
        self,
        exports_root: Path,
        storage: BinaryStorage,
        classification_codes: ClassificationCodes | None = None,
        settings: dict[str, Any] | None = None,
    ):
        self.exports_root = exports_root
        self.storage = storage
        self.classification_codes = classification_codes
        self.settings = settings or {}
        self._orchestrators: dict[str, ExportOrchestrator] = {}
        self._tasks: dict[str, asyncio.Task[ExportJob]] = {}

    def create_job(self, project_id: str, payload: dict[str, Any]) -> ExportJob:
        """
        Register a job from a request body (not yet running).

        Raises:
            PolicyRejectError: CONFIG_INVALID, INVALID_SNAPSHOT
        """
        config = build_export_config(project_id, payload, self.settings)
        photos, drawings = parse_snapshot(payload)

        orchestrator = ExportOrchestrator(
            config,
            self.storage,
            self.exports_root,
            photos,
            drawings,
            classification_codes=self.classification_codes,
            lock_timeout=float(
                self.settings.get("export", {}).get("lock_timeout", DEFAULT_LOCK_TIMEOUT)
            ),
        )
        self._orchestrators[orchestrator.job.job_id] = orchestrator
        logger.info(
            f"Created export job {orchestrator.job.job_id} for project {project_id} "
            f"({len(photos)} photos, {len(drawings)} drawings)"
        )
        return orchestrator.job

    async def run_job(self, job_id: str) -> ExportJob:
        """
        Run a registered job; once terminal it is dropped from memory and
        served from job.json.
        """
        orchestrator = self._get_orchestrator(job_id)
        task = asyncio.ensure_future(orchestrator.run())
        self._tasks[job_id] = task
        try:
            return await task
        finally:
            self._tasks.pop(job_id, None)
            if orchestrator.job.is_terminal:
                self._orchestrators.pop(job_id, None)
                logger.debug(f"Evicted finished export job {job_id}")

    def get_job(self, job_id: str) -> ExportJob | None:
        """In-memory job (pending or running), None otherwise."""
        orchestrator = self._orchestrators.get(job_id)
        return orchestrator.job if orchestrator else None

    def get_status(self, job_id: str) -> dict[str, Any]:
        """
        Status payload for a job.

        Raises:
            PolicyRejectError: JOB_NOT_FOUND, JOB_JSON_CORRUPT
        """
        job = self.get_job(job_id)
        if job is not None:
            return job.to_status()
        return self._load_persisted(job_id)

    def cancel(self, job_id: str) -> ExportJob:
        """
        Raises:
            PolicyRejectError: JOB_NOT_FOUND, JOB_TERMINAL
        """
        orchestrator = self._orchestrators.get(job_id)
        if orchestrator is None:
            status = self._load_persisted(job_id)
            if status.get("state") not in TERMINAL_STATES:
                # Owned by another process
                raise PolicyRejectError(ErrorCodes.JOB_NOT_FOUND, job_id=job_id)
            raise PolicyRejectError(
                ErrorCodes.JOB_TERMINAL,
                job_id=job_id,
                state=status.get("state"),
            )
        if orchestrator.job.is_terminal:
            raise PolicyRejectError(
                ErrorCodes.JOB_TERMINAL,
                job_id=job_id,
                state=orchestrator.job.step.value,
            )
        orchestrator.cancel()
        return orchestrator.job

    async def shutdown(self) -> None:
        """Cancel every running job (application shutdown)."""
        for orchestrator in list(self._orchestrators.values()):
            if not orchestrator.job.is_terminal:
                orchestrator.cancel()
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _get_orchestrator(self, job_id: str) -> ExportOrchestrator:
        orchestrator = self._orchestrators.get(job_id)
        if orchestrator is None:
            raise PolicyRejectError(ErrorCodes.JOB_NOT_FOUND, job_id=job_id)
        return orchestrator

    def _load_persisted(self, job_id: str) -> dict[str, Any]:
        job_json_path = job_dir_for(self.exports_root, job_id) / JOB_JSON_FILENAME
        if not job_json_path.is_file():
            raise PolicyRejectError(ErrorCodes.JOB_NOT_FOUND, job_id=job_id)
        return load_job_json(job_json_path)
