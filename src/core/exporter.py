"""
Export Orchestrator: drives one ExportJob through an explicit step table.

State machine (strictly forward):
    preparing → creating-folders → copying-photos → generating-xml
    → validating → creating-archive → completed
Any step may move to failed. completed / failed are terminal and never resumed.

Rules:
- The orchestrator is the only place that turns an exception into a failed job
- Sequence numbers are fixed by the folder plan before any transfer starts
- Copy fan-out is bounded by an asyncio.Semaphore; counters are updated per item
- Cancellation is observed between steps and between copied items
- One FileNameGenerator / validator per orchestrator (never shared across jobs)
"""

import asyncio
import logging
import shutil
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from src.core.archive import create_deliverable
from src.core.categories import ClassificationCodes, default_classification_codes
from src.core.folder_structure import assemble_folder_plan, check_sequence_capacity
from src.core.hashing import compute_document_hash
from src.core.ids import generate_export_job_id
from src.core.index_xml import build_index_info, serialize_index_xml
from src.core.logging import (
    complete_run_log,
    create_run_log,
    emit_validation_warnings,
    emit_warning,
    record_step,
    save_run_log,
)
from src.core.naming import FileNameGenerator
from src.core.photo_xml import build_metadata_document, serialize_to_xml
from src.core.report import (
    build_delivery_report,
    format_photo_list_as_csv,
    format_report_as_text,
)
from src.core.ssot_job import (
    DEFAULT_LOCK_TIMEOUT,
    async_output_lock,
    deliverables_dir_for,
    job_dir_for,
    logs_dir_for,
    staging_dir_for,
    write_job_json,
)
from src.core.storage import BinaryStorage, copy_to_path
from src.core.validator import DeliveryValidator
from src.domain.constants import (
    INDEX_XML_FILENAME,
    REPORT_CSV_FILENAME,
    REPORT_TEXT_FILENAME,
    REPORT_XLSX_FILENAME,
)
from src.domain.errors import ErrorCodes, ExportCancelledError, PolicyRejectError
from src.domain.schemas import (
    ClassifiedDrawing,
    ClassifiedPhoto,
    DeliveryFileEntry,
    ExportConfig,
    ExportJob,
    ExportProgress,
    ExportStep,
    FolderPlan,
    JobResult,
    OutputFormat,
    PackageMetadataDocument,
)
from src.render.excel import render_photo_ledger
from src.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ExportProgress], None]
StepHandler = Callable[[], Awaitable[None]]

STEP_ORDER = (
    ExportStep.PREPARING,
    ExportStep.CREATING_FOLDERS,
    ExportStep.COPYING_PHOTOS,
    ExportStep.GENERATING_XML,
    ExportStep.VALIDATING,
    ExportStep.CREATING_ARCHIVE,
    ExportStep.COMPLETED,
)

TOTAL_STEPS = len(STEP_ORDER) - 1  # completed is not a working step


def _now() -> str:
    return datetime.now(UTC).isoformat()


class ExportOrchestrator:
    """
    Runs one export job.

    Usage:
        orchestrator = ExportOrchestrator(config, storage, exports_root, photos, drawings)
        job = await orchestrator.run()

    The photo / drawing collections are taken as an immutable snapshot at
    construction time.
    """

    def __init__(
        self,
        config: ExportConfig,
        storage: BinaryStorage,
        output_root: Path,
        photos: Sequence[ClassifiedPhoto],
        drawings: Sequence[ClassifiedDrawing] = (),
        classification_codes: ClassificationCodes | None = None,
        on_progress: ProgressCallback | None = None,
        job_id: str | None = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self.job = ExportJob(
            job_id=job_id or generate_export_job_id(config.project_id),
            config=config,
            created_at=_now(),
        )
        self.job_dir = job_dir_for(output_root, self.job.job_id)
        self.run_log = create_run_log(self.job.job_id)

        self._storage = storage
        self._photos: tuple[ClassifiedPhoto, ...] = tuple(photos)
        self._drawings: tuple[ClassifiedDrawing, ...] = tuple(drawings)
        self._codes = classification_codes or default_classification_codes()
        self._on_progress = on_progress
        self._lock_timeout = lock_timeout

        self._generator = FileNameGenerator()
        self._validator = DeliveryValidator(
            recognized_codes=self._codes,
            max_file_size_mb=config.max_file_size_mb,
        )

        self._started = False
        self._output_format = OutputFormat.ZIP
        self._selected_photos: tuple[ClassifiedPhoto, ...] = ()
        self._plan: FolderPlan | None = None
        self._document: PackageMetadataDocument | None = None
        self._xml_text: str | None = None

        self._steps: list[tuple[ExportStep, StepHandler]] = [
            (ExportStep.PREPARING, self._prepare),
            (ExportStep.CREATING_FOLDERS, self._create_folders),
            (ExportStep.COPYING_PHOTOS, self._copy_files),
            (ExportStep.GENERATING_XML, self._generate_xml),
            (ExportStep.VALIDATING, self._validate),
            (ExportStep.CREATING_ARCHIVE, self._create_archive),
        ]

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def plan(self) -> FolderPlan | None:
        return self._plan

    @property
    def document(self) -> PackageMetadataDocument | None:
        return self._document

    @property
    def staging_dir(self) -> Path:
        return staging_dir_for(self.job_dir)

    def cancel(self) -> None:
        """Request cancellation; observed at the next step or item boundary."""
        if self.job.is_terminal:
            return
        self.job.cancel_requested = True
        logger.info(f"Cancellation requested for {self.job.job_id}")

    async def run(self) -> ExportJob:
        """
        Execute the step table.

        Returns:
            the job in a terminal state

        Raises:
            PolicyRejectError: JOB_TERMINAL when the job already ran
        """
        if self._started or self.job.is_terminal:
            raise PolicyRejectError(
                ErrorCodes.JOB_TERMINAL,
                job_id=self.job.job_id,
                state=self.job.step.value,
            )
        self._started = True

        try:
            async with async_output_lock(self.job_dir, timeout=self._lock_timeout):
                await self._execute()
        except PolicyRejectError as e:
            # Only the lock acquisition reaches here; _execute handles the rest
            self._fail(e.code, str(e), e.context)
            self._persist()

        return self.job

    # =========================================================================
    # Step Driver
    # =========================================================================

    async def _execute(self) -> None:
        try:
            for index, (step, handler) in enumerate(self._steps):
                self._check_cancelled()
                self._enter_step(step)
                await handler()
                self.job.completed_steps = index + 1
            self._complete()

        except ExportCancelledError:
            self._fail(ErrorCodes.CANCELLED, "Export was cancelled", None)
        except asyncio.CancelledError:
            # Caller-imposed timeout or shutdown counts as cancellation
            self._fail(ErrorCodes.CANCELLED, "Export task was cancelled", None)
            raise
        except PolicyRejectError as e:
            self._fail(e.code, str(e), e.context)
        except Exception as e:
            logger.exception(f"Unexpected error in step {self.job.step.value}")
            self._fail(
                ErrorCodes.INTERNAL_ERROR,
                f"{type(e).__name__}: {e}",
                {"step": self.job.step.value},
            )
        finally:
            self._persist()

    def _enter_step(self, step: ExportStep) -> None:
        if STEP_ORDER.index(step) < STEP_ORDER.index(self.job.step):
            raise RuntimeError(f"Backward transition {self.job.step.value} → {step.value}")

        self.job.step = step
        self.job.progress_percent = self._percent()
        record_step(
            self.run_log,
            step.value,
            processed_files=self.job.processed_files,
            total_files=self.job.total_files,
        )
        logger.info(f"[{self.job.job_id}] step → {step.value}")
        self._emit_progress()
        write_job_json(self.job_dir, self.job)

    def _check_cancelled(self) -> None:
        if self.job.cancel_requested:
            raise ExportCancelledError(self.job.job_id)

    def _require_plan(self) -> FolderPlan:
        if self._plan is None:
            raise RuntimeError(f"No folder plan before step {self.job.step.value}")
        return self._plan

    def _require_document(self) -> PackageMetadataDocument:
        if self._document is None:
            raise RuntimeError(f"No metadata document before step {self.job.step.value}")
        return self._document

    def _complete(self) -> None:
        self.job.step = ExportStep.COMPLETED
        self.job.result = JobResult.SUCCEEDED
        self.job.completed_steps = TOTAL_STEPS
        self.job.progress_percent = 100
        self.job.current_file = None
        self.job.finished_at = _now()

        record_step(
            self.run_log,
            ExportStep.COMPLETED.value,
            processed_files=self.job.processed_files,
            total_files=self.job.total_files,
        )
        complete_run_log(self.run_log, success=True, document_hash=self.job.document_hash)
        logger.info(f"[{self.job.job_id}] completed: {self.job.archive_path}")
        self._emit_progress()

    def _fail(self, code: str, reason: str, context: dict | None) -> None:
        """Terminal failure; progress counters are kept as they were."""
        if self.job.is_terminal:
            return

        self.job.failed_step = self.job.step
        self.job.step = ExportStep.FAILED
        self.job.result = JobResult.FAILED
        self.job.failure_code = code
        self.job.failure_reason = reason
        self.job.finished_at = _now()

        record_step(
            self.run_log,
            ExportStep.FAILED.value,
            processed_files=self.job.processed_files,
            total_files=self.job.total_files,
            message=reason,
        )
        complete_run_log(
            self.run_log,
            success=False,
            document_hash=self.job.document_hash,
            error_code=code,
            error_context={
                "failed_step": self.job.failed_step.value,
                **{k: str(v) for k, v in (context or {}).items()},
            },
        )
        logger.warning(
            f"[{self.job.job_id}] failed in {self.job.failed_step.value}: [{code}] {reason}"
        )
        self._emit_progress()

    def _persist(self) -> None:
        write_job_json(self.job_dir, self.job)
        save_run_log(self.run_log, logs_dir_for(self.job_dir))

    # =========================================================================
    # Progress
    # =========================================================================

    def _percent(self) -> int:
        done = float(self.job.completed_steps)
        if self.job.step == ExportStep.COPYING_PHOTOS and self.job.total_files:
            done += self.job.processed_files / self.job.total_files
        return min(99, int(done / TOTAL_STEPS * 100))

    def _emit_progress(self) -> None:
        if self._on_progress is None:
            return
        snapshot = ExportProgress(
            job_id=self.job.job_id,
            step=self.job.step,
            completed_steps=self.job.completed_steps,
            total_steps=TOTAL_STEPS,
            progress_percent=self.job.progress_percent,
            processed_files=self.job.processed_files,
            total_files=self.job.total_files,
            current_file=self.job.current_file,
        )
        try:
            self._on_progress(snapshot)
        except Exception as e:
            # Listeners never change the job outcome
            logger.warning(f"Progress callback failed for {self.job.job_id}: {e}")

    # =========================================================================
    # Step Handlers
    # =========================================================================

    async def _prepare(self) -> None:
        """Configuration completeness, selection, sequence feasibility."""
        config = self.job.config

        try:
            self._output_format = OutputFormat(config.output_format)
        except ValueError as e:
            raise PolicyRejectError(
                ErrorCodes.CONFIG_INVALID,
                field="output_format",
                value=config.output_format,
            ) from e

        required = {
            "project_id": config.project_id,
            "standard_version": config.standard_version,
            "metadata.construction_name": config.metadata.construction_name,
            "metadata.contractor_name": config.metadata.contractor_name,
        }
        for field_name, value in required.items():
            if not value or not str(value).strip():
                raise PolicyRejectError(ErrorCodes.CONFIG_INVALID, field=field_name)

        if config.max_copy_retries < 0:
            raise PolicyRejectError(
                ErrorCodes.CONFIG_INVALID,
                field="max_copy_retries",
                value=config.max_copy_retries,
            )
        if config.copy_concurrency < 1:
            raise PolicyRejectError(
                ErrorCodes.CONFIG_INVALID,
                field="copy_concurrency",
                value=config.copy_concurrency,
            )

        if config.photo_ids is not None:
            wanted = set(config.photo_ids)
            self._selected_photos = tuple(p for p in self._photos if p.id in wanted)
        else:
            self._selected_photos = self._photos

        if not self._selected_photos:
            raise PolicyRejectError(
                ErrorCodes.NO_PHOTOS_SELECTED,
                project_id=config.project_id,
            )

        drawings = self._drawings if config.include_drawing_folder else ()
        check_sequence_capacity(len(self._selected_photos), len(drawings))

        self.job.total_files = len(self._selected_photos) + len(drawings)

    async def _create_folders(self) -> None:
        self._plan = assemble_folder_plan(
            self._selected_photos,
            self._drawings,
            self.job.config,
            self._generator,
            self._codes,
        )

        staging = self.staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        (staging / self._plan.photo_folder_path).mkdir(parents=True)
        if self._plan.drawing_folder_path:
            (staging / self._plan.drawing_folder_path).mkdir(parents=True)

        self.job.total_files = len(self._plan.all_entries())

    async def _copy_files(self) -> None:
        plan = self._require_plan()
        semaphore = asyncio.Semaphore(self.job.config.copy_concurrency)
        tasks = [
            asyncio.create_task(self._copy_entry(entry, semaphore))
            for entry in plan.all_entries()
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _copy_entry(self, entry: DeliveryFileEntry, semaphore: asyncio.Semaphore) -> None:
        config = self.job.config
        dest = self.staging_dir / entry.relative_path

        async def attempt() -> int:
            return await asyncio.to_thread(copy_to_path, self._storage, entry.binary_ref, dest)

        def on_retry(attempt_no: int, error: Exception) -> None:
            emit_warning(
                self.run_log,
                code="COPY_RETRY",
                action_id="copying-photos",
                target=entry.delivery_name,
                message=f"attempt {attempt_no} failed: {error}",
            )

        async with semaphore:
            self._check_cancelled()
            try:
                await retry_with_exponential_backoff(
                    attempt,
                    max_retries=config.max_copy_retries,
                    initial_delay=config.retry_initial_delay,
                    exceptions=(OSError,),
                    on_retry=on_retry,
                    give_up_on=(FileNotFoundError,),
                )
            except OSError as e:
                raise PolicyRejectError(
                    ErrorCodes.COPY_FAILED,
                    file=entry.delivery_name,
                    source=entry.original_file_name,
                    attempts=1 if isinstance(e, FileNotFoundError) else config.max_copy_retries + 1,
                    error=str(e),
                ) from e

            # No await between these updates: atomic per item
            self.job.processed_files += 1
            self.job.current_file = entry.delivery_name
            self.job.progress_percent = self._percent()
            self._emit_progress()

    async def _generate_xml(self) -> None:
        plan = self._require_plan()
        config = self.job.config

        self._document = build_metadata_document(plan, config)
        self._xml_text = serialize_to_xml(self._document)
        self.job.document_hash = compute_document_hash(self._document)

        index_info = build_index_info(config.metadata, config, plan.root_folder_name)
        await asyncio.to_thread(
            _write_texts,
            {
                self.staging_dir / plan.metadata_path: self._xml_text,
                self.staging_dir / INDEX_XML_FILENAME: serialize_index_xml(index_info),
            },
        )

    async def _validate(self) -> None:
        report = self._validator.validate(
            self._require_document(), self._require_plan(), self._xml_text
        )
        self.job.validation_report = report
        emit_validation_warnings(self.run_log, report)

        if not report.is_valid:
            raise PolicyRejectError(
                ErrorCodes.VALIDATION_FAILED,
                errors=len(report.errors),
                warnings=len(report.warnings),
            )
        if report.warnings and not self.job.config.allow_warnings:
            raise PolicyRejectError(
                ErrorCodes.VALIDATION_FAILED,
                errors=0,
                warnings=len(report.warnings),
                allow_warnings=False,
            )

    async def _create_archive(self) -> None:
        if self.job.config.include_report:
            await asyncio.to_thread(self._write_reports)

        try:
            path = await asyncio.to_thread(
                create_deliverable,
                self.staging_dir,
                deliverables_dir_for(self.job_dir),
                self.job.job_id,
                self._output_format,
            )
        except PolicyRejectError:
            raise
        except OSError as e:
            raise PolicyRejectError(ErrorCodes.ARCHIVE_FAILED, error=str(e)) from e

        if self._output_format == OutputFormat.ZIP:
            await asyncio.to_thread(shutil.rmtree, self.staging_dir, ignore_errors=True)

        self.job.archive_path = str(path)

    def _write_reports(self) -> None:
        """Runs in a worker thread."""
        report = build_delivery_report(
            self._require_plan(),
            self._require_document(),
            self.job.config.metadata,
            self.job.validation_report,
        )
        staging = self.staging_dir
        _write_texts({
            staging / REPORT_TEXT_FILENAME: format_report_as_text(report),
            staging / REPORT_CSV_FILENAME: format_photo_list_as_csv(report),
        })
        render_photo_ledger(report, staging / REPORT_XLSX_FILENAME)


def _write_texts(files: dict[Path, str]) -> None:
    for path, text in files.items():
        path.write_text(text, encoding="utf-8")


async def run_export(
    config: ExportConfig,
    storage: BinaryStorage,
    output_root: Path,
    photos: Sequence[ClassifiedPhoto],
    drawings: Sequence[ClassifiedDrawing] = (),
    classification_codes: ClassificationCodes | None = None,
    on_progress: ProgressCallback | None = None,
) -> ExportJob:
    """One-shot helper: build an orchestrator and run it."""
    orchestrator = ExportOrchestrator(
        config,
        storage,
        output_root,
        photos,
        drawings,
        classification_codes=classification_codes,
        on_progress=on_progress,
    )
    return await orchestrator.run()
