"""
test_export_pipeline.py - end-to-end pipeline flow (core layer)

Checks:
- Manifest → snapshot → orchestrator → ZIP deliverable
- PHOTO.XML inside the archive agrees with the delivered files
- job.json / run log stay consistent with the returned job
- Retention cleanup removes the finished job folder
"""

import sys
import zipfile
from datetime import UTC, datetime, timedelta
from pathlib import Path
from xml.etree import ElementTree as ET

import pytest

from src.core.exporter import ExportOrchestrator
from src.core.folder_structure import assemble_folder_plan
from src.core.hashing import compute_document_hash
from src.core.logging import list_run_logs, load_run_log
from src.core.manifest import build_export_config, parse_snapshot
from src.core.naming import FileNameGenerator, is_valid_photo_file_name
from src.core.photo_xml import build_metadata_document, serialize_to_xml
from src.core.ssot_job import load_job_json
from src.domain.schemas import JobResult

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "scripts"))

from purge_exports import purge_exports  # noqa: E402


@pytest.fixture
def pipeline_job(export_payload, fast_settings, storage, exports_root, classification_codes):
    """Completed export built from the sample manifest."""
    config = build_export_config("P-001", export_payload, fast_settings)
    photos, drawings = parse_snapshot(export_payload)
    orchestrator = ExportOrchestrator(
        config, storage, exports_root, photos, drawings,
        classification_codes=classification_codes,
    )
    return orchestrator, photos, drawings


class TestExportPipeline:
    @pytest.mark.asyncio
    async def test_archive_agrees_with_metadata(self, pipeline_job):
        orchestrator, _, _ = pipeline_job
        job = await orchestrator.run()
        assert job.result == JobResult.SUCCEEDED

        with zipfile.ZipFile(job.archive_path) as zf:
            names = set(zf.namelist())
            root = ET.fromstring(zf.read("PHOTO/PHOTO.XML"))
            index_root = ET.fromstring(zf.read("INDEX_D.XML"))

        photos = root.findall("photoList/photo")
        assert [p.findtext("photoNumber") for p in photos] == ["1", "2", "3", "4", "5"]
        for photo in photos:
            file_name = photo.findtext("photoFileName")
            assert is_valid_photo_file_name(file_name)
            assert f"PHOTO/PIC/{file_name}" in names

        linked = [p for p in photos if p.findtext("hasDrawing") == "1"]
        assert len(linked) == 1
        assert f"PHOTO/DRA/{linked[0].findtext('drawingFileName')}" in names

        assert root.findtext("commonInformation/applicableStandard")
        assert index_root is not None

    @pytest.mark.asyncio
    async def test_document_matches_offline_build(self, pipeline_job, classification_codes):
        orchestrator, photos, drawings = pipeline_job
        job = await orchestrator.run()

        plan = assemble_folder_plan(photos, drawings, job.config, FileNameGenerator(), classification_codes)
        document = build_metadata_document(plan, job.config)

        assert compute_document_hash(document) == job.document_hash
        with zipfile.ZipFile(job.archive_path) as zf:
            assert zf.read("PHOTO/PHOTO.XML").decode("utf-8") == serialize_to_xml(document)

    @pytest.mark.asyncio
    async def test_job_records_consistent(self, pipeline_job):
        orchestrator, _, _ = pipeline_job
        job = await orchestrator.run()

        status = load_job_json(orchestrator.job_dir / "job.json")
        assert status["job_id"] == job.job_id
        assert status["state"] == "completed"
        assert status["archive_path"] == job.archive_path

        run_log = load_run_log(list_run_logs(orchestrator.job_dir / "logs")[0])
        assert run_log["job_id"] == job.job_id
        assert run_log["document_hash"] == job.document_hash

    @pytest.mark.asyncio
    async def test_retention_cleanup(self, pipeline_job, exports_root):
        orchestrator, _, _ = pipeline_job
        await orchestrator.run()

        result = purge_exports(
            exports_root,
            retention_days=30,
            execute=True,
            now=datetime.now(UTC) + timedelta(days=31),
        )

        assert result.purged_jobs == 1
        assert not orchestrator.job_dir.exists()
