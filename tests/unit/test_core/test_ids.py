"""
test_ids.py - export job / run id tests
"""

import re

from src.core.ids import _sanitize_for_id, generate_export_job_id, generate_run_id

JOB_ID_PATTERN = re.compile(r"^EXP-[A-Za-z0-9_]+-\d{14}-[0-9a-f]{8}$")


class TestGenerateExportJobId:
    def test_format(self):
        job_id = generate_export_job_id("P-001")
        assert JOB_ID_PATTERN.match(job_id)
        assert job_id.startswith("EXP-P_001-")

    def test_unique(self):
        assert len({generate_export_job_id("P-001") for _ in range(50)}) == 50

    def test_non_ascii_project(self):
        assert generate_export_job_id("工事").startswith("EXP-UNKNOWN-")


class TestGenerateRunId:
    def test_format(self):
        assert re.match(r"^RUN-\d{14}-[0-9a-f]{8}$", generate_run_id())


class TestSanitizeForId:
    def test_separators_collapsed(self):
        assert _sanitize_for_id("  road -- works__2024 ") == "road_works_2024"

    def test_truncated(self):
        assert len(_sanitize_for_id("x" * 50)) == 20

    def test_path_characters_dropped(self):
        assert _sanitize_for_id("../etc/passwd") == "etcpasswd"
