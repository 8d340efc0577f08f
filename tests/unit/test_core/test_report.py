"""
test_report.py - delivery report tests
"""

import csv
import io
import json

import pytest

from src.core.folder_structure import assemble_folder_plan
from src.core.naming import FileNameGenerator
from src.core.photo_xml import build_metadata_document
from src.core.report import (
    CSV_HEADERS,
    build_delivery_report,
    format_file_size,
    format_photo_list_as_csv,
    format_report_as_json,
    format_report_as_text,
)
from src.core.validator import DeliveryValidator


@pytest.fixture
def report(sample_photos, sample_drawings, export_config):
    plan = assemble_folder_plan(sample_photos, sample_drawings, export_config, FileNameGenerator())
    document = build_metadata_document(plan, export_config)
    validation = DeliveryValidator().validate(document, plan)
    return build_delivery_report(plan, document, export_config.metadata, validation)


class TestFormatFileSize:
    @pytest.mark.parametrize(
        "size, expected",
        [
            (0, "0 B"),
            (512, "512 B"),
            (1536, "1.50 KB"),
            (5 * 1024 * 1024, "5.00 MB"),
            (3 * 1024 ** 3, "3.00 GB"),
        ],
    )
    def test_format(self, size: int, expected: str):
        assert format_file_size(size) == expected


class TestBuildDeliveryReport:
    def test_statistics(self, report):
        stats = report.statistics
        assert stats.photo_count == 5
        assert stats.drawing_count == 1
        assert stats.xml_count == 2
        assert stats.total_files == 8
        assert stats.total_size == 5 * 2048 + 4096
        assert stats.representative_photo_count == 1

    def test_folders_and_files(self, report):
        assert report.folders == ["PHOTO", "PHOTO/PIC", "PHOTO/DRA"]
        assert report.files[:2] == ["INDEX_D.XML", "PHOTO/PHOTO.XML"]
        assert "PHOTO/DRA/D0000001.PDF" in report.files

    def test_photo_list(self, report):
        first = report.photo_list[0]
        assert first.number == 1
        assert first.delivery_file_name == "P0000001.JPG"
        assert first.original_file_name == "ph-3.jpg"
        assert first.file_size_formatted == "2.00 KB"

    def test_validation_summary(self, report):
        assert report.validation_summary.is_valid
        assert report.validation_summary.error_count == 0

    def test_without_validation(self, sample_photos, export_config):
        plan = assemble_folder_plan(sample_photos, [], export_config, FileNameGenerator())
        document = build_metadata_document(plan, export_config)
        report = build_delivery_report(plan, document, export_config.metadata)
        assert report.validation_summary is None
        assert report.folders == ["PHOTO", "PHOTO/PIC"]


class TestRenderers:
    def test_text(self, report):
        text = format_report_as_text(report)
        assert "Construction name: 国道1号 道路改良工事" in text
        assert "Total files: 8" in text
        assert "Result: PASS" in text
        assert "3*" in text  # ph-1 is the representative photo
        assert "* = representative photo" in text

    def test_json(self, report):
        data = json.loads(format_report_as_json(report))
        assert data["statistics"]["photo_count"] == 5
        assert data["construction_info"]["contractor_name"] == "テスト建設株式会社"
        assert len(data["photo_list"]) == 5

    def test_csv(self, report):
        rows = list(csv.reader(io.StringIO(format_photo_list_as_csv(report))))
        assert rows[0] == CSV_HEADERS
        assert len(rows) == 6
        assert rows[3][1] == "P0000003.JPG"
        assert rows[3][8] == "Yes"
        assert rows[1][8] == "No"
