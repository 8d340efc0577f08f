"""
test_hashing.py - document / file hash tests
"""

from pathlib import Path

from src.core.folder_structure import assemble_folder_plan
from src.core.hashing import compute_data_hash, compute_document_hash, compute_file_hash
from src.core.naming import FileNameGenerator
from src.core.photo_xml import build_metadata_document


class TestComputeDataHash:
    def test_key_order_independent(self):
        assert compute_data_hash({"a": 1, "b": 2}) == compute_data_hash({"b": 2, "a": 1})

    def test_value_sensitive(self):
        assert compute_data_hash({"a": 1}) != compute_data_hash({"a": 2})

    def test_sha256_hex(self):
        digest = compute_data_hash({"title": "着工前"})
        assert len(digest) == 64
        int(digest, 16)


class TestComputeDocumentHash:
    def test_same_input_same_hash(self, sample_photos, sample_drawings, export_config):
        def document_hash() -> str:
            plan = assemble_folder_plan(sample_photos, sample_drawings, export_config, FileNameGenerator())
            return compute_document_hash(build_metadata_document(plan, export_config))

        assert document_hash() == document_hash()

    def test_different_selection_changes_hash(self, sample_photos, export_config):
        plan = assemble_folder_plan(sample_photos, [], export_config, FileNameGenerator())
        smaller = assemble_folder_plan(sample_photos[:-1], [], export_config, FileNameGenerator())
        assert compute_document_hash(build_metadata_document(plan, export_config)) != compute_document_hash(
            build_metadata_document(smaller, export_config)
        )


class TestComputeFileHash:
    def test_known_digest(self, tmp_path: Path):
        path = tmp_path / "a.bin"
        path.write_bytes(b"abc")
        assert compute_file_hash(path) == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_algorithm(self, tmp_path: Path):
        path = tmp_path / "a.bin"
        path.write_bytes(b"abc")
        assert compute_file_hash(path, "md5") == "900150983cd24fb0d6963f7d28e17f72"
