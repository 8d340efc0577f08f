"""
test_storage.py - binary storage collaborator tests
"""

import io
from pathlib import Path

import pytest

from src.core.storage import LocalBinaryStorage, copy_to_path


@pytest.fixture
def local_storage(tmp_path: Path) -> LocalBinaryStorage:
    base = tmp_path / "storage"
    (base / "photos").mkdir(parents=True)
    (base / "photos" / "a.jpg").write_bytes(b"jpeg bytes")
    return LocalBinaryStorage(base)


class TestLocalBinaryStorage:
    def test_open_stream(self, local_storage: LocalBinaryStorage):
        with local_storage.open_stream("photos/a.jpg") as f:
            assert f.read() == b"jpeg bytes"

    def test_missing_reference(self, local_storage: LocalBinaryStorage):
        with pytest.raises(FileNotFoundError):
            local_storage.open_stream("photos/missing.jpg")

    def test_reference_cannot_escape_root(self, local_storage: LocalBinaryStorage):
        with pytest.raises(ValueError):
            local_storage.resolve("../outside.jpg")
        assert not local_storage.exists("../outside.jpg")

    def test_exists(self, local_storage: LocalBinaryStorage):
        assert local_storage.exists("photos/a.jpg")
        assert not local_storage.exists("photos/b.jpg")


class TestCopyToPath:
    def test_copies_and_creates_parents(self, local_storage: LocalBinaryStorage, tmp_path: Path):
        dest = tmp_path / "staging" / "PHOTO" / "PIC" / "P0000001.JPG"
        written = copy_to_path(local_storage, "photos/a.jpg", dest)

        assert written == len(b"jpeg bytes")
        assert dest.read_bytes() == b"jpeg bytes"

    def test_partial_file_removed_on_failure(self, tmp_path: Path):
        class BrokenStream(io.RawIOBase):
            def readable(self):
                return True

            def readinto(self, buffer):
                raise OSError("disk went away")

        class BrokenStorage:
            def open_stream(self, binary_ref):
                return BrokenStream()

        dest = tmp_path / "out" / "P0000001.JPG"
        with pytest.raises(OSError):
            copy_to_path(BrokenStorage(), "x", dest)
        assert not dest.exists()
