"""
Pytest fixtures for the delivery pipeline tests.

Layout:
- Input snapshots (photos / drawings) mirroring a small road-works project
- Local binary storage with fake image bytes
- Export configuration with fast retry settings
"""

import io
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import BinaryIO

import pytest
import yaml

from src.core.categories import ClassificationCodes, load_classification_codes
from src.core.naming import FileNameGenerator
from src.core.storage import LocalBinaryStorage
from src.domain.schemas import (
    ClassifiedDrawing,
    ClassifiedPhoto,
    ExportConfig,
    ExportMetadata,
    GeoLocation,
)

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Project root."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config(project_root: Path) -> dict:
    """default.yaml as loaded by the app."""
    with open(project_root / "default.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def classification_codes(project_root: Path) -> ClassificationCodes:
    """Recognized codes from standard.yaml."""
    return load_classification_codes(project_root / "standard.yaml")


# =============================================================================
# Snapshot Fixtures
# =============================================================================

def make_photo(
    photo_id: str,
    category: str = "施工状況",
    shooting_date: date | None = date(2024, 4, 1),
    **overrides,
) -> ClassifiedPhoto:
    """Complete photo with every recommended field set."""
    values = {
        "id": photo_id,
        "binary_ref": f"photos/{photo_id}.jpg",
        "file_name": f"{photo_id}.jpg",
        "major_category": "工事写真",
        "category": category,
        "title": f"写真 {photo_id}",
        "construction_type": "道路土工",
        "work_type": "掘削工",
        "detail_type": "土砂掘削",
        "shooting_location": "No.10+5.0",
        "shooting_date": shooting_date,
        "location": GeoLocation(latitude=35.681236, longitude=139.767125),
        "file_size": 2048,
    }
    values.update(overrides)
    return ClassifiedPhoto(**values)


@pytest.fixture
def photo_factory() -> Callable[..., ClassifiedPhoto]:
    return make_photo


@pytest.fixture
def sample_photos() -> list[ClassifiedPhoto]:
    """
    Five photos in deliberately shuffled input order.

    Delivery order follows the master category list, then shooting date:
    ph-3 (着工前), ph-5 (完成), ph-1 / ph-4 / ph-2 (施工状況 04-01, 04-02, 04-03).
    """
    return [
        make_photo("ph-1", "施工状況", date(2024, 4, 1), is_representative=True),
        make_photo("ph-2", "施工状況", date(2024, 4, 3)),
        make_photo("ph-3", "着工前", date(2024, 3, 15)),
        make_photo("ph-4", "施工状況", date(2024, 4, 2), drawing_id="dr-1"),
        make_photo("ph-5", "完成", date(2024, 5, 31)),
    ]


@pytest.fixture
def sample_drawings() -> list[ClassifiedDrawing]:
    return [
        ClassifiedDrawing(
            id="dr-1",
            binary_ref="drawings/dr-1.pdf",
            file_name="plan.pdf",
            title="平面図",
            file_size=4096,
        ),
    ]


@pytest.fixture
def export_metadata() -> ExportMetadata:
    return ExportMetadata(
        construction_name="国道1号 道路改良工事",
        contractor_name="テスト建設株式会社",
        orderer_name="関東地方整備局",
        construction_start_date="2024-03-01",
        construction_end_date="2024-06-30",
    )


@pytest.fixture
def export_config(export_metadata: ExportMetadata) -> ExportConfig:
    """Fast retries so that failure tests do not sleep."""
    return ExportConfig(
        project_id="P-001",
        metadata=export_metadata,
        retry_initial_delay=0.0,
    )


@pytest.fixture
def generator() -> FileNameGenerator:
    return FileNameGenerator()


# =============================================================================
# Storage Fixtures
# =============================================================================

@pytest.fixture
def storage_dir(
    tmp_path: Path,
    sample_photos: list[ClassifiedPhoto],
    sample_drawings: list[ClassifiedDrawing],
) -> Path:
    """Storage tree holding fake bytes for every sample binary_ref."""
    root = tmp_path / "storage"
    for item in [*sample_photos, *sample_drawings]:
        path = root / item.binary_ref
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(f"fake bytes of {item.id}".encode())
    return root


@pytest.fixture
def storage(storage_dir: Path) -> LocalBinaryStorage:
    return LocalBinaryStorage(storage_dir)


@pytest.fixture
def exports_root(tmp_path: Path) -> Path:
    root = tmp_path / "exports"
    root.mkdir()
    return root


class FlakyStorage:
    """
    In-memory storage that fails selected references.

    failures: binary_ref → number of failing attempts before success
              (a negative number fails forever)
    """

    def __init__(self, data: dict[str, bytes], failures: dict[str, int] | None = None):
        self.data = data
        self.failures = dict(failures or {})
        self.calls: list[str] = []

    def open_stream(self, binary_ref: str) -> BinaryIO:
        self.calls.append(binary_ref)
        remaining = self.failures.get(binary_ref, 0)
        if remaining != 0:
            self.failures[binary_ref] = remaining - 1 if remaining > 0 else remaining
            raise OSError(f"simulated read failure: {binary_ref}")
        if binary_ref not in self.data:
            raise FileNotFoundError(binary_ref)
        return io.BytesIO(self.data[binary_ref])


@pytest.fixture
def flaky_storage_factory(
    sample_photos: list[ClassifiedPhoto],
    sample_drawings: list[ClassifiedDrawing],
) -> Callable[..., FlakyStorage]:
    data = {item.binary_ref: f"bytes of {item.id}".encode() for item in [*sample_photos, *sample_drawings]}

    def factory(failures: dict[str, int] | None = None) -> FlakyStorage:
        return FlakyStorage(data, failures)

    return factory


# =============================================================================
# Manifest Fixtures
# =============================================================================

def photo_to_payload(photo: ClassifiedPhoto) -> dict:
    """ClassifiedPhoto → manifest entry (JSON types only)."""
    item = {
        "id": photo.id,
        "binary_ref": photo.binary_ref,
        "file_name": photo.file_name,
        "major_category": photo.major_category,
        "category": photo.category,
        "title": photo.title,
        "construction_type": photo.construction_type,
        "work_type": photo.work_type,
        "detail_type": photo.detail_type,
        "shooting_location": photo.shooting_location,
        "shooting_date": photo.shooting_date.isoformat() if photo.shooting_date else None,
        "is_representative": photo.is_representative,
        "drawing_id": photo.drawing_id,
        "file_size": photo.file_size,
    }
    if photo.location is not None:
        item["location"] = {
            "latitude": photo.location.latitude,
            "longitude": photo.location.longitude,
        }
    return item


@pytest.fixture
def export_payload(
    sample_photos: list[ClassifiedPhoto],
    sample_drawings: list[ClassifiedDrawing],
    export_metadata: ExportMetadata,
) -> dict:
    """Request body / manifest for the sample project."""
    return {
        "options": {"output_format": "zip", "allow_warnings": True},
        "metadata": export_metadata.to_dict(),
        "photos": [photo_to_payload(p) for p in sample_photos],
        "drawings": [
            {
                "id": d.id,
                "binary_ref": d.binary_ref,
                "file_name": d.file_name,
                "title": d.title,
                "file_size": d.file_size,
            }
            for d in sample_drawings
        ],
    }


@pytest.fixture
def fast_settings(default_config: dict) -> dict:
    """default.yaml with retry delays removed."""
    settings = dict(default_config)
    settings["export"] = {**default_config.get("export", {}), "retry_initial_delay": 0.0}
    return settings
