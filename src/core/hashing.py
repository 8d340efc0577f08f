"""
Hashing: document_hash, file hashes

Rules:
- Sorted-key JSON serialisation
- SHA-256
- Same metadata document → same document_hash (re-run check)
"""

import hashlib
import json
from pathlib import Path
from typing import Any

from src.domain.schemas import PackageMetadataDocument


def compute_data_hash(data: dict[str, Any]) -> str:
    """
    SHA-256 over sorted-key JSON.

    Args:
        data: JSON-serialisable mapping

    Returns:
        hex digest
    """
    serialized = json.dumps(data, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(serialized.encode()).hexdigest()


def compute_document_hash(document: PackageMetadataDocument) -> str:
    """
    Identity hash of a metadata document.

    Recorded in the run log and job status so that two runs over the same
    input can be compared without diffing archives.
    """
    return compute_data_hash(document.to_dict())


def compute_file_hash(file_path: Path, algorithm: str = "sha256") -> str:
    """
    File hash.

    Args:
        file_path: file path
        algorithm: hash algorithm (default: sha256)

    Returns:
        hex digest
    """
    h = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()
