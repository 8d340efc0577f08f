"""
Recognized classification codes (photo category / construction / work / detail type).

The code set is injectable configuration: standard.yaml ships the default
master data, callers may pass their own set. Codes outside the set only
produce warnings since the standard is allowed to grow.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from src.domain.constants import PHOTO_CATEGORIES, PHOTO_MAJOR_CATEGORIES


@dataclass(frozen=True)
class ClassificationCodes:
    """Immutable recognized code set."""
    major_categories: frozenset[str] = field(default_factory=frozenset)
    categories: frozenset[str] = field(default_factory=frozenset)
    construction_types: frozenset[str] = field(default_factory=frozenset)
    work_types: frozenset[str] = field(default_factory=frozenset)
    detail_types: frozenset[str] = field(default_factory=frozenset)
    category_order: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict) -> "ClassificationCodes":
        """
        Build from a standard.yaml-shaped mapping.

        Expected keys (all optional):
            major_categories: [..]
            categories: [..]
            construction_types: [{code, name, work_types: [{code, name, detail_types: [..]}]}]
        """
        categories = list(data.get("categories", []))
        construction_types: set[str] = set()
        work_types: set[str] = set()
        detail_types: set[str] = set()

        for construction in data.get("construction_types", []) or []:
            construction_types.update(_names_and_codes(construction))
            for work in construction.get("work_types", []) or []:
                work_types.update(_names_and_codes(work))
                for detail in work.get("detail_types", []) or []:
                    detail_types.update(_names_and_codes(detail))

        return cls(
            major_categories=frozenset(data.get("major_categories", [])),
            categories=frozenset(categories),
            construction_types=frozenset(construction_types),
            work_types=frozenset(work_types),
            detail_types=frozenset(detail_types),
            category_order=tuple(categories),
        )

    def is_known(self, field_name: str, value: str | None) -> bool:
        """
        Whether a classification value is recognized.

        Empty values count as known; presence is checked elsewhere.
        An empty code set for a field accepts every value.
        """
        if not value:
            return True
        codes: frozenset[str] = getattr(self, field_name)
        if not codes:
            return True
        return value in codes

    def category_rank(self, category: str) -> tuple[int, str]:
        """Sort key placing known categories first, in master-data order."""
        order = self.category_order or PHOTO_CATEGORIES
        if category in order:
            return (order.index(category), "")
        return (len(order), category)


def _names_and_codes(node: dict | str) -> Iterable[str]:
    if isinstance(node, str):
        return [node]
    return [str(v) for k, v in node.items() if k in ("code", "name") and v]


def default_classification_codes() -> ClassificationCodes:
    """Category-only code set built from the constants (no type codes)."""
    return ClassificationCodes(
        major_categories=frozenset(PHOTO_MAJOR_CATEGORIES),
        categories=frozenset(PHOTO_CATEGORIES),
        category_order=PHOTO_CATEGORIES,
    )


def load_classification_codes(standard_path: Path) -> ClassificationCodes:
    """
    Load recognized codes from standard.yaml.

    Args:
        standard_path: path to standard.yaml

    Returns:
        ClassificationCodes (defaults when the file does not exist)
    """
    if not standard_path.exists():
        return default_classification_codes()

    with open(standard_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return ClassificationCodes.from_dict(data.get("classification", data))
