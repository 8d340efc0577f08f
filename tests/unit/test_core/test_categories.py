"""
test_categories.py - recognized classification codes
"""

from pathlib import Path

from src.core.categories import (
    ClassificationCodes,
    default_classification_codes,
    load_classification_codes,
)
from src.domain.constants import PHOTO_CATEGORIES


class TestClassificationCodes:
    def test_from_dict_flattens_hierarchy(self):
        codes = ClassificationCodes.from_dict({
            "major_categories": ["工事写真"],
            "categories": ["着工前", "完成"],
            "construction_types": [
                {
                    "code": "2",
                    "name": "河川土工",
                    "work_types": [
                        {
                            "code": "2-1",
                            "name": "掘削工",
                            "detail_types": [{"code": "2-1-1", "name": "掘削工"}, "床掘り"],
                        }
                    ],
                }
            ],
        })

        assert codes.construction_types == frozenset({"2", "河川土工"})
        assert codes.work_types == frozenset({"2-1", "掘削工"})
        assert codes.detail_types == frozenset({"2-1-1", "掘削工", "床掘り"})
        assert codes.category_order == ("着工前", "完成")

    def test_is_known(self):
        codes = ClassificationCodes(categories=frozenset({"着工前"}))
        assert codes.is_known("categories", "着工前")
        assert not codes.is_known("categories", "独自区分")
        assert codes.is_known("categories", None)
        assert codes.is_known("categories", "")

    def test_empty_field_accepts_everything(self):
        codes = ClassificationCodes()
        assert codes.is_known("work_types", "anything")

    def test_category_rank(self):
        codes = default_classification_codes()
        assert codes.category_rank("着工前") < codes.category_rank("完成")
        assert codes.category_rank("その他") < codes.category_rank("未知")
        assert codes.category_rank("未知A") < codes.category_rank("未知B")


class TestLoadClassificationCodes:
    def test_missing_file_falls_back_to_defaults(self, tmp_path: Path):
        codes = load_classification_codes(tmp_path / "missing.yaml")
        assert codes.category_order == PHOTO_CATEGORIES
        assert codes.construction_types == frozenset()

    def test_project_standard(self, classification_codes: ClassificationCodes):
        assert "工事写真" in classification_codes.major_categories
        assert "施工状況" in classification_codes.categories
        assert "2-1-1" in classification_codes.detail_types
        assert "道路土工" in classification_codes.construction_types

    def test_top_level_mapping(self, tmp_path: Path):
        path = tmp_path / "standard.yaml"
        path.write_text("categories:\n  - 完成\n", encoding="utf-8")
        assert load_classification_codes(path).category_order == ("完成",)
