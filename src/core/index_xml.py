"""
INDEX_D.XML: delivery-wide management information at the package root.
"""

from dataclasses import dataclass
from typing import Any
from xml.etree import ElementTree as ET

from src.domain.constants import PHOTO_XML_FILENAME
from src.domain.schemas import ExportConfig, ExportMetadata

INDEX_HEADER_COMMENT = " 国土交通省 工事完成図書の電子納品等要領 準拠 "


@dataclass(frozen=True)
class IndexInfo:
    """Basic information block of INDEX_D.XML."""
    applicable_standard: str
    construction_name: str
    contractor_name: str
    photo_folder_name: str
    photo_info_file_name: str
    software_name: str
    software_version: str
    orderer_name: str | None = None
    construction_start_date: str | None = None
    construction_end_date: str | None = None
    media_number: int = 1
    total_media_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "applicable_standard": self.applicable_standard,
            "construction_name": self.construction_name,
            "contractor_name": self.contractor_name,
            "orderer_name": self.orderer_name,
            "construction_start_date": self.construction_start_date,
            "construction_end_date": self.construction_end_date,
            "media_number": self.media_number,
            "total_media_count": self.total_media_count,
            "photo_folder_name": self.photo_folder_name,
            "photo_info_file_name": self.photo_info_file_name,
            "software_name": self.software_name,
            "software_version": self.software_version,
        }


def build_index_info(
    metadata: ExportMetadata,
    config: ExportConfig,
    photo_folder_name: str,
) -> IndexInfo:
    """Single-media delivery: media number and count are both 1."""
    return IndexInfo(
        applicable_standard=config.standard_version,
        construction_name=metadata.construction_name,
        contractor_name=metadata.contractor_name,
        orderer_name=metadata.orderer_name,
        construction_start_date=metadata.construction_start_date,
        construction_end_date=metadata.construction_end_date,
        photo_folder_name=photo_folder_name,
        photo_info_file_name=PHOTO_XML_FILENAME,
        software_name=config.software_name,
        software_version=config.software_version,
    )


def _section(parent: ET.Element, tag: str, children: list[tuple[str, str | None]]) -> None:
    section = ET.SubElement(parent, tag)
    for child_tag, text in children:
        if text:
            ET.SubElement(section, child_tag).text = text


def serialize_index_xml(info: IndexInfo, encoding: str = "UTF-8", indent: int = 2) -> str:
    """
    Serialise INDEX_D.XML.

    Optional values are omitted; their enclosing sections are kept.
    """
    root = ET.Element("INDEX_D")

    _section(root, "基礎情報", [("適用要領基準", info.applicable_standard)])
    _section(root, "工事件名等", [("工事件名", info.construction_name)])
    _section(root, "場所情報", [])
    _section(root, "施設情報", [])
    _section(root, "発注者情報", [("発注者名", info.orderer_name)])
    _section(root, "受注者情報", [("受注者名", info.contractor_name)])
    _section(root, "工期", [
        ("工期開始日", info.construction_start_date),
        ("工期終了日", info.construction_end_date),
    ])
    _section(root, "工事分野情報", [])
    _section(root, "メディア情報", [
        ("メディア番号", str(info.media_number)),
        ("メディア総数", str(info.total_media_count)),
    ])
    _section(root, "写真情報", [
        ("写真フォルダ名", info.photo_folder_name),
        ("写真情報ファイル名", info.photo_info_file_name),
    ])
    _section(root, "ソフトウェア情報", [
        ("ソフトウェア名", info.software_name),
        ("バージョン情報", info.software_version),
    ])

    ET.indent(root, space=" " * indent)
    body = ET.tostring(root, encoding="unicode")

    return "\n".join([
        f'<?xml version="1.0" encoding="{encoding}"?>',
        f"<!--{INDEX_HEADER_COMMENT}-->",
        body,
        "",
    ])
