"""
Metadata document (PHOTO.XML): build + serialise.

Rules:
- build_metadata_document is a pure transform (no I/O, no clock);
  same plan + config → identical document
- Shooting date normalised to YYYY-MM-DD
- Coordinates written as degree-minute-second strings
- Element names are a fixed external contract
"""

from datetime import date, datetime
from xml.etree import ElementTree as ET

from src.domain.constants import (
    DRAWING_FILE_FOLDER,
    PHOTO_FILE_FOLDER,
    PHOTO_XML_FILENAME,
    SHOOTING_DATE_FORMAT,
)
from src.domain.schemas import (
    ClassifiedPhoto,
    DeliveryFileEntry,
    ExportConfig,
    FolderPlan,
    GeoLocation,
    LocationRecord,
    PackageMetadataDocument,
    PhotoCommonInfo,
    PhotoRecord,
)

XML_HEADER_COMMENT = " 国土交通省 デジタル写真管理情報基準 準拠 "

REQUIRED_ELEMENTS = ("photoInformation", "commonInformation", "photoList")


# =============================================================================
# Value Formatting
# =============================================================================

def format_shooting_date(value: date | datetime | None) -> str:
    """YYYY-MM-DD, or "" when the date is unknown."""
    if value is None:
        return ""
    return value.strftime(SHOOTING_DATE_FORMAT)


def format_coordinate(decimal_degrees: float, axis: str) -> str:
    """
    Decimal degrees → D°M'S.ss"H.

    Args:
        decimal_degrees: signed decimal degrees
        axis: "lat" or "lon"

    Returns:
        e.g. 35°40'52.20"N
    """
    absolute = abs(decimal_degrees)
    degrees = int(absolute)
    minutes_decimal = (absolute - degrees) * 60
    minutes = int(minutes_decimal)
    seconds = (minutes_decimal - minutes) * 60

    if axis == "lat":
        hemisphere = "N" if decimal_degrees >= 0 else "S"
    else:
        hemisphere = "E" if decimal_degrees >= 0 else "W"

    return f"{degrees}°{minutes}'{seconds:.2f}\"{hemisphere}"


def _location_record(location: GeoLocation | None) -> LocationRecord | None:
    if location is None:
        return None
    return LocationRecord(
        geodetic_system=location.geodetic_system,
        latitude=format_coordinate(location.latitude, "lat"),
        longitude=format_coordinate(location.longitude, "lon"),
    )


# =============================================================================
# Builder
# =============================================================================

def build_common_info(plan: FolderPlan, config: ExportConfig) -> PhotoCommonInfo:
    return PhotoCommonInfo(
        applicable_standard=config.standard_version,
        photo_info_file_name=PHOTO_XML_FILENAME,
        photo_folder_name=plan.root_folder_name,
        photo_file_folder_name=PHOTO_FILE_FOLDER,
        drawing_folder_name=DRAWING_FILE_FOLDER if plan.drawing_folder_path else None,
        software_name=config.software_name,
        software_version=config.software_version,
    )


def build_photo_record(
    entry: DeliveryFileEntry,
    photo: ClassifiedPhoto,
    plan: FolderPlan,
) -> PhotoRecord:
    """
    Map one photo entry to its metadata record.

    A drawing link is resolved to the drawing's delivery name when the
    drawing is part of the plan. A dangling link keeps has_drawing=True with
    the raw drawing id so that the validator can report it.
    """
    drawing_file_name: str | None = None
    drawing_title: str | None = None
    if photo.drawing_id:
        drawing_entry = plan.drawing_entry_for(photo.drawing_id)
        if drawing_entry is not None:
            drawing_file_name = drawing_entry.delivery_name
            drawing = plan.drawings_by_id.get(photo.drawing_id)
            drawing_title = drawing.title if drawing else None
        else:
            drawing_file_name = photo.drawing_id

    return PhotoRecord(
        photo_number=entry.sequence,
        photo_file_name=entry.delivery_name,
        photo_file_japanese_name=photo.title or None,
        major_category=photo.major_category,
        category=photo.category,
        construction_type=photo.construction_type,
        work_type=photo.work_type,
        detail_type=photo.detail_type,
        title=photo.title,
        shooting_location=photo.shooting_location,
        shooting_date=format_shooting_date(photo.shooting_date),
        is_representative=photo.is_representative,
        is_submission_frequency_photo=photo.is_submission_frequency_photo,
        has_drawing=photo.drawing_id is not None,
        drawing_file_name=drawing_file_name,
        drawing_title=drawing_title,
        remarks=photo.remarks,
        photographer_name=photo.photographer_name,
        contractor_description=photo.contractor_description,
        location=_location_record(photo.location),
        file_size=entry.file_size,
    )


def build_metadata_document(plan: FolderPlan, config: ExportConfig) -> PackageMetadataDocument:
    """
    Build the package metadata document.

    Args:
        plan: folder plan from the assembler
        config: export configuration

    Returns:
        PackageMetadataDocument with records in sequence order
    """
    common_info = build_common_info(plan, config)
    records = tuple(
        build_photo_record(entry, plan.photos_by_id[entry.source_id], plan)
        for entry in plan.photo_entries
    )
    return PackageMetadataDocument(common_info=common_info, records=records)


# =============================================================================
# Serialisation
# =============================================================================

def _flag(value: bool) -> str:
    return "1" if value else "0"


def _add(parent: ET.Element, tag: str, text: str | None, required: bool = True) -> None:
    if text is None or (text == "" and not required):
        return
    ET.SubElement(parent, tag).text = text


def _serialize_record(parent: ET.Element, record: PhotoRecord) -> None:
    photo = ET.SubElement(parent, "photo")
    _add(photo, "photoNumber", str(record.photo_number))
    _add(photo, "photoFileName", record.photo_file_name)
    _add(photo, "photoFileJapaneseName", record.photo_file_japanese_name, required=False)
    _add(photo, "photoMajorCategory", record.major_category)
    _add(photo, "photoCategory", record.category)
    _add(photo, "constructionType", record.construction_type, required=False)
    _add(photo, "workType", record.work_type, required=False)
    _add(photo, "detailType", record.detail_type, required=False)
    _add(photo, "photoTitle", record.title)
    _add(photo, "shootingLocation", record.shooting_location, required=False)
    _add(photo, "shootingDate", record.shooting_date)
    _add(photo, "isRepresentativePhoto", _flag(record.is_representative))
    _add(photo, "isSubmissionFrequencyPhoto", _flag(record.is_submission_frequency_photo))
    _add(photo, "hasDrawing", _flag(record.has_drawing))
    _add(photo, "drawingFileName", record.drawing_file_name, required=False)
    _add(photo, "drawingTitle", record.drawing_title, required=False)
    _add(photo, "contractorDescription", record.contractor_description, required=False)
    _add(photo, "photographerName", record.photographer_name, required=False)
    _add(photo, "remarks", record.remarks, required=False)

    if record.location is not None:
        location = ET.SubElement(photo, "location")
        _add(location, "geodeticSystem", record.location.geodetic_system)
        _add(location, "latitude", record.location.latitude)
        _add(location, "longitude", record.location.longitude)


def serialize_to_xml(
    document: PackageMetadataDocument,
    encoding: str = "UTF-8",
    indent: int = 2,
) -> str:
    """
    Serialise the metadata document to PHOTO.XML text.

    Args:
        document: metadata document
        encoding: declared encoding
        indent: spaces per nesting level

    Returns:
        XML text (deterministic for a given document)
    """
    root = ET.Element("photoInformation")

    common = ET.SubElement(root, "commonInformation")
    info = document.common_info
    _add(common, "applicableStandard", info.applicable_standard)
    _add(common, "photoInformationFileName", info.photo_info_file_name)
    _add(common, "photoFolderName", info.photo_folder_name)
    _add(common, "photoFileFolderName", info.photo_file_folder_name)
    _add(common, "drawingFolderName", info.drawing_folder_name, required=False)
    _add(common, "softwareName", info.software_name)
    _add(common, "softwareVersion", info.software_version)

    photo_list = ET.SubElement(root, "photoList")
    for record in document.records:
        _serialize_record(photo_list, record)

    ET.indent(root, space=" " * indent)
    body = ET.tostring(root, encoding="unicode", short_empty_elements=False)

    return "\n".join([
        f'<?xml version="1.0" encoding="{encoding}"?>',
        f"<!--{XML_HEADER_COMMENT}-->",
        body,
        "",
    ])


def is_valid_photo_xml(xml_text: str) -> bool:
    """Structural check: parseable and carries the required elements."""
    try:
        root = ET.fromstring(xml_text.encode("utf-8"))
    except ET.ParseError:
        return False

    if root.tag != REQUIRED_ELEMENTS[0]:
        return False
    return all(root.find(tag) is not None for tag in REQUIRED_ELEMENTS[1:])
