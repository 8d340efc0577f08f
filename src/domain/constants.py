"""
Domain Constants: delivery package layout, naming grammar limits, defaults.

Folder and file names below are part of the regulatory output contract;
downstream inspection tooling reads them byte for byte.
"""

# =============================================================================
# Package Layout
# =============================================================================
# <root>/
# ├── INDEX_D.XML
# └── PHOTO/
#     ├── PHOTO.XML
#     ├── PIC/   P0000001.JPG ...
#     └── DRA/   D0000001.PDF ...   (only when drawings exist)

PHOTO_ROOT_FOLDER = "PHOTO"
PHOTO_FILE_FOLDER = "PIC"
DRAWING_FILE_FOLDER = "DRA"
PHOTO_XML_FILENAME = "PHOTO.XML"
INDEX_XML_FILENAME = "INDEX_D.XML"

# =============================================================================
# Naming Grammar
# =============================================================================

PHOTO_PREFIX = "P"
DRAWING_PREFIX = "D"
SEQUENCE_DIGITS = 7
MIN_SEQUENCE = 1
MAX_SEQUENCE = 9_999_999

PHOTO_EXTENSIONS = frozenset({"JPG", "JPEG", "TIF", "TIFF"})
DRAWING_EXTENSIONS = frozenset({"JPG", "TIF", "PDF"})

EXTENSION_ALIASES = {
    "JPEG": "JPG",
    "TIFF": "TIF",
}

# =============================================================================
# Metadata Document
# =============================================================================

DEFAULT_STANDARD_VERSION = "令和5年3月"
DEFAULT_SOFTWARE_NAME = "PhotoDeliveryPipeline"
DEFAULT_SOFTWARE_VERSION = "0.1.0"
SHOOTING_DATE_FORMAT = "%Y-%m-%d"
DEFAULT_GEODETIC_SYSTEM = "JGD2011"

# Major categories and categories in the order the standard lists them.
# Used as the primary sort key when assigning sequence numbers.
PHOTO_MAJOR_CATEGORIES = ("工事写真", "完成写真", "その他写真")
PHOTO_CATEGORIES = (
    "着工前",
    "完成",
    "施工状況",
    "安全管理",
    "使用材料",
    "品質管理",
    "出来形管理",
    "工事",
    "その他",
)

# =============================================================================
# Export Job Directory Structure
# =============================================================================
# <exports_root>/<job_id>/
# ├── job.json
# ├── logs/
# ├── staging/      (package being assembled)
# └── deliverables/ (zip or expanded folder)

JOB_JSON_FILENAME = "job.json"
JOB_LOGS_DIR = "logs"
JOB_STAGING_DIR = "staging"
JOB_DELIVERABLES_DIR = "deliverables"
OUTPUT_LOCK_FILENAME = ".export.lock"

REPORT_TEXT_FILENAME = "REPORT.TXT"
REPORT_CSV_FILENAME = "PHOTO_LIST.CSV"
REPORT_XLSX_FILENAME = "PHOTO_LEDGER.xlsx"

# =============================================================================
# Export Defaults
# =============================================================================

DEFAULT_MAX_COPY_RETRIES = 3
DEFAULT_COPY_CONCURRENCY = 4
DEFAULT_RETRY_INITIAL_DELAY = 0.5
DEFAULT_MAX_FILE_SIZE_MB = 10

# =============================================================================
# Hash & ID Prefixes
# =============================================================================

EXPORT_JOB_ID_PREFIX = "EXP-"
RUN_ID_PREFIX = "RUN-"

# =============================================================================
# MIME Types
# =============================================================================

MIME_TYPES = {
    ".zip": "application/zip",
    ".xml": "application/xml",
    ".json": "application/json",
    ".csv": "text/csv",
    ".txt": "text/plain",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".pdf": "application/pdf",
}


def get_mime_type(filename: str) -> str:
    """
    Return the MIME type for a file name.

    Args:
        filename: file name including extension

    Returns:
        MIME type string (octet-stream when unknown)
    """
    import os

    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")
