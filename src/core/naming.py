"""
Delivery file naming: P0000001.JPG / D0000001.PDF

Rules:
- Prefix + sequence zero-padded to 7 digits + "." + normalised extension
- Sequence range 1..9,999,999; non-integers rejected
- One FileNameGenerator per export job (never module-level, never shared)
"""

import re
import threading

from src.domain.constants import (
    DRAWING_EXTENSIONS,
    DRAWING_PREFIX,
    EXTENSION_ALIASES,
    MAX_SEQUENCE,
    MIN_SEQUENCE,
    PHOTO_EXTENSIONS,
    PHOTO_PREFIX,
    SEQUENCE_DIGITS,
)

SEQUENCE_NAME_PATTERN = re.compile(r"^[PD](\d{7})\.\w+$", re.IGNORECASE)
PHOTO_NAME_PATTERN = re.compile(r"^P\d{7}\.(JPG|JPEG|TIF|TIFF)$", re.IGNORECASE)
DRAWING_NAME_PATTERN = re.compile(r"^D\d{7}\.(JPG|TIF|PDF)$", re.IGNORECASE)

# =============================================================================
# Stateless Grammar
# =============================================================================


def normalize_extension(extension: str) -> str:
    """
    Normalise a file extension.

    - strip one leading dot
    - uppercase
    - JPEG → JPG, TIFF → TIF

    Idempotent: normalize_extension(normalize_extension(x)) == normalize_extension(x)
    """
    ext = extension[1:] if extension.startswith(".") else extension
    ext = ext.upper()
    return EXTENSION_ALIASES.get(ext, ext)


def get_extension(file_name: str) -> str:
    """Normalised extension of an original file name ("" when none)."""
    match = re.search(r"\.([^.]+)$", file_name)
    if not match:
        return ""
    return normalize_extension(match.group(1))


def is_supported_photo_extension(file_name: str) -> bool:
    """Whether the original photo file can be delivered as-is."""
    ext = get_extension(file_name)
    return ext in {normalize_extension(e) for e in PHOTO_EXTENSIONS}


def is_supported_drawing_extension(file_name: str) -> bool:
    """Whether the original drawing file can be delivered as-is."""
    return get_extension(file_name) in DRAWING_EXTENSIONS


def _validate_sequence(sequence: int) -> None:
    """
    Args:
        sequence: candidate sequence number

    Raises:
        TypeError: not an integer
        ValueError: outside 1..9,999,999
    """
    if isinstance(sequence, bool) or not isinstance(sequence, int):
        raise TypeError(f"Sequence number must be an integer, got {sequence!r}")
    if sequence < MIN_SEQUENCE:
        raise ValueError(f"Sequence number must be >= {MIN_SEQUENCE}, got {sequence}")
    if sequence > MAX_SEQUENCE:
        raise ValueError(f"Sequence number must be <= {MAX_SEQUENCE}, got {sequence}")


def _format_name(prefix: str, sequence: int, extension: str) -> str:
    _validate_sequence(sequence)
    return f"{prefix}{sequence:0{SEQUENCE_DIGITS}d}.{normalize_extension(extension)}"


def generate_photo_file_name(sequence: int, extension: str = "JPEG") -> str:
    """
    Photo delivery name.

    Args:
        sequence: 1-based sequence number
        extension: source extension (normalised)

    Returns:
        e.g. "P0000001.JPG"

    Raises:
        TypeError: sequence is not an integer
        ValueError: sequence out of range
    """
    return _format_name(PHOTO_PREFIX, sequence, extension)


def generate_drawing_file_name(sequence: int, extension: str) -> str:
    """
    Drawing delivery name.

    Args:
        sequence: 1-based sequence number
        extension: source extension, must normalise to JPG, TIF or PDF

    Returns:
        e.g. "D0000001.PDF"

    Raises:
        TypeError: sequence is not an integer
        ValueError: sequence out of range or unsupported extension
    """
    normalized = normalize_extension(extension)
    if normalized not in DRAWING_EXTENSIONS:
        raise ValueError(
            f"Drawing extension must be one of {sorted(DRAWING_EXTENSIONS)}, got {extension!r}"
        )
    return _format_name(DRAWING_PREFIX, sequence, normalized)


def extract_sequence_number(file_name: str) -> int | None:
    """
    Parse the sequence number out of a delivery name.

    Returns None when the name does not follow the grammar; that is an
    expected outcome, not an error.
    """
    match = SEQUENCE_NAME_PATTERN.match(file_name)
    if not match:
        return None
    return int(match.group(1))


def is_valid_photo_file_name(file_name: str) -> bool:
    return PHOTO_NAME_PATTERN.match(file_name) is not None


def is_valid_drawing_file_name(file_name: str) -> bool:
    return DRAWING_NAME_PATTERN.match(file_name) is not None


def is_valid_delivery_file_name(file_name: str) -> bool:
    return is_valid_photo_file_name(file_name) or is_valid_drawing_file_name(file_name)


# =============================================================================
# Stateful Generator
# =============================================================================


class FileNameGenerator:
    """
    Per-job sequence counters for photo and drawing names.

    The counters define the authoritative sequence of one job's metadata
    document and archive, so an instance must be scoped to exactly one
    export job.

    Usage:
        generator = FileNameGenerator()
        generator.next_photo_file_name("jpeg")   # P0000001.JPG
        generator.next_drawing_file_name("pdf")  # D0000001.PDF
    """

    def __init__(self, start_photo: int = 1, start_drawing: int = 1) -> None:
        _validate_sequence(start_photo)
        _validate_sequence(start_drawing)
        self._lock = threading.Lock()
        self._photo_start = start_photo
        self._drawing_start = start_drawing
        self._photo_next = start_photo
        self._drawing_next = start_drawing

    def next_photo_file_name(self, extension: str = "JPG") -> str:
        with self._lock:
            name = generate_photo_file_name(self._photo_next, extension)
            self._photo_next += 1
            return name

    def next_drawing_file_name(self, extension: str) -> str:
        with self._lock:
            name = generate_drawing_file_name(self._drawing_next, extension)
            self._drawing_next += 1
            return name

    @property
    def current_photo_number(self) -> int:
        """Number of photo names issued so far."""
        with self._lock:
            return self._photo_next - self._photo_start

    @property
    def current_drawing_number(self) -> int:
        """Number of drawing names issued so far."""
        with self._lock:
            return self._drawing_next - self._drawing_start

    def get_current_photo_number(self) -> int:
        return self.current_photo_number

    def get_current_drawing_number(self) -> int:
        return self.current_drawing_number

    def reset(self, photo_start: int | None = None, drawing_start: int | None = None) -> None:
        """
        Reinitialise the counters.

        Unset arguments default to 1.
        """
        photo_start = 1 if photo_start is None else photo_start
        drawing_start = 1 if drawing_start is None else drawing_start
        _validate_sequence(photo_start)
        _validate_sequence(drawing_start)
        with self._lock:
            self._photo_start = self._photo_next = photo_start
            self._drawing_start = self._drawing_next = drawing_start
