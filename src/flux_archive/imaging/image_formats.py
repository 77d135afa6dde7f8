"""
Flux image error taxonomy, format detection and image metadata.

Every failure raised by the capture store and the image backends belongs
to exactly one ErrorKind, so callers can tell "no such capture" apart
from "the media is broken" and from "the API was misused".

Error Kinds:
    - OUT_OF_RANGE: no capture exists at the address/index combination
    - INVALID_ARGUMENT: bad resolution, bad stream, or a gapped write index
    - NOT_SUPPORTED: write attempted on a read-only image
    - IO_FAILURE: backing storage fault not attributable to caller input

Supported Formats:
    - FLUXARC: native flux capture archive (read/write)
    - SCP: SuperCard Pro flux image (read-only)
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Error Kinds and Exceptions
# =============================================================================

class ErrorKind(Enum):
    """Categories of failure surfaced by the flux store."""
    OUT_OF_RANGE = "OutOfRange"
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_SUPPORTED = "NotSupported"
    IO_FAILURE = "IOFailure"


class FluxImageError(Exception):
    """Base exception for flux image errors."""

    kind: ErrorKind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, filepath: Optional[str] = None):
        self.message = message
        self.filepath = str(filepath) if filepath is not None else None
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.filepath:
            return f"{self.message} [File: {self.filepath}]"
        return self.message


class CaptureOutOfRangeError(FluxImageError, IndexError):
    """Raised when a capture index is beyond the captures stored at an address."""

    kind = ErrorKind.OUT_OF_RANGE

    def __init__(self, message: str, filepath: Optional[str] = None,
                 address: Optional[Any] = None,
                 capture_index: Optional[int] = None,
                 captures_length: Optional[int] = None):
        self.address = address
        self.capture_index = capture_index
        self.captures_length = captures_length
        super().__init__(message, filepath)

    def _format_message(self) -> str:
        base = super()._format_message()
        if self.captures_length is not None:
            return f"{base} [Index: {self.capture_index}, Captures: {self.captures_length}]"
        return base


class InvalidCaptureError(FluxImageError, ValueError):
    """Raised when a capture argument is invalid."""

    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, filepath: Optional[str] = None,
                 argument: Optional[str] = None):
        self.argument = argument
        super().__init__(message, filepath)

    def _format_message(self) -> str:
        base = super()._format_message()
        if self.argument:
            return f"{base} [Argument: {self.argument}]"
        return base


class ReadOnlyImageError(FluxImageError, NotImplementedError):
    """Raised when a write is attempted on a read-only image."""

    kind = ErrorKind.NOT_SUPPORTED


class FluxIOError(FluxImageError):
    """Raised when the backing storage of an image fails."""

    kind = ErrorKind.IO_FAILURE


class ImageReadError(FluxIOError):
    """Raised when reading an image file fails."""
    pass


class ImageWriteError(FluxIOError):
    """Raised when writing an image file fails."""
    pass


class ImageFormatError(FluxIOError):
    """Raised when image format is invalid or unsupported."""

    def __init__(self, message: str, filepath: Optional[str] = None,
                 detected_format: Optional[str] = None):
        self.detected_format = detected_format
        super().__init__(message, filepath)

    def _format_message(self) -> str:
        base = super()._format_message()
        if self.detected_format:
            return f"{base} [Detected: {self.detected_format}]"
        return base


class ImageCorruptError(FluxIOError):
    """Raised when an image file is corrupt or incomplete."""

    def __init__(self, message: str, filepath: Optional[str] = None,
                 expected_size: Optional[int] = None,
                 actual_size: Optional[int] = None):
        self.expected_size = expected_size
        self.actual_size = actual_size
        super().__init__(message, filepath)

    def _format_message(self) -> str:
        base = super()._format_message()
        if self.expected_size is not None and self.actual_size is not None:
            return f"{base} [Expected: {self.expected_size}, Actual: {self.actual_size}]"
        return base


# =============================================================================
# Enums and Constants
# =============================================================================

class ImageFormat(Enum):
    """Supported flux image formats."""
    FLUXARC = auto()  # Native flux capture archive
    SCP = auto()      # SuperCard Pro flux image
    UNKNOWN = auto()  # Unrecognized format


class FloppyDensity(Enum):
    """Physical magnetic density (coercivity) of a floppy medium."""
    UNKNOWN = "unknown"
    SD = "SD"    # Single Density
    DD = "DD"    # Double Density
    HD = "HD"    # High Density
    ED = "ED"    # Extended Density


# Magic bytes for format detection
FLUXARC_MAGIC = b'FLUXARC\x00'
SCP_MAGIC = b'SCP'

# File extension mappings
EXTENSION_MAP: Dict[str, ImageFormat] = {
    '.fluxarc': ImageFormat.FLUXARC,
    '.flx': ImageFormat.FLUXARC,
    '.scp': ImageFormat.SCP,
}

# Formats that can be opened with write capability
WRITABLE_FORMATS = (ImageFormat.FLUXARC,)


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class FloppyInfo:
    """
    Physical characteristics of the floppy the captures were taken from.

    Attributes:
        floppy_type: Physical floppy type (e.g. '3.5"', '5.25"', '8"')
        bitrate: Bitrate in bits per second, 0 if unknown or track-variable
        coercivity: Magnetic density of the medium
        tracks: Physical tracks actually present in the image
        heads: Physical heads actually present in the image
        track_density: Tracks per inch (48, 96, 135, ...)
    """
    floppy_type: str = ""
    bitrate: int = 0
    coercivity: FloppyDensity = FloppyDensity.UNKNOWN
    tracks: int = 0
    heads: int = 0
    track_density: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['coercivity'] = self.coercivity.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FloppyInfo":
        return cls(
            floppy_type=str(data.get('floppy_type', "")),
            bitrate=int(data.get('bitrate', 0)),
            coercivity=FloppyDensity(data.get('coercivity', FloppyDensity.UNKNOWN.value)),
            tracks=int(data.get('tracks', 0)),
            heads=int(data.get('heads', 0)),
            track_density=int(data.get('track_density', 0)),
        )


@dataclass
class ImageMetadata:
    """
    Metadata for a flux image.

    Attributes:
        format: Image format
        filename: Name of the image file
        file_size: Size of the file in bytes (0 until saved)
        version: Version of the image format the file was written in
        application: Application that created the image
        application_version: Version of that application
        creator: Person who created the image
        comments: Free-form comments
        media_title: Title of the media
        media_manufacturer: Manufacturer of the media
        media_model: Model of the media
        media_serial_number: Serial number of the media
        media_barcode: Barcode of the media
        media_part_number: Part number of the media
        media_sequence: Number of this media in its set (0 if not part of one)
        last_media_sequence: Number of the last media in the set
        drive_manufacturer: Manufacturer of the drive used to read the media
        drive_model: Model of that drive
        drive_serial_number: Serial number of that drive
        drive_firmware_revision: Firmware revision of that drive
        creation_time: Image creation time
        last_modification_time: Image last modification time
        address_count: Addresses holding at least one capture
        capture_count: Total captures across all addresses
    """
    format: ImageFormat = ImageFormat.UNKNOWN
    filename: str = ""
    file_size: int = 0
    version: str = ""
    application: str = ""
    application_version: str = ""
    creator: str = ""
    comments: str = ""
    media_title: str = ""
    media_manufacturer: str = ""
    media_model: str = ""
    media_serial_number: str = ""
    media_barcode: str = ""
    media_part_number: str = ""
    media_sequence: int = 0
    last_media_sequence: int = 0
    drive_manufacturer: str = ""
    drive_model: str = ""
    drive_serial_number: str = ""
    drive_firmware_revision: str = ""
    creation_time: Optional[datetime] = None
    last_modification_time: Optional[datetime] = None
    address_count: int = 0
    capture_count: int = 0

    # Fields persisted inside an archive; the rest, version included, are derived on load
    PERSISTED_FIELDS = (
        'application', 'application_version', 'creator', 'comments',
        'media_title', 'media_manufacturer', 'media_model', 'media_serial_number',
        'media_barcode', 'media_part_number', 'media_sequence', 'last_media_sequence',
        'drive_manufacturer', 'drive_model', 'drive_serial_number',
        'drive_firmware_revision',
    )

    @property
    def format_name(self) -> str:
        """Get human-readable format name."""
        names = {
            ImageFormat.FLUXARC: "Flux Capture Archive",
            ImageFormat.SCP: "SuperCard Pro Flux",
            ImageFormat.UNKNOWN: "Unknown",
        }
        return names.get(self.format, "Unknown")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the persisted fields and timestamps."""
        data: Dict[str, Any] = {name: getattr(self, name) for name in self.PERSISTED_FIELDS}
        data['creation_time'] = self.creation_time.isoformat() if self.creation_time else None
        data['last_modification_time'] = (
            self.last_modification_time.isoformat() if self.last_modification_time else None
        )
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageMetadata":
        """Build metadata from a dictionary, ignoring unknown keys."""
        metadata = cls()
        for name in cls.PERSISTED_FIELDS:
            if name in data and data[name] is not None:
                field_type = type(getattr(metadata, name))
                setattr(metadata, name, field_type(data[name]))
        for name in ('creation_time', 'last_modification_time'):
            value = data.get(name)
            if value:
                setattr(metadata, name, datetime.fromisoformat(value))
        return metadata


# =============================================================================
# Format Detection
# =============================================================================

def detect_format(filepath: str) -> ImageFormat:
    """
    Detect image format by magic bytes, falling back to file extension.

    Args:
        filepath: Path to the image file

    Returns:
        Detected ImageFormat enum value

    Raises:
        ImageReadError: If file cannot be read
    """
    path = Path(filepath)

    if not path.exists():
        raise ImageReadError("File does not exist", filepath)

    if not path.is_file():
        raise ImageReadError("Path is not a file", filepath)

    logger.debug("Detecting format for: %s", filepath)

    try:
        with open(path, 'rb') as f:
            header = f.read(len(FLUXARC_MAGIC))
    except OSError as e:
        raise ImageReadError(f"Failed to read file: {e}", filepath) from e

    if header[:len(FLUXARC_MAGIC)] == FLUXARC_MAGIC:
        logger.debug("Detected FLUXARC format by magic bytes")
        return ImageFormat.FLUXARC

    if header[:3] == SCP_MAGIC:
        logger.debug("Detected SCP format by magic bytes")
        return ImageFormat.SCP

    return _detect_by_extension(filepath)


def _detect_by_extension(filepath: str) -> ImageFormat:
    """Detect format by file extension."""
    ext = Path(filepath).suffix.lower()

    if ext in EXTENSION_MAP:
        logger.debug("Detected format by extension: %s -> %s", ext, EXTENSION_MAP[ext])
        return EXTENSION_MAP[ext]

    logger.debug("Unknown extension: %s", ext)
    return ImageFormat.UNKNOWN


def get_format_for_extension(extension: str) -> ImageFormat:
    """Map a file extension (with or without dot) to an ImageFormat."""
    ext = extension.lower()
    if not ext.startswith('.'):
        ext = '.' + ext
    return EXTENSION_MAP.get(ext, ImageFormat.UNKNOWN)


def get_supported_extensions(format_type: Optional[ImageFormat] = None) -> List[str]:
    """List known extensions, optionally only those of one format."""
    return sorted(
        ext for ext, fmt in EXTENSION_MAP.items()
        if format_type is None or fmt == format_type
    )


def is_writable_format(format_type: ImageFormat) -> bool:
    """Check whether a format can be opened with write capability."""
    return format_type in WRITABLE_FORMATS
