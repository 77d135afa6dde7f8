"""
Flux capture imaging module.

This module stores raw flux captures addressed by physical position
(head, track, sub-track) and capture index, and reads or writes them
through format backends.

Supported Formats:
    - FLUXARC: native flux capture archive (read/write)
    - SCP: SuperCard Pro flux image (read-only)

Key Features:
    - Multiple captures (re-reads) per physical address
    - Per-capture resolution in picoseconds
    - Read-only and writable image variants fixed at open time
    - Typed errors for out-of-range, invalid, unsupported and I/O failures

Example Usage:
    # Read every capture of a track
    from flux_archive.imaging import open_image
    with open_image("disk.scp") as image:
        for capture in range(image.captures_length(0, 0, 0)):
            resolution, index, data = image.read_flux_capture(0, 0, 0, capture)

    # Record captures into a new archive
    from flux_archive.imaging import create_image
    with create_image("disk.fluxarc") as image:
        image.write_flux_capture(25000, index, data, 0, 0, 0, 0)
"""

from typing import Dict, Optional, Type

# Import from image_formats
from .image_formats import (
    # Exceptions
    FluxImageError,
    CaptureOutOfRangeError,
    InvalidCaptureError,
    ReadOnlyImageError,
    FluxIOError,
    ImageReadError,
    ImageWriteError,
    ImageFormatError,
    ImageCorruptError,
    # Enums
    ErrorKind,
    ImageFormat,
    FloppyDensity,
    # Data classes
    ImageMetadata,
    FloppyInfo,
    # Functions
    detect_format,
    get_format_for_extension,
    get_supported_extensions,
    is_writable_format,
    # Constants
    FLUXARC_MAGIC,
    SCP_MAGIC,
)

# Import from captures and flux_store
from .captures import CaptureAddress, CaptureRecord
from .flux_store import CaptureStore

# Import from flux_image
from .flux_image import FluxImage, WritableFluxImage

# Import format backends
from .archive_format import (
    FluxArchiveImage,
    WritableFluxArchiveImage,
    pack_archive,
    unpack_archive,
    ARCHIVE_VERSION,
)
from .scp_format import SCPFluxImage, SCPHeader


__all__ = [
    # ==========================================================================
    # Exceptions
    # ==========================================================================
    'FluxImageError',
    'CaptureOutOfRangeError',
    'InvalidCaptureError',
    'ReadOnlyImageError',
    'FluxIOError',
    'ImageReadError',
    'ImageWriteError',
    'ImageFormatError',
    'ImageCorruptError',

    # ==========================================================================
    # Enums
    # ==========================================================================
    'ErrorKind',
    'ImageFormat',
    'FloppyDensity',

    # ==========================================================================
    # Data Classes
    # ==========================================================================
    'ImageMetadata',
    'FloppyInfo',
    'CaptureAddress',
    'CaptureRecord',
    'SCPHeader',

    # ==========================================================================
    # Store and Image Classes
    # ==========================================================================
    'CaptureStore',
    'FluxImage',
    'WritableFluxImage',
    'FluxArchiveImage',
    'WritableFluxArchiveImage',
    'SCPFluxImage',

    # ==========================================================================
    # Format Detection & Serialization
    # ==========================================================================
    'detect_format',
    'get_format_for_extension',
    'get_supported_extensions',
    'is_writable_format',
    'pack_archive',
    'unpack_archive',

    # ==========================================================================
    # Constants
    # ==========================================================================
    'ARCHIVE_VERSION',
    'FLUXARC_MAGIC',
    'SCP_MAGIC',
]


# =============================================================================
# Module-Level Convenience Functions
# =============================================================================

READ_ONLY_CLASSES: Dict[ImageFormat, Type[FluxImage]] = {
    ImageFormat.FLUXARC: FluxArchiveImage,
    ImageFormat.SCP: SCPFluxImage,
}

WRITABLE_CLASSES: Dict[ImageFormat, Type[WritableFluxImage]] = {
    ImageFormat.FLUXARC: WritableFluxArchiveImage,
}


def open_image(filepath: str, writable: bool = False) -> FluxImage:
    """
    Open any supported flux image.

    Auto-detects format and returns the read-only or writable class for it.

    Args:
        filepath: Path to image file
        writable: Open with write capability

    Returns:
        FluxImage (or WritableFluxImage when writable=True)

    Raises:
        ImageFormatError: If the format is not recognized
        ReadOnlyImageError: If writable=True and the format is read-only

    Example:
        image = open_image("disk.scp")                     # SCPFluxImage
        image = open_image("disk.fluxarc", writable=True)  # WritableFluxArchiveImage
    """
    format_type = detect_format(filepath)

    if format_type == ImageFormat.UNKNOWN:
        raise ImageFormatError(
            f"Not a recognized flux image format (expected {', '.join(get_supported_extensions())})",
            filepath)

    if writable:
        if not is_writable_format(format_type):
            raise ReadOnlyImageError(
                f"{format_type.name} images can only be opened read-only", filepath)
        image_class = WRITABLE_CLASSES[format_type]
    else:
        image_class = READ_ONLY_CLASSES[format_type]

    image = image_class()
    image.open(filepath)
    return image


def create_image(filepath: str,
                 metadata: Optional[ImageMetadata] = None,
                 floppy_info: Optional[FloppyInfo] = None,
                 format_type: ImageFormat = ImageFormat.FLUXARC) -> WritableFluxImage:
    """
    Create a new, empty flux image with write capability.

    Args:
        filepath: Where the image is written on close()
        metadata: Optional descriptive metadata
        floppy_info: Optional physical floppy characteristics
        format_type: Image format to create

    Raises:
        ReadOnlyImageError: If the format cannot be written
    """
    image_class = WRITABLE_CLASSES.get(format_type)
    if image_class is None:
        raise ReadOnlyImageError(f"Cannot create {format_type.name} images", filepath)

    image = image_class()
    image.create(filepath, metadata=metadata, floppy_info=floppy_info)
    return image


__all__.extend([
    'open_image',
    'create_image',
])
