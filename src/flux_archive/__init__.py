"""
Flux Archive - raw flux capture storage for floppy disk preservation.

Stores every physical read (capture) of every head, track and sub-track of
a floppy disk at its own timing resolution, reads SuperCard Pro images and
writes a native checksummed archive format.
"""

__version__ = "1.0.0"
__author__ = "Joshua Yewman"
__license__ = "MIT"

# Re-export image API
from flux_archive.imaging import (
    CaptureAddress,
    CaptureRecord,
    ErrorKind,
    FluxImage,
    FluxImageError,
    WritableFluxImage,
    create_image,
    open_image,
)

# Re-export media identification
from flux_archive.media import MediaType, get_media_type_from_ssc

# Re-export main entry point
from flux_archive.main import main

__all__ = [
    # Main entry point
    "main",
    "__version__",

    # Images
    "CaptureAddress",
    "CaptureRecord",
    "ErrorKind",
    "FluxImage",
    "FluxImageError",
    "WritableFluxImage",
    "create_image",
    "open_image",

    # Media
    "MediaType",
    "get_media_type_from_ssc",
]
