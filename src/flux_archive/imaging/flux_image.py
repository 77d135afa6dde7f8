"""
Read and write contracts for flux-level disk images.

Flux images preserve the raw magnetic transitions of every track as one
or more captures per physical address. Two abstractions are provided:

    - FluxImage: the read contract (capture counts and the four readers)
    - WritableFluxImage: the read contract plus write_flux_capture

A concrete image class derives from exactly one of them, so the write
capability is fixed when the image object is constructed.
"""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import suppress
from copy import deepcopy
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Tuple

from flux_archive.core.settings import get_settings

from .captures import CaptureAddress
from .flux_store import CaptureStore
from .image_formats import (
    FloppyInfo,
    ImageFormat,
    ImageMetadata,
    ImageReadError,
    ImageWriteError,
    ReadOnlyImageError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# FluxImage (read contract)
# =============================================================================

class FluxImage(ABC):
    """
    Abstract base class for flux images opened with read capability.

    Example:
        with SCPFluxImage() as image:
            image.open("disk.scp")
            for capture in range(image.captures_length(0, 0, 0)):
                resolution, index, data = image.read_flux_capture(0, 0, 0, capture)
    """

    format: ImageFormat = ImageFormat.UNKNOWN
    is_writable: bool = False

    def __init__(self):
        self._store = self._new_store()
        self._filepath: Optional[str] = None
        self._metadata = ImageMetadata(format=self.format)
        self._floppy_info = FloppyInfo()
        self._is_open = False

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @classmethod
    @abstractmethod
    def identify(cls, filepath: str) -> bool:
        """Check whether a file carries this format's signature."""
        pass

    @abstractmethod
    def _load(self, data: bytes, filepath: str, store: CaptureStore) -> None:
        """Parse file contents into store, metadata and floppy info."""
        pass

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def filepath(self) -> Optional[str]:
        return self._filepath

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def floppy_info(self) -> FloppyInfo:
        return self._floppy_info

    def open(self, filepath: str) -> None:
        """
        Load an image file.

        Args:
            filepath: Path to the image file

        Raises:
            ImageReadError: If the file is missing or unreadable
            ImageFormatError: If the file is not of this format
            ImageCorruptError: If the file content is inconsistent
        """
        path = Path(filepath)

        if not path.is_file():
            raise ImageReadError("File does not exist", filepath)

        logger.info("Opening %s image: %s", self.format.name, filepath)

        try:
            data = path.read_bytes()
        except OSError as e:
            raise ImageReadError(f"Failed to read file: {e}", filepath) from e

        # Parse into a fresh store so a failed open leaves this image untouched
        store = self._new_store()
        self._load(data, str(filepath), store)

        self._store = store
        self._filepath = str(filepath)
        self._metadata.format = self.format
        self._metadata.filename = path.name
        self._metadata.file_size = len(data)
        self._is_open = True

        logger.info("Loaded %s: %d addresses, %d captures", path.name,
                    len(store.addresses()), store.total_captures())

    def close(self) -> None:
        """Release the image and its captures."""
        if self._is_open:
            logger.debug("Closing image: %s", self._filepath)
        self._is_open = False
        self._store = self._new_store()

    def __enter__(self) -> "FluxImage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False

    def get_metadata(self) -> ImageMetadata:
        """Get a snapshot of the image metadata with current capture counts."""
        metadata = deepcopy(self._metadata)
        metadata.address_count = len(self._store.addresses())
        metadata.capture_count = self._store.total_captures()
        return metadata

    # =========================================================================
    # Read Contract
    # =========================================================================

    def captures_length(self, head: int, track: int, sub_track: int) -> int:
        """
        Number of captures stored for a head/track/sub-track combination.

        Args:
            head: Physical head (0-based)
            track: Physical track (0-based)
            sub_track: Physical sub-step of track (e.g. half-track)

        Returns:
            The number of captures, 0 for an address never written
        """
        return self._store.captures_length(head, track, sub_track)

    def addresses(self) -> List[CaptureAddress]:
        """Addresses holding at least one capture, sorted."""
        return self._store.addresses()

    def read_flux_resolution(self, head: int, track: int, sub_track: int,
                             capture_index: int) -> int:
        """
        Read the resolution of a capture in picoseconds.

        Raises:
            CaptureOutOfRangeError: If capture_index >= captures_length
        """
        return self._store.get_record(head, track, sub_track, capture_index).resolution_ps

    def read_flux_capture(self, head: int, track: int, sub_track: int,
                          capture_index: int) -> Tuple[int, bytes, bytes]:
        """
        Read an entire capture.

        Returns:
            Tuple of (resolution_ps, index_stream, data_stream)

        Raises:
            CaptureOutOfRangeError: If capture_index >= captures_length
        """
        record = self._store.get_record(head, track, sub_track, capture_index)
        return record.resolution_ps, record.index_stream, record.data_stream

    def read_flux_index_capture(self, head: int, track: int, sub_track: int,
                                capture_index: int) -> bytes:
        """Read a capture's index stream."""
        return self._store.get_record(head, track, sub_track, capture_index).index_stream

    def read_flux_data_capture(self, head: int, track: int, sub_track: int,
                               capture_index: int) -> bytes:
        """Read a capture's data stream."""
        return self._store.get_record(head, track, sub_track, capture_index).data_stream

    def write_flux_capture(self, resolution: int, index: bytes, data: bytes,
                           head: int, track: int, sub_track: int,
                           capture_index: int) -> None:
        """Images opened with read capability reject every write."""
        logger.warning("Rejected write to read-only %s image %s",
                       self.format.name, self._filepath)
        raise ReadOnlyImageError(
            f"{self.format.name} image is open read-only", self._filepath)

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _new_store() -> CaptureStore:
        settings = get_settings()
        return CaptureStore(max_stream_bytes=settings.storage.max_stream_bytes)


# =============================================================================
# WritableFluxImage (write contract)
# =============================================================================

class WritableFluxImage(FluxImage):
    """
    Abstract base class for flux images opened with write capability.

    Example:
        image = WritableFluxArchiveImage()
        image.create("disk.fluxarc")
        image.write_flux_capture(25000, index, data, 0, 0, 0, 0)
        image.close()   # flushes to disk

    Used as a context manager, the image is saved only when the block
    completes; a block that raises discards the pending changes.
    """

    is_writable = True

    def __init__(self):
        super().__init__()
        self._modified = False

    @abstractmethod
    def _serialize(self) -> bytes:
        """Render the image and its captures in this format's layout."""
        pass

    @property
    def is_modified(self) -> bool:
        return self._modified

    def open(self, filepath: str) -> None:
        super().open(filepath)
        self._modified = False

    def create(self, filepath: str, metadata: Optional[ImageMetadata] = None,
               floppy_info: Optional[FloppyInfo] = None) -> None:
        """
        Initialize an empty image bound to filepath.

        Nothing touches the disk until close() or save().
        """
        self._store = self._new_store()
        self._metadata = deepcopy(metadata) if metadata else ImageMetadata()
        self._metadata.format = self.format
        self._metadata.filename = Path(filepath).name
        self._metadata.creation_time = datetime.now()
        self._floppy_info = deepcopy(floppy_info) if floppy_info else FloppyInfo()
        self._filepath = str(filepath)
        self._is_open = True
        self._modified = True

        logger.info("Created %s image: %s", self.format.name, filepath)

    def write_flux_capture(self, resolution: int, index: bytes, data: bytes,
                           head: int, track: int, sub_track: int,
                           capture_index: int) -> None:
        """
        Write a flux capture.

        Args:
            resolution: The capture's resolution in picoseconds (> 0)
            index: Flux representation of the index signal (may be empty)
            data: Flux representation of the data signal (may be empty)
            head: Physical head (0-based)
            track: Physical track (0-based)
            sub_track: Physical sub-step of track
            capture_index: Slot to write; captures_length appends, lower
                values overwrite in place

        Raises:
            ReadOnlyImageError: If the image was not opened or created
            InvalidCaptureError: If an argument is invalid or the slot
                would leave a gap
        """
        if not self._is_open:
            raise ReadOnlyImageError("Image is not open for writing", self._filepath)

        self._store.write_capture(resolution, index, data, head, track, sub_track,
                                  capture_index)
        self._modified = True

    def set_metadata(self, **fields: Any) -> None:
        """Update persisted metadata fields."""
        for name, value in fields.items():
            if name not in ImageMetadata.PERSISTED_FIELDS:
                raise AttributeError(f"Unknown metadata field: {name}")
            setattr(self._metadata, name, value)
        self._modified = True

    def set_floppy_info(self, floppy_info: FloppyInfo) -> None:
        self._floppy_info = deepcopy(floppy_info)
        self._modified = True

    def save(self, filepath: Optional[str] = None) -> None:
        """
        Write the image to disk.

        The payload is written to a temporary sibling and renamed over the
        target, so an interrupted save never leaves a truncated image.

        Raises:
            ImageWriteError: If the file cannot be written
        """
        target = Path(filepath or self._filepath or "")
        if not target.name:
            raise ImageWriteError("No file path to save to")

        self._metadata.last_modification_time = datetime.now()
        payload = self._serialize()

        logger.info("Saving %s image: %s", self.format.name, target)

        temp_file = target.with_name(target.name + '.tmp')
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_file, 'wb') as f:
                f.write(payload)
                if get_settings().storage.fsync_on_close:
                    f.flush()
                    os.fsync(f.fileno())
            temp_file.replace(target)
        except OSError as e:
            with suppress(OSError):
                temp_file.unlink()
            raise ImageWriteError(f"Failed to write file: {e}", str(target)) from e

        self._filepath = str(target)
        self._metadata.filename = target.name
        self._metadata.file_size = len(payload)
        self._modified = False

        logger.info("Saved %s: %d bytes", target.name, len(payload))

    def close(self) -> None:
        """Flush pending changes to disk, then release the image."""
        if self._is_open and self._modified:
            self.save()
        super().close()
        self._modified = False

    def discard(self) -> None:
        """Release the image without writing pending changes."""
        if self._is_open and self._modified:
            logger.warning("Discarding unsaved changes to %s", self._filepath)
        self._modified = False
        super().close()

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        # A block that raised leaves the file on disk as it was
        if exc_type is not None:
            self.discard()
        else:
            self.close()
        return False
