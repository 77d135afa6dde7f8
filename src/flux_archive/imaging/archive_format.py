"""
FLUXARC flux capture archive.

The native container of this package. Unlike SCP it keeps every capture
at its own resolution and addresses captures by head, track and
sub-track, so it can hold anything the capture store can.

File Structure (little-endian):
    - Header: magic "FLUXARC\\0" (8), version u16, reserved u16,
      record count u32, metadata length u32
    - Metadata: UTF-8 JSON with "image" and "floppy" objects
    - Records: head u32, track u16, sub-track u8, flags u8, capture index u32,
      resolution u64, index length u32, data length u32, index, data
    - Trailer: CRC-32 of every preceding byte

Records are stored ordered by address then capture index, and capture
indices of each address must run 0..N-1 without gaps.

A stream is stored zlib-compressed when that makes it smaller, with the
matching record flag set; lengths are the stored sizes. Long runs of 0xFF
continuation bytes, as produced by slow index timings, shrink to a few
bytes. Version 1 archives have no flags and are read unchanged.
"""

import json
import logging
import struct
import zlib
from pathlib import Path
from typing import Iterable, Tuple

from .captures import CaptureAddress, CaptureRecord
from .flux_image import FluxImage, WritableFluxImage
from .flux_store import CaptureStore
from .image_formats import (
    FLUXARC_MAGIC,
    FloppyInfo,
    ImageCorruptError,
    ImageFormat,
    ImageFormatError,
    ImageMetadata,
    ImageReadError,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

ARCHIVE_VERSION = 2

HEADER_FORMAT = '<8sHHII'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)          # 20 bytes
RECORD_FORMAT = '<IHBBIQII'
RECORD_HEADER_SIZE = struct.calcsize(RECORD_FORMAT)   # 28 bytes
TRAILER_FORMAT = '<I'
TRAILER_SIZE = struct.calcsize(TRAILER_FORMAT)

# Record flags
RECORD_INDEX_COMPRESSED = 0x01
RECORD_DATA_COMPRESSED = 0x02
RECORD_FLAGS_MASK = RECORD_INDEX_COMPRESSED | RECORD_DATA_COMPRESSED


# =============================================================================
# Serialization
# =============================================================================

def _pack_stream(stream: bytes) -> Tuple[bytes, bool]:
    """Compress a stream when that makes it smaller."""
    packed = zlib.compress(stream)
    if len(packed) < len(stream):
        return packed, True
    return stream, False


def _unpack_stream(stored: bytes, compressed: bool, filepath: str, what: str) -> bytes:
    if not compressed:
        return bytes(stored)
    try:
        return zlib.decompress(stored)
    except zlib.error as e:
        raise ImageCorruptError(f"{what} does not decompress: {e}", filepath) from e


def pack_archive(metadata: ImageMetadata, floppy_info: FloppyInfo,
                 records: Iterable[Tuple[CaptureAddress, int, CaptureRecord]]) -> bytes:
    """
    Render captures and metadata as a FLUXARC file.

    Args:
        metadata: Image metadata to persist
        floppy_info: Physical floppy characteristics
        records: (address, capture_index, record) in address/index order

    Returns:
        Complete file contents
    """
    meta_bytes = json.dumps(
        {'image': metadata.to_dict(), 'floppy': floppy_info.to_dict()},
        sort_keys=True,
    ).encode('utf-8')

    body = bytearray()
    count = 0
    for address, capture_index, record in records:
        index_stream, index_packed = _pack_stream(record.index_stream)
        data_stream, data_packed = _pack_stream(record.data_stream)
        flags = ((RECORD_INDEX_COMPRESSED if index_packed else 0)
                 | (RECORD_DATA_COMPRESSED if data_packed else 0))
        body.extend(struct.pack(
            RECORD_FORMAT,
            address.head, address.track, address.sub_track, flags, capture_index,
            record.resolution_ps, len(index_stream), len(data_stream),
        ))
        body.extend(index_stream)
        body.extend(data_stream)
        count += 1

    output = bytearray(struct.pack(
        HEADER_FORMAT, FLUXARC_MAGIC, ARCHIVE_VERSION, 0, count, len(meta_bytes)))
    output.extend(meta_bytes)
    output.extend(body)
    output.extend(struct.pack(TRAILER_FORMAT, zlib.crc32(output) & 0xFFFFFFFF))
    return bytes(output)


def unpack_archive(data: bytes, filepath: str, store: CaptureStore) -> Tuple[ImageMetadata, FloppyInfo]:
    """
    Parse a FLUXARC file into a capture store.

    Args:
        data: Complete file contents
        filepath: Path used in error messages
        store: Empty store to fill

    Returns:
        Tuple of (metadata, floppy_info)

    Raises:
        ImageFormatError: If the magic or version is not recognized
        ImageCorruptError: If the content is truncated or inconsistent
    """
    if len(data) < HEADER_SIZE + TRAILER_SIZE:
        raise ImageCorruptError("File too small for FLUXARC header", filepath,
                                expected_size=HEADER_SIZE + TRAILER_SIZE,
                                actual_size=len(data))

    magic, version, _reserved, record_count, meta_len = struct.unpack_from(HEADER_FORMAT, data, 0)
    if magic != FLUXARC_MAGIC:
        raise ImageFormatError("Invalid FLUXARC magic bytes", filepath)
    if version > ARCHIVE_VERSION:
        raise ImageFormatError(f"Unsupported FLUXARC version {version}", filepath)

    body_end = len(data) - TRAILER_SIZE
    (stored_crc,) = struct.unpack_from(TRAILER_FORMAT, data, body_end)
    actual_crc = zlib.crc32(data[:body_end]) & 0xFFFFFFFF
    if stored_crc != actual_crc:
        raise ImageCorruptError(
            f"Checksum mismatch (stored {stored_crc:08X}, computed {actual_crc:08X})", filepath)

    offset = HEADER_SIZE
    if offset + meta_len > body_end:
        raise ImageCorruptError("Metadata extends beyond file", filepath)
    try:
        meta = json.loads(data[offset:offset + meta_len].decode('utf-8'))
        metadata = ImageMetadata.from_dict(meta.get('image', {}))
        floppy_info = FloppyInfo.from_dict(meta.get('floppy', {}))
        metadata.version = str(version)
    except (UnicodeDecodeError, ValueError, TypeError, AttributeError) as e:
        raise ImageCorruptError(f"Invalid metadata block: {e}", filepath) from e
    offset += meta_len

    for record_num in range(record_count):
        if offset + RECORD_HEADER_SIZE > body_end:
            raise ImageCorruptError(f"Record {record_num} header truncated", filepath)

        (head, track, sub_track, flags, capture_index,
         resolution, index_len, data_len) = struct.unpack_from(RECORD_FORMAT, data, offset)
        offset += RECORD_HEADER_SIZE

        if offset + index_len + data_len > body_end:
            raise ImageCorruptError(f"Record {record_num} streams truncated", filepath)
        if resolution == 0:
            raise ImageCorruptError(f"Record {record_num} has zero resolution", filepath)
        if flags & ~RECORD_FLAGS_MASK or (flags and version < 2):
            raise ImageCorruptError(f"Record {record_num} has invalid flags {flags:#04x}",
                                    filepath)

        address = CaptureAddress(head, track, sub_track)
        expected = store.captures_length(head, track, sub_track)
        if capture_index != expected:
            raise ImageCorruptError(
                f"Record {record_num} at {address} has capture index {capture_index}, "
                f"expected {expected}", filepath)

        index_stream = _unpack_stream(data[offset:offset + index_len],
                                      bool(flags & RECORD_INDEX_COMPRESSED), filepath,
                                      f"Record {record_num} index stream")
        offset += index_len
        data_stream = _unpack_stream(data[offset:offset + data_len],
                                     bool(flags & RECORD_DATA_COMPRESSED), filepath,
                                     f"Record {record_num} data stream")
        offset += data_len

        store.put_record(address, capture_index,
                         CaptureRecord(resolution, index_stream, data_stream))

    if offset != body_end:
        raise ImageCorruptError(f"{body_end - offset} unexpected bytes after last record",
                                filepath)

    return metadata, floppy_info


# =============================================================================
# Image Classes
# =============================================================================

class FluxArchiveImage(FluxImage):
    """
    FLUXARC image opened with read capability.

    Example:
        image = FluxArchiveImage()
        image.open("disk.fluxarc")
        image.read_flux_resolution(0, 0, 0, 0)
    """

    format = ImageFormat.FLUXARC

    @classmethod
    def identify(cls, filepath: str) -> bool:
        try:
            with open(filepath, 'rb') as f:
                return f.read(len(FLUXARC_MAGIC)) == FLUXARC_MAGIC
        except OSError as e:
            raise ImageReadError(f"Failed to read file: {e}", filepath) from e

    def _load(self, data: bytes, filepath: str, store: CaptureStore) -> None:
        metadata, floppy_info = unpack_archive(data, filepath, store)
        self._metadata = metadata
        self._floppy_info = floppy_info


class WritableFluxArchiveImage(FluxArchiveImage, WritableFluxImage):
    """
    FLUXARC image opened with write capability.

    Opening an existing archive keeps its captures; further writes append
    to or overwrite them and close() rewrites the file.
    """

    def _serialize(self) -> bytes:
        self._metadata.version = str(ARCHIVE_VERSION)
        return pack_archive(self._metadata, self._floppy_info, self._store.iter_records())

    def open_or_create(self, filepath: str) -> None:
        """Open an existing archive, or create an empty one when missing."""
        if Path(filepath).exists():
            self.open(filepath)
        else:
            self.create(filepath)
