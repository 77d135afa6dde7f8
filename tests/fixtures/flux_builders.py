"""
Flux image builders for testing Flux Archive.

Produces SuperCard Pro files and FLUXARC archives with known content so
the image backends can be checked against exact expected captures.
"""

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from flux_archive.hardware.flux_codec import encode_flux
from flux_archive.imaging import FloppyInfo, ImageMetadata, WritableFluxArchiveImage
from flux_archive.imaging.scp_format import (
    SCP_FLAG_INDEX,
    SCP_FLAG_TPI_96,
    SCP_REVOLUTION_ENTRY_SIZE,
    SCP_TRACK_HEADER_SIZE,
    SCP_TRACK_OFFSET_COUNT,
    SCP_TRACK_TABLE_END,
)

# Timings exercising zero, single-byte, boundary and multi-byte encodings
SAMPLE_TIMINGS = [0, 1, 80, 160, 254, 255, 256, 509, 510, 1000, 65535, 70000]


@dataclass
class SampleCapture:
    """
    One capture to write into a test image.

    Attributes:
        head: Physical head
        track: Physical track
        sub_track: Physical sub-track
        capture_index: Slot of the capture at its address
        resolution: Resolution in picoseconds
        index: Index stream bytes
        data: Data stream bytes
    """
    head: int
    track: int
    sub_track: int
    capture_index: int
    resolution: int
    index: bytes
    data: bytes


def create_sample_captures() -> List[SampleCapture]:
    """Captures at three addresses, including two re-reads and empty streams."""
    return [
        SampleCapture(0, 0, 0, 0, 25000, encode_flux([8000000 // 25]), encode_flux([80, 160, 120])),
        SampleCapture(0, 0, 0, 1, 25000, encode_flux([8000000 // 25]), encode_flux([81, 159, 121])),
        SampleCapture(1, 0, 0, 0, 13889, encode_flux([14400]), encode_flux([144, 288, 216, 1000])),
        SampleCapture(0, 1, 2, 0, 500, b'', b''),
    ]


def create_archive_file(path: Path, captures: Optional[Sequence[SampleCapture]] = None,
                        metadata: Optional[ImageMetadata] = None,
                        floppy_info: Optional[FloppyInfo] = None) -> Path:
    """Write captures into a new FLUXARC archive at path."""
    if captures is None:
        captures = create_sample_captures()

    image = WritableFluxArchiveImage()
    image.create(str(path), metadata=metadata, floppy_info=floppy_info)
    for capture in captures:
        image.write_flux_capture(capture.resolution, capture.index, capture.data,
                                 capture.head, capture.track, capture.sub_track,
                                 capture.capture_index)
    image.close()
    return path


# =============================================================================
# SCP
# =============================================================================

def encode_scp_words(flux: Sequence[int]) -> bytes:
    """
    Encode tick durations as SCP big-endian flux words.

    Durations of 65536 or more are written as zero words followed by the
    remainder.
    """
    out = bytearray()
    for value in flux:
        carries, remainder = divmod(value, 0x10000)
        if remainder == 0:
            raise ValueError(f"Cannot encode {value} ticks as SCP flux words")
        out.extend(b'\x00\x00' * carries)
        out.extend(struct.pack('>H', remainder))
    return bytes(out)


def build_scp_bytes(tracks: Dict[int, List[Tuple[int, List[int]]]],
                    resolution: int = 0,
                    heads: int = 0,
                    flags: int = SCP_FLAG_INDEX | SCP_FLAG_TPI_96,
                    version: int = 0x19,
                    bit_cell_width: int = 0,
                    revolutions: Optional[int] = None) -> bytes:
    """
    Build a SuperCard Pro image.

    Args:
        tracks: SCP track number -> list of (index_ticks, flux_ticks) per revolution
        resolution: Header resolution byte (tick = 25ns * (resolution + 1))
        heads: Header heads byte (0 = both sides)
        flags: Header flags
        version: Header version byte (high nibble major, low nibble minor)
        bit_cell_width: Header bit cell width byte
        revolutions: Header revolution count (default: from the first track)

    Returns:
        Complete file contents
    """
    if revolutions is None:
        revolutions = len(next(iter(tracks.values()))) if tracks else 1
    start_track = min(tracks) if tracks else 0
    end_track = max(tracks) if tracks else 0

    header = b'SCP' + struct.pack('<9BI', version, 0x80, revolutions, start_track, end_track,
                                  flags, bit_cell_width, heads, resolution, 0)

    offsets = [0] * SCP_TRACK_OFFSET_COUNT
    blocks = bytearray()
    for track_number in sorted(tracks):
        offsets[track_number] = SCP_TRACK_TABLE_END + len(blocks)

        words = [encode_scp_words(flux) for _, flux in tracks[track_number]]
        block = bytearray(b'TRK' + bytes([track_number]))
        data_offset = SCP_TRACK_HEADER_SIZE + len(words) * SCP_REVOLUTION_ENTRY_SIZE
        for (index_ticks, flux), encoded in zip(tracks[track_number], words):
            block.extend(struct.pack('<III', index_ticks, len(encoded) // 2, data_offset))
            data_offset += len(encoded)
        for encoded in words:
            block.extend(encoded)
        blocks.extend(block)

    table = struct.pack(f'<{SCP_TRACK_OFFSET_COUNT}I', *offsets)
    return header + table + bytes(blocks)


def create_scp_file(path: Path, tracks: Optional[Dict[int, List[Tuple[int, List[int]]]]] = None,
                    **kwargs) -> Path:
    """
    Write an SCP image to path.

    The default image holds SCP tracks 0, 1 and 4 (cylinders 0 and 2) with
    two revolutions each.
    """
    if tracks is None:
        tracks = {
            0: [(8000000, [80, 160, 120]), (8000010, [81, 159, 70000])],
            1: [(7999990, [100, 200]), (8000001, [101, 199])],
            4: [(8000002, [40, 80, 120, 160]), (8000003, [41, 79, 121, 159])],
        }
    path.write_bytes(build_scp_bytes(tracks, **kwargs))
    return path
