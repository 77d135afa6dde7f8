"""
SuperCard Pro (SCP) flux images exposed through the read contract.

SCP stores raw flux transition timings for each track, with several
revolutions per track. Every revolution becomes one capture at
(head, track, 0); SCP has no sub-track stepping and one capture clock
per file, so the format is read-only here.

File Structure:
    - 16-byte header
    - Track offset table (168 entries of 4 bytes, indexed by cylinder*2+side)
    - Track data blocks: "TRK" + track number, one 12-byte entry per
      revolution (index time, flux count, data offset), then flux words
"""

import logging
import struct
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from flux_archive.core.settings import get_settings
from flux_archive.hardware.flux_codec import encode_flux, resolution_from_sample_freq

from .captures import CaptureAddress, CaptureRecord
from .flux_image import FluxImage
from .flux_store import CaptureStore
from .image_formats import (
    SCP_MAGIC,
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

SCP_HEADER_SIZE = 16
SCP_TRACK_OFFSET_COUNT = 168
SCP_TRACK_TABLE_END = SCP_HEADER_SIZE + SCP_TRACK_OFFSET_COUNT * 4   # 0x2B0
SCP_TRACK_HEADER_SIZE = 4
SCP_REVOLUTION_ENTRY_SIZE = 12

# SCP flags
SCP_FLAG_INDEX = 0x01        # Index mark stored
SCP_FLAG_TPI_96 = 0x02       # 96 TPI drive
SCP_FLAG_RPM_360 = 0x04      # 360 RPM drive
SCP_FLAG_NORMALIZED = 0x08   # Flux normalized
SCP_FLAG_READ_WRITE = 0x10   # R/W capable
SCP_FLAG_FOOTER = 0x20       # Has footer

# Flux word carry: a zero word adds 65536 ticks to the next word
SCP_FLUX_CARRY = 0x10000


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class SCPHeader:
    """
    SCP file header structure.

    Attributes:
        version: File format version
        disk_type: Type of disk (PC, Amiga, etc.)
        num_revolutions: Number of revolutions per track
        start_track: First track number
        end_track: Last track number
        flags: Format flags
        bit_cell_width: Bit cell encoding (0=16bit)
        heads: Head configuration (0=both, 1=side 0, 2=side 1)
        resolution: Capture resolution in 25ns units minus one
        checksum: Data checksum
    """
    version: int
    disk_type: int
    num_revolutions: int
    start_track: int
    end_track: int
    flags: int
    bit_cell_width: int
    heads: int
    resolution: int
    checksum: int


@dataclass(frozen=True)
class SCPRevolution:
    """One revolution entry of a track block."""
    index_ticks: int
    flux_count: int
    data_offset: int


# =============================================================================
# Parsing
# =============================================================================

def parse_scp_header(data: bytes, filepath: str) -> SCPHeader:
    """Parse the fixed 16-byte header."""
    if len(data) < SCP_HEADER_SIZE:
        raise ImageCorruptError("File too small for SCP header", filepath,
                                expected_size=SCP_HEADER_SIZE, actual_size=len(data))
    if data[:3] != SCP_MAGIC:
        raise ImageFormatError("Invalid SCP magic bytes", filepath)

    (version, disk_type, revolutions, start_track, end_track, flags,
     bit_cell_width, heads, resolution, checksum) = struct.unpack_from('<9BI', data, 3)

    return SCPHeader(
        version=version,
        disk_type=disk_type,
        num_revolutions=revolutions,
        start_track=start_track,
        end_track=end_track,
        flags=flags,
        bit_cell_width=bit_cell_width,
        heads=heads,
        resolution=resolution,
        checksum=checksum,
    )


def decode_flux_words(segment: bytes) -> List[int]:
    """
    Decode SCP flux words into tick durations.

    Each flux time is a big-endian 16-bit value; a word of 0 adds 65536
    ticks to the next non-zero value.
    """
    words = np.frombuffer(segment, dtype='>u2').astype(np.uint64)
    nonzero = np.flatnonzero(words)
    # Zero words seen before each non-zero word, then per gap
    zeros_before = np.cumsum(words == 0)[nonzero]
    carries = np.diff(zeros_before, prepend=0).astype(np.uint64)
    return (words[nonzero] + carries * SCP_FLUX_CARRY).tolist()


def scp_track_address(track_number: int) -> CaptureAddress:
    """Map an SCP track number (cylinder*2 + side) to a capture address."""
    return CaptureAddress(head=track_number % 2, track=track_number // 2, sub_track=0)


def read_scp_track(data: bytes, filepath: str, track_number: int, track_offset: int,
                   num_revolutions: int) -> List[Tuple[int, List[int]]]:
    """
    Read every revolution of one track block.

    Returns:
        List of (index_ticks, flux_ticks) per revolution

    Raises:
        ImageCorruptError: If the block is truncated or mislabelled
    """
    header_len = SCP_TRACK_HEADER_SIZE + num_revolutions * SCP_REVOLUTION_ENTRY_SIZE
    if track_offset + header_len > len(data):
        raise ImageCorruptError(f"Track {track_number} header beyond end of file", filepath)

    if data[track_offset:track_offset + 3] != b'TRK':
        raise ImageCorruptError(f"Track {track_number} missing TRK signature", filepath)
    stored_number = data[track_offset + 3]
    if stored_number != track_number:
        raise ImageCorruptError(
            f"Track header number {stored_number} does not match expected {track_number}",
            filepath)

    revolutions = []
    for rev in range(num_revolutions):
        entry_offset = track_offset + SCP_TRACK_HEADER_SIZE + rev * SCP_REVOLUTION_ENTRY_SIZE
        revolutions.append(SCPRevolution(*struct.unpack_from('<III', data, entry_offset)))

    result = []
    for rev, entry in enumerate(revolutions):
        start = track_offset + entry.data_offset
        end = start + entry.flux_count * 2
        if end > len(data):
            raise ImageCorruptError(
                f"Track {track_number} revolution {rev} flux data truncated", filepath,
                expected_size=end, actual_size=len(data))
        result.append((entry.index_ticks, decode_flux_words(data[start:end])))
    return result


# =============================================================================
# Image Class
# =============================================================================

class SCPFluxImage(FluxImage):
    """
    SuperCard Pro flux image, read capability only.

    Example:
        image = SCPFluxImage()
        image.open("disk.scp")
        revolutions = image.captures_length(0, 0, 0)
    """

    format = ImageFormat.SCP

    def __init__(self):
        super().__init__()
        self._header: Optional[SCPHeader] = None

    @property
    def header(self) -> SCPHeader:
        return self._header

    @classmethod
    def identify(cls, filepath: str) -> bool:
        try:
            with open(filepath, 'rb') as f:
                return f.read(3) == SCP_MAGIC
        except OSError as e:
            raise ImageReadError(f"Failed to read file: {e}", filepath) from e

    def _load(self, data: bytes, filepath: str, store: CaptureStore) -> None:
        header = parse_scp_header(data, filepath)

        if header.bit_cell_width not in (0, 16):
            raise ImageFormatError(
                f"Unsupported SCP bit cell width {header.bit_cell_width}", filepath)
        if header.num_revolutions == 0:
            raise ImageCorruptError("SCP header declares zero revolutions", filepath)
        if len(data) < SCP_TRACK_TABLE_END:
            raise ImageCorruptError("File too small for track offset table", filepath,
                                    expected_size=SCP_TRACK_TABLE_END, actual_size=len(data))

        offsets = struct.unpack_from(f'<{SCP_TRACK_OFFSET_COUNT}I', data, SCP_HEADER_SIZE)

        sample_freq = get_settings().scp.sample_freq_hz
        resolution_ps = resolution_from_sample_freq(sample_freq) * (header.resolution + 1)

        max_track = 0
        for track_number in range(header.start_track,
                                  min(header.end_track, SCP_TRACK_OFFSET_COUNT - 1) + 1):
            track_offset = offsets[track_number]
            if not track_offset:
                continue

            address = scp_track_address(track_number)
            revolutions = read_scp_track(data, filepath, track_number, track_offset,
                                         header.num_revolutions)
            for capture_index, (index_ticks, flux) in enumerate(revolutions):
                record = CaptureRecord(
                    resolution_ps=resolution_ps,
                    index_stream=encode_flux([index_ticks]),
                    data_stream=encode_flux(flux),
                )
                store.put_record(address, capture_index, record)
            max_track = max(max_track, address.track)

        self._header = header
        self._metadata = ImageMetadata(
            format=self.format,
            version=f"{header.version >> 4}.{header.version & 0x0F}",
            application="SuperCard Pro",
            application_version=f"{header.version >> 4}.{header.version & 0x0F}",
        )
        self._floppy_info = FloppyInfo(
            tracks=max_track + 1 if store.addresses() else 0,
            heads=2 if header.heads == 0 else 1,
            track_density=96 if header.flags & SCP_FLAG_TPI_96 else 48,
        )

        logger.debug("SCP header: version %d.%d, %d revolutions, tracks %d-%d, %d ps",
                     header.version >> 4, header.version & 0x0F, header.num_revolutions,
                     header.start_track, header.end_track, resolution_ps)
