"""
Flux stream representation shared by the image backends.

A capture stream is a sequence of transition timings, each an integer
number of resolution units. On disk and in memory each timing t is held
as t // 255 bytes of 0xFF followed by a single byte t % 255, so values
of any size fit in a byte stream and 0xFF never terminates a timing.

Example:
    encode_flux([10, 300])        # -> b'\\x0a\\xff\\x2d'
    decode_flux(b'\\x0a\\xff\\x2d')  # -> array([ 10, 300], dtype=uint64)
"""

import logging
from typing import Iterable, Union

import numpy as np

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

FLUX_CARRY = 0xFF         # byte value continuing a timing
PICOSECONDS_PER_SECOND = 1_000_000_000_000


# =============================================================================
# Encoding / Decoding
# =============================================================================

def encode_flux(timings: Iterable[int]) -> bytes:
    """
    Encode transition timings into a flux stream.

    Args:
        timings: Timings in resolution units, each >= 0

    Returns:
        Encoded stream bytes

    Raises:
        ValueError: If any timing is negative
    """
    values = np.asarray(list(timings), dtype=np.int64)
    if values.size and int(values.min()) < 0:
        raise ValueError("Flux timings must not be negative")

    out = bytearray()
    for value in values.tolist():
        carries, remainder = divmod(value, FLUX_CARRY)
        out.extend(b'\xff' * carries)
        out.append(remainder)
    return bytes(out)


def decode_flux(data: Union[bytes, bytearray, memoryview]) -> np.ndarray:
    """
    Decode a flux stream into transition timings.

    Args:
        data: Encoded stream bytes

    Returns:
        numpy uint64 array of timings in resolution units

    Raises:
        ValueError: If the stream ends inside a timing
    """
    raw = np.frombuffer(bytes(data), dtype=np.uint8)
    if raw.size == 0:
        return np.zeros(0, dtype=np.uint64)

    terminators = np.flatnonzero(raw != FLUX_CARRY)
    if terminators.size == 0 or terminators[-1] != raw.size - 1:
        raise ValueError("Flux stream ends inside a timing")

    starts = np.concatenate(([0], terminators[:-1] + 1))
    carries = (terminators - starts).astype(np.uint64)
    return carries * np.uint64(FLUX_CARRY) + raw[terminators].astype(np.uint64)


# =============================================================================
# Timebase Helpers
# =============================================================================

def resolution_from_sample_freq(sample_freq_hz: int) -> int:
    """
    Resolution in picoseconds of one tick of a sampling clock.

    Example:
        resolution_from_sample_freq(40_000_000)   # -> 25000 (SCP)
        resolution_from_sample_freq(72_000_000)   # -> 13889 (Greaseweazle F7)
    """
    if sample_freq_hz <= 0:
        raise ValueError(f"Sample frequency must be positive, got {sample_freq_hz}")
    return max(1, round(PICOSECONDS_PER_SECOND / sample_freq_hz))


def flux_to_picoseconds(timings: np.ndarray, resolution_ps: int) -> np.ndarray:
    """Convert timings in resolution units to picoseconds."""
    return np.asarray(timings, dtype=np.uint64) * np.uint64(resolution_ps)


def total_duration_ps(data: bytes, resolution_ps: int) -> int:
    """Total duration in picoseconds covered by an encoded stream."""
    return int(decode_flux(data).sum()) * resolution_ps
