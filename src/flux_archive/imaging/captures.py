"""
Capture addressing and the immutable capture record.

A capture is one physical read of one track location: a resolution in
picoseconds plus an index stream and a data stream. Streams are opaque
payloads; only their timebase is known here.
"""

import operator
from dataclasses import dataclass
from typing import Any

from .image_formats import InvalidCaptureError


# =============================================================================
# Constants
# =============================================================================

MAX_HEAD = 0xFFFFFFFF         # unsigned 32-bit
MAX_TRACK = 0xFFFF            # unsigned 16-bit
MAX_SUB_TRACK = 0xFF          # unsigned 8-bit
MAX_CAPTURE_INDEX = 0xFFFFFFFF
MAX_RESOLUTION_PS = 0xFFFFFFFFFFFFFFFF  # unsigned 64-bit


def _as_int(value: Any, argument: str) -> int:
    """Coerce an integer-like argument, rejecting floats and strings."""
    try:
        return operator.index(value)
    except TypeError:
        raise InvalidCaptureError(
            f"{argument} must be an integer, got {type(value).__name__}",
            argument=argument,
        ) from None


def _as_stream(value: Any, argument: str) -> bytes:
    """Copy a bytes-like stream into an immutable bytes object."""
    if value is None:
        raise InvalidCaptureError(f"{argument} stream must not be None", argument=argument)
    if isinstance(value, str):
        raise InvalidCaptureError(f"{argument} stream must be bytes-like, got str",
                                  argument=argument)
    try:
        return bytes(memoryview(value))
    except TypeError:
        raise InvalidCaptureError(
            f"{argument} stream must be bytes-like, got {type(value).__name__}",
            argument=argument,
        ) from None


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True, order=True)
class CaptureAddress:
    """
    Physical location of a capture.

    Attributes:
        head: Physical head (0-based)
        track: Physical track, the position of the heads over the media (0-based)
        sub_track: Physical sub-step of the track (e.g. half-track)
    """
    head: int
    track: int
    sub_track: int = 0

    @property
    def in_range(self) -> bool:
        """True when every component fits its unsigned width."""
        return (
            isinstance(self.head, int) and 0 <= self.head <= MAX_HEAD
            and isinstance(self.track, int) and 0 <= self.track <= MAX_TRACK
            and isinstance(self.sub_track, int) and 0 <= self.sub_track <= MAX_SUB_TRACK
        )

    @classmethod
    def checked(cls, head: Any, track: Any, sub_track: Any = 0) -> "CaptureAddress":
        """
        Build an address, validating each component.

        Raises:
            InvalidCaptureError: If a component is not an integer or
                does not fit its unsigned width
        """
        head = _as_int(head, 'head')
        track = _as_int(track, 'track')
        sub_track = _as_int(sub_track, 'sub_track')

        if not 0 <= head <= MAX_HEAD:
            raise InvalidCaptureError(f"Head {head} out of range 0-{MAX_HEAD}", argument='head')
        if not 0 <= track <= MAX_TRACK:
            raise InvalidCaptureError(f"Track {track} out of range 0-{MAX_TRACK}",
                                      argument='track')
        if not 0 <= sub_track <= MAX_SUB_TRACK:
            raise InvalidCaptureError(f"Sub-track {sub_track} out of range 0-{MAX_SUB_TRACK}",
                                      argument='sub_track')

        return cls(head, track, sub_track)

    def __str__(self) -> str:
        return f"H{self.head}:T{self.track}.{self.sub_track}"


@dataclass(frozen=True)
class CaptureRecord:
    """
    One stored flux capture.

    Attributes:
        resolution_ps: Duration, in picoseconds, of one unit in the streams
        index_stream: Index/servo pulse transitions (opaque)
        data_stream: Data flux transitions (opaque)
    """
    resolution_ps: int
    index_stream: bytes
    data_stream: bytes

    def __post_init__(self):
        if not 0 < self.resolution_ps <= MAX_RESOLUTION_PS:
            raise InvalidCaptureError(
                f"Resolution must be between 1 and {MAX_RESOLUTION_PS} ps, "
                f"got {self.resolution_ps}",
                argument='resolution',
            )

    @classmethod
    def create(cls, resolution: Any, index: Any, data: Any) -> "CaptureRecord":
        """
        Validate caller input and build a record holding private copies.

        Raises:
            InvalidCaptureError: If the resolution is zero or out of range,
                or a stream is None or not bytes-like
        """
        resolution = _as_int(resolution, 'resolution')
        if resolution <= 0:
            raise InvalidCaptureError(f"Resolution must be non-zero, got {resolution}",
                                      argument='resolution')
        return cls(
            resolution_ps=resolution,
            index_stream=_as_stream(index, 'index'),
            data_stream=_as_stream(data, 'data'),
        )

    @property
    def size(self) -> int:
        """Total payload bytes of both streams."""
        return len(self.index_stream) + len(self.data_stream)
