"""
In-memory capture store backing every flux image.

The store maps each CaptureAddress to an ordered, contiguous list of
CaptureRecords. It is the only mutable state of an image; backends fill
it on open and serialize it on close.

Concurrency:
    Writers are serialized by an internal lock. Records are immutable and
    are installed with a single list operation, so readers never take the
    lock and never observe a partially written record.
"""

import logging
import operator
import threading
from typing import Any, Dict, Iterator, List, Tuple

from .captures import CaptureAddress, CaptureRecord, MAX_CAPTURE_INDEX
from .image_formats import CaptureOutOfRangeError, InvalidCaptureError

logger = logging.getLogger(__name__)


class CaptureStore:
    """
    Sparse map from physical address to its capture set.

    Example:
        store = CaptureStore()
        store.write_capture(500, b'\\x10', b'\\x01\\x02', 0, 0, 0, 0)
        store.captures_length(0, 0, 0)   # -> 1
        store.get_record(0, 0, 0, 0).resolution_ps   # -> 500
    """

    def __init__(self, max_stream_bytes: int = 0):
        """
        Initialize an empty store.

        Args:
            max_stream_bytes: Largest accepted stream, 0 for unlimited
        """
        self._captures: Dict[CaptureAddress, List[CaptureRecord]] = {}
        self._write_lock = threading.Lock()
        self._max_stream_bytes = max_stream_bytes

    # =========================================================================
    # Address Space
    # =========================================================================

    def captures_length(self, head: int, track: int, sub_track: int) -> int:
        """
        Number of captures stored at an address.

        Returns 0 for any address never written, including addresses whose
        components do not fit their unsigned widths. Never raises.
        """
        try:
            captures = self._captures.get(CaptureAddress(head, track, sub_track))
        except TypeError:
            # Unhashable component, cannot be a stored address
            return 0
        return len(captures) if captures else 0

    def addresses(self) -> List[CaptureAddress]:
        """Sorted addresses holding at least one capture."""
        return sorted(address for address, captures in list(self._captures.items()) if captures)

    def total_captures(self) -> int:
        """Total captures across all addresses."""
        return sum(len(captures) for captures in list(self._captures.values()))

    def __len__(self) -> int:
        return self.total_captures()

    def __contains__(self, address: Any) -> bool:
        return bool(self._captures.get(address))

    def clear(self) -> None:
        """Discard every capture set."""
        with self._write_lock:
            self._captures = {}
        logger.debug("Capture store cleared")

    # =========================================================================
    # Read Path
    # =========================================================================

    def get_record(self, head: int, track: int, sub_track: int,
                   capture_index: int) -> CaptureRecord:
        """
        Look up one capture.

        Raises:
            CaptureOutOfRangeError: If no capture exists at that index
            InvalidCaptureError: If capture_index is not an integer
        """
        index = self._capture_index(capture_index)
        address = CaptureAddress(head, track, sub_track)

        try:
            captures = self._captures.get(address, ())
        except TypeError:
            captures = ()

        # Local reference; concurrent appends only grow the list
        length = len(captures)
        if index < 0 or index >= length:
            raise CaptureOutOfRangeError(
                f"No capture {index} at {address}",
                address=address,
                capture_index=index,
                captures_length=length,
            )
        return captures[index]

    def iter_records(self) -> Iterator[Tuple[CaptureAddress, int, CaptureRecord]]:
        """Yield (address, capture_index, record) ordered by address then index."""
        for address in self.addresses():
            for index, record in enumerate(list(self._captures[address])):
                yield address, index, record

    # =========================================================================
    # Write Path
    # =========================================================================

    def write_capture(self, resolution: Any, index: Any, data: Any,
                      head: Any, track: Any, sub_track: Any,
                      capture_index: Any) -> bool:
        """
        Append or overwrite a capture.

        Args:
            resolution: Resolution of the capture in picoseconds (> 0)
            index: Index stream bytes (may be empty)
            data: Data stream bytes (may be empty)
            head: Physical head
            track: Physical track
            sub_track: Physical sub-track
            capture_index: Slot to write; equal to the current length appends,
                lower overwrites in place

        Returns:
            True if the capture was appended, False if it replaced one

        Raises:
            InvalidCaptureError: If any argument is invalid or capture_index
                would leave a gap
        """
        record = CaptureRecord.create(resolution, index, data)
        address = CaptureAddress.checked(head, track, sub_track)
        slot = self._capture_index(capture_index)

        if not 0 <= slot <= MAX_CAPTURE_INDEX:
            raise InvalidCaptureError(f"Capture index {slot} out of range",
                                      argument='capture_index')

        self._check_stream_size(record)
        return self.put_record(address, slot, record)

    def put_record(self, address: CaptureAddress, capture_index: int,
                   record: CaptureRecord) -> bool:
        """
        Install an already validated record.

        Returns:
            True if the record was appended, False if it replaced one

        Raises:
            InvalidCaptureError: If capture_index is beyond the append point
        """
        with self._write_lock:
            captures = self._captures.get(address)
            length = len(captures) if captures else 0

            if capture_index > length:
                raise InvalidCaptureError(
                    f"Capture index {capture_index} at {address} would leave a gap; "
                    f"next free index is {length}",
                    argument='capture_index',
                )

            if captures is None:
                self._captures[address] = [record]
                appended = True
            elif capture_index == length:
                captures.append(record)
                appended = True
            else:
                captures[capture_index] = record
                appended = False

        logger.debug(
            "%s capture %d at %s (%d ps, index %d bytes, data %d bytes)",
            "Appended" if appended else "Replaced", capture_index, address,
            record.resolution_ps, len(record.index_stream), len(record.data_stream),
        )
        return appended

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _capture_index(capture_index: Any) -> int:
        try:
            return operator.index(capture_index)
        except TypeError:
            raise InvalidCaptureError(
                f"Capture index must be an integer, got {type(capture_index).__name__}",
                argument='capture_index',
            ) from None

    def _check_stream_size(self, record: CaptureRecord) -> None:
        limit = self._max_stream_bytes
        if not limit:
            return
        for name, stream in (('index', record.index_stream), ('data', record.data_stream)):
            if len(stream) > limit:
                raise InvalidCaptureError(
                    f"{name.capitalize()} stream of {len(stream)} bytes exceeds "
                    f"the {limit} byte limit",
                    argument=name,
                )
