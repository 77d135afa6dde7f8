"""
Unit tests for the capture store.

Tests the append invariant, gapped writes, out-of-range reads, argument
validation and concurrent access.
"""

import threading

import pytest

from flux_archive.imaging import (
    CaptureAddress,
    CaptureOutOfRangeError,
    CaptureStore,
    ErrorKind,
    InvalidCaptureError,
)


@pytest.fixture
def store():
    """Empty capture store fixture."""
    return CaptureStore()


class TestCapturesLength:
    """Test capture counting."""

    def test_unwritten_address_is_zero(self, store):
        """Test an address never written has no captures."""
        assert store.captures_length(0, 0, 0) == 0
        assert store.captures_length(1, 79, 3) == 0

    @pytest.mark.parametrize("head,track,sub_track", [
        (-1, 0, 0),
        (1 << 40, 0, 0),
        (0, 70000, 0),
        (0, 0, 300),
        ([0], 0, 0),
    ])
    def test_never_raises(self, store, head, track, sub_track):
        """Test out-of-width and unhashable components return zero."""
        assert store.captures_length(head, track, sub_track) == 0

    def test_counts_per_address(self, store):
        """Test addresses are counted independently."""
        store.write_capture(500, b'', b'\x01', 0, 0, 0, 0)
        store.write_capture(500, b'', b'\x02', 0, 0, 0, 1)
        store.write_capture(500, b'', b'\x03', 1, 0, 0, 0)

        assert store.captures_length(0, 0, 0) == 2
        assert store.captures_length(1, 0, 0) == 1
        assert store.captures_length(0, 0, 1) == 0
        assert store.total_captures() == 3
        assert len(store) == 3


class TestWriteCapture:
    """Test appending and overwriting captures."""

    def test_append_increments_length(self, store):
        """Test each append at captures_length grows the set by one."""
        for i in range(5):
            assert store.write_capture(25000, b'', bytes([i]), 0, 0, 0, i) is True
            assert store.captures_length(0, 0, 0) == i + 1

    def test_overwrite_keeps_length(self, store):
        """Test writing below captures_length replaces in place."""
        for i in range(3):
            store.write_capture(25000, b'', bytes([i]), 0, 0, 0, i)

        assert store.write_capture(300, b'\x09', b'\xAA', 0, 0, 0, 1) is False

        assert store.captures_length(0, 0, 0) == 3
        record = store.get_record(0, 0, 0, 1)
        assert record.resolution_ps == 300
        assert record.data_stream == b'\xAA'
        assert store.get_record(0, 0, 0, 0).data_stream == b'\x00'
        assert store.get_record(0, 0, 0, 2).data_stream == b'\x02'

    def test_gapped_write_rejected(self, store):
        """Test writing beyond captures_length fails and changes nothing."""
        store.write_capture(500, b'', b'\x01', 0, 0, 0, 0)

        with pytest.raises(InvalidCaptureError) as exc_info:
            store.write_capture(500, b'', b'\x02', 0, 0, 0, 2)

        assert exc_info.value.kind == ErrorKind.INVALID_ARGUMENT
        assert store.captures_length(0, 0, 0) == 1

    def test_gapped_first_write_rejected(self, store):
        """Test a first write must use capture index 0."""
        with pytest.raises(InvalidCaptureError):
            store.write_capture(500, b'', b'', 0, 0, 0, 1)

        assert store.captures_length(0, 0, 0) == 0
        assert store.addresses() == []

    def test_zero_resolution_rejected(self, store):
        """Test zero resolution fails and the count is unchanged."""
        store.write_capture(500, b'', b'\x01', 0, 0, 0, 0)

        with pytest.raises(InvalidCaptureError) as exc_info:
            store.write_capture(0, b'', b'\x02', 0, 0, 0, 1)

        assert exc_info.value.argument == 'resolution'
        assert store.captures_length(0, 0, 0) == 1

    def test_resolution_checked_before_capture_index(self, store):
        """Test a bad resolution is reported even when the index is also bad."""
        with pytest.raises(InvalidCaptureError) as exc_info:
            store.write_capture(0, b'', b'', 0, 0, 0, 7)

        assert exc_info.value.argument == 'resolution'

    def test_none_stream_rejected(self, store):
        """Test absent streams are invalid."""
        with pytest.raises(InvalidCaptureError):
            store.write_capture(500, None, b'', 0, 0, 0, 0)

        assert store.captures_length(0, 0, 0) == 0

    @pytest.mark.parametrize("head,track,sub_track,argument", [
        (1 << 32, 0, 0, 'head'),
        (0, 1 << 16, 0, 'track'),
        (0, 0, 256, 'sub_track'),
        (-1, 0, 0, 'head'),
    ])
    def test_address_out_of_width_rejected(self, store, head, track, sub_track, argument):
        """Test address components must fit their unsigned widths."""
        with pytest.raises(InvalidCaptureError) as exc_info:
            store.write_capture(500, b'', b'', head, track, sub_track, 0)

        assert exc_info.value.argument == argument

    def test_negative_capture_index_rejected(self, store):
        """Test negative capture indices on write."""
        with pytest.raises(InvalidCaptureError):
            store.write_capture(500, b'', b'', 0, 0, 0, -1)

    def test_stream_size_limit(self):
        """Test the configured per-stream limit."""
        store = CaptureStore(max_stream_bytes=4)

        store.write_capture(500, b'\x01', b'\x01\x02\x03\x04', 0, 0, 0, 0)
        with pytest.raises(InvalidCaptureError) as exc_info:
            store.write_capture(500, b'', b'\x01\x02\x03\x04\x05', 0, 0, 0, 1)

        assert exc_info.value.argument == 'data'
        assert store.captures_length(0, 0, 0) == 1


class TestReadCapture:
    """Test reading stored captures."""

    def test_round_trip(self, store):
        """Test a written capture reads back unchanged."""
        store.write_capture(25000, b'\x10\x20', b'\x01\x02\x03', 1, 40, 2, 0)

        record = store.get_record(1, 40, 2, 0)

        assert record.resolution_ps == 25000
        assert record.index_stream == b'\x10\x20'
        assert record.data_stream == b'\x01\x02\x03'

    def test_round_trip_empty_streams(self, store):
        """Test empty streams survive storage."""
        store.write_capture(1, b'', b'', 0, 0, 0, 0)

        record = store.get_record(0, 0, 0, 0)

        assert record.index_stream == b''
        assert record.data_stream == b''

    @pytest.mark.parametrize("capture_index", [1, 2, 100, -1])
    def test_out_of_range_read(self, store, capture_index):
        """Test reads at or beyond captures_length."""
        store.write_capture(500, b'', b'\x01', 0, 0, 0, 0)

        with pytest.raises(CaptureOutOfRangeError) as exc_info:
            store.get_record(0, 0, 0, capture_index)

        assert exc_info.value.kind == ErrorKind.OUT_OF_RANGE
        assert exc_info.value.captures_length == 1

    def test_out_of_range_is_index_error(self, store):
        """Test out-of-range reads can be caught as IndexError."""
        with pytest.raises(IndexError):
            store.get_record(3, 3, 3, 0)

    def test_non_integer_capture_index(self, store):
        """Test non-integer capture index on read."""
        store.write_capture(500, b'', b'', 0, 0, 0, 0)

        with pytest.raises(InvalidCaptureError):
            store.get_record(0, 0, 0, 0.0)

    def test_two_resolutions_at_one_address(self, store):
        """Test captures at different resolutions do not mix."""
        store.write_capture(500, b'\x01', b'\x0A\x0B', 0, 0, 0, 0)
        store.write_capture(300, b'\x02', b'\x0C', 0, 0, 0, 1)

        first = store.get_record(0, 0, 0, 0)
        second = store.get_record(0, 0, 0, 1)

        assert (first.resolution_ps, first.index_stream, first.data_stream) == \
            (500, b'\x01', b'\x0A\x0B')
        assert (second.resolution_ps, second.index_stream, second.data_stream) == \
            (300, b'\x02', b'\x0C')


class TestCaptureScenario:
    """Test a full append/gap/append/read sequence at one address."""

    def test_scenario(self, store):
        """Test append, rejected gap at 5, append at 1, out-of-range read at 5."""
        assert store.captures_length(0, 0, 0) == 0

        store.write_capture(25000, b'\x64', b'\x01\x02', 0, 0, 0, 0)
        assert store.captures_length(0, 0, 0) == 1

        with pytest.raises(InvalidCaptureError):
            store.write_capture(25000, b'\x64', b'\x03', 0, 0, 0, 5)
        assert store.captures_length(0, 0, 0) == 1

        store.write_capture(25000, b'\x64', b'\x04', 0, 0, 0, 1)
        assert store.captures_length(0, 0, 0) == 2

        with pytest.raises(CaptureOutOfRangeError):
            store.get_record(0, 0, 0, 5)


class TestAddressSpace:
    """Test address enumeration and housekeeping."""

    def test_addresses_sorted(self, store):
        """Test addresses are returned in order."""
        store.write_capture(500, b'', b'', 1, 0, 0, 0)
        store.write_capture(500, b'', b'', 0, 2, 0, 0)
        store.write_capture(500, b'', b'', 0, 0, 1, 0)

        assert store.addresses() == [
            CaptureAddress(0, 0, 1),
            CaptureAddress(0, 2, 0),
            CaptureAddress(1, 0, 0),
        ]
        assert CaptureAddress(0, 2, 0) in store
        assert CaptureAddress(0, 3, 0) not in store

    def test_iter_records_order(self, store):
        """Test records are yielded by address then capture index."""
        store.write_capture(500, b'', b'\x02', 1, 0, 0, 0)
        store.write_capture(500, b'', b'\x00', 0, 0, 0, 0)
        store.write_capture(500, b'', b'\x01', 0, 0, 0, 1)

        order = [(address, index, record.data_stream)
                 for address, index, record in store.iter_records()]

        assert order == [
            (CaptureAddress(0, 0, 0), 0, b'\x00'),
            (CaptureAddress(0, 0, 0), 1, b'\x01'),
            (CaptureAddress(1, 0, 0), 0, b'\x02'),
        ]

    def test_clear(self, store):
        """Test clearing discards every capture."""
        store.write_capture(500, b'', b'', 0, 0, 0, 0)

        store.clear()

        assert store.captures_length(0, 0, 0) == 0
        assert store.total_captures() == 0


class TestConcurrency:
    """Test concurrent writers and readers."""

    def test_concurrent_writers_to_distinct_addresses(self, store):
        """Test parallel appends to different addresses are all kept in order."""
        per_thread = 200

        def writer(head):
            for i in range(per_thread):
                store.write_capture(500 + head, b'', i.to_bytes(2, 'little'), head, 0, 0, i)

        threads = [threading.Thread(target=writer, args=(head,)) for head in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        for head in range(8):
            assert store.captures_length(head, 0, 0) == per_thread
            for i in (0, per_thread // 2, per_thread - 1):
                record = store.get_record(head, 0, 0, i)
                assert record.resolution_ps == 500 + head
                assert record.data_stream == i.to_bytes(2, 'little')

    def test_readers_see_complete_records(self, store):
        """Test reads during writes to another address never fail."""
        store.write_capture(25000, b'\x01', b'\x02\x03', 0, 0, 0, 0)
        errors = []
        done = threading.Event()

        def reader():
            while not done.is_set():
                record = store.get_record(0, 0, 0, 0)
                if (record.resolution_ps, record.data_stream) != (25000, b'\x02\x03'):
                    errors.append(record)

        def writer():
            for i in range(500):
                store.write_capture(300, b'', bytes([i % 256]), 1, 0, 0, i)
            done.set()

        threads = [threading.Thread(target=reader), threading.Thread(target=writer)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert store.captures_length(1, 0, 0) == 500

    def test_concurrent_overwrites_last_write_wins(self, store):
        """Test racing overwrites leave one complete record."""
        store.write_capture(100, b'', b'', 0, 0, 0, 0)

        def writer(value):
            for _ in range(100):
                store.write_capture(value, bytes([value % 256]), bytes([value % 256]) * 4,
                                    0, 0, 0, 0)

        threads = [threading.Thread(target=writer, args=(v,)) for v in (300, 500)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        record = store.get_record(0, 0, 0, 0)
        assert store.captures_length(0, 0, 0) == 1
        assert record.resolution_ps in (300, 500)
        assert record.data_stream == bytes([record.resolution_ps % 256]) * 4
