"""
Test fixtures for Flux Archive.

Provides builders for flux images and capture data, so backends can be
tested without capture hardware or sample disk images.
"""

from tests.fixtures.flux_builders import (
    SampleCapture,
    SAMPLE_TIMINGS,
    build_scp_bytes,
    encode_scp_words,
    create_scp_file,
    create_archive_file,
    create_sample_captures,
)

__all__ = [
    "SampleCapture",
    "SAMPLE_TIMINGS",
    "build_scp_bytes",
    "encode_scp_words",
    "create_scp_file",
    "create_archive_file",
    "create_sample_captures",
]
