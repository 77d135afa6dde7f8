"""
Flux stream representation shared by capture hardware and image formats.

Functions:
    encode_flux: Timings to the 0xFF-continued byte stream
    decode_flux: Byte stream back to a numpy array of timings
    resolution_from_sample_freq: Picoseconds per tick of a sampling clock
"""

from .flux_codec import (
    FLUX_CARRY,
    decode_flux,
    encode_flux,
    flux_to_picoseconds,
    resolution_from_sample_freq,
    total_duration_ps,
)

__all__ = [
    'FLUX_CARRY',
    'decode_flux',
    'encode_flux',
    'flux_to_picoseconds',
    'resolution_from_sample_freq',
    'total_duration_ps',
]
