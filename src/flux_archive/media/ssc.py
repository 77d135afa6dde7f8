"""
Media type classification for SCSI Streaming Command (SSC) tape devices.

MODE SENSE reports a medium type byte and a density code. Many of those
values are shared between unrelated tape families, so the lookup also
matches the drive's vendor or model string. Rules are evaluated in table
order and the first match wins; anything unmatched is MediaType.UNKNOWN.

Predicates:
    - model prefix: model string starts with one of the prefixes (case-insensitive)
    - vendor: vendor string equals the value (case-insensitive)
    - none: medium type and density alone decide
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# Media Types
# =============================================================================

class MediaType(Enum):
    """Tape media recognised from SSC device data."""
    UNKNOWN = "Unknown"

    # QIC
    QIC11 = "QIC11"
    QIC24 = "QIC24"
    QIC120 = "QIC120"
    QIC150 = "QIC150"

    # DDS / DAT
    DDS1 = "DDS1"
    DDS2 = "DDS2"
    DDS3 = "DDS3"
    DDS4 = "DDS4"
    DAT72 = "DAT72"

    # LTO
    LTO = "LTO"
    LTO2 = "LTO2"
    LTO3 = "LTO3"
    LTO3WORM = "LTO3WORM"
    LTO4 = "LTO4"
    LTO4WORM = "LTO4WORM"
    LTO5 = "LTO5"
    LTO5WORM = "LTO5WORM"
    LTO6 = "LTO6"
    LTO6WORM = "LTO6WORM"
    LTO7 = "LTO7"
    LTO7WORM = "LTO7WORM"

    # Sony
    SAIT1 = "SAIT1"

    # StorageTek
    T9840A = "T9840A"
    T9840C = "T9840C"
    T9840D = "T9840D"
    T9940A = "T9940A"
    T9940B = "T9940B"
    T10000A = "T10000A"
    T10000B = "T10000B"
    T10000C = "T10000C"
    T10000D = "T10000D"

    # IBM
    IBM3490 = "IBM3490"
    IBM3490E = "IBM3490E"
    IBM3592 = "IBM3592"

    # Exabyte 8mm
    EXATAPE_15M = "Exatape15m"
    EXATAPE_22M = "Exatape22m"
    EXATAPE_22M_AME = "Exatape22mAME"
    EXATAPE_28M = "Exatape28m"
    EXATAPE_40M = "Exatape40m"
    EXATAPE_45M = "Exatape45m"
    EXATAPE_54M = "Exatape54m"
    EXATAPE_75M = "Exatape75m"
    EXATAPE_76M = "Exatape76m"
    EXATAPE_80M = "Exatape80m"
    EXATAPE_106M = "Exatape106m"
    EXATAPE_112M = "Exatape112m"
    EXATAPE_125M = "Exatape125m"
    EXATAPE_150M = "Exatape150m"
    EXATAPE_160M_XL = "Exatape160mXL"
    EXATAPE_170M = "Exatape170m"
    EXATAPE_225M = "Exatape225m"

    # DLT / SDLT
    COMPACT_TAPE_I = "CompactTapeI"
    COMPACT_TAPE_II = "CompactTapeII"
    DLT_TAPE_III = "DLTtapeIII"
    DLT_TAPE_IIIXT = "DLTtapeIIIxt"
    DLT_TAPE_IV = "DLTtapeIV"
    SDLT1 = "SDLT1"
    SDLT2 = "SDLT2"
    VS_TAPE_I = "VStapeI"

    # VXA
    VXA1 = "VXA1"
    VXA2 = "VXA2"
    VXA3 = "VXA3"

    # Travan
    TRAVAN4 = "Travan4"
    TRAVAN5 = "Travan5"
    TRAVAN7 = "Travan7"


# =============================================================================
# Lookup Table
# =============================================================================

@dataclass(frozen=True)
class SscRule:
    """
    One row of the SSC lookup table.

    Attributes:
        medium_type: MODE SENSE medium type byte
        density_codes: Accepted density codes, None for any
        media_type: Result when the row matches
        model_prefixes: Accepted model string prefixes (lower-case)
        vendor: Required vendor string (lower-case)
    """
    medium_type: int
    density_codes: Optional[Tuple[int, ...]]
    media_type: MediaType
    model_prefixes: Tuple[str, ...] = ()
    vendor: Optional[str] = None

    def matches(self, medium_type: int, density_code: int, vendor: str, model: str) -> bool:
        if medium_type != self.medium_type:
            return False
        if self.density_codes is not None and density_code not in self.density_codes:
            return False
        if self.model_prefixes:
            return model.startswith(self.model_prefixes)
        if self.vendor is not None:
            return vendor == self.vendor
        return True


ULTRIUM = ('ult',)
DAT = ('dat',)
AIT = ('sdz',)
EXABYTE = ('exb',)
VXA = ('vxa',)
TRAVAN = ('stt',)
DLT = ('dlt',)
ANY_DLT = ('dlt', 'sdlt', 'superdlt')

# Density codes shared by the Exabyte 8mm cartridges
EXB_DENSITIES = (0x00, 0x14, 0x15, 0x27, 0x8C, 0x90)
EXB_DENSITIES_LATE = (0x00, 0x27, 0x28)

M = MediaType

SSC_RULES: Tuple[SscRule, ...] = (
    # Medium type 0x00: the density code identifies the media
    SscRule(0x00, (0x04,), M.QIC11),
    SscRule(0x00, (0x05,), M.QIC24),
    SscRule(0x00, (0x09,), M.IBM3490),
    SscRule(0x00, (0x0F,), M.QIC120),
    SscRule(0x00, (0x10,), M.QIC150),
    SscRule(0x00, (0x13,), M.DDS1),
    SscRule(0x00, (0x24,), M.DDS2),
    SscRule(0x00, (0x25,), M.DDS3),
    SscRule(0x00, (0x26,), M.DDS4),
    SscRule(0x00, (0x28,), M.IBM3490E),
    SscRule(0x00, (0x40,), M.LTO, model_prefixes=ULTRIUM),
    SscRule(0x00, (0x40,), M.SAIT1, model_prefixes=AIT),
    SscRule(0x00, (0x41,), M.LTO2, model_prefixes=ULTRIUM),
    SscRule(0x00, (0x42,), M.LTO2, model_prefixes=ULTRIUM),
    SscRule(0x00, (0x42,), M.T9840A, vendor='stk'),
    SscRule(0x00, (0x43,), M.T9940A, vendor='stk'),
    SscRule(0x00, (0x44,), M.LTO3, model_prefixes=ULTRIUM),
    SscRule(0x00, (0x44,), M.T9940B, vendor='stk'),
    SscRule(0x00, (0x45,), M.T9840C, vendor='stk'),
    SscRule(0x00, (0x46,), M.LTO4, model_prefixes=ULTRIUM),
    SscRule(0x00, (0x46,), M.T9840D, vendor='stk'),
    SscRule(0x00, (0x4A,), M.T10000A, vendor='stk'),
    SscRule(0x00, (0x4B,), M.T10000B, vendor='stk'),
    SscRule(0x00, (0x4C,), M.T10000C, vendor='stk'),
    SscRule(0x00, (0x4D,), M.T10000D, vendor='stk'),
    SscRule(0x00, (0x58,), M.LTO5, model_prefixes=ULTRIUM),
    SscRule(0x00, (0x8C,), M.DDS1),

    # LTO WORM with unset medium type
    SscRule(0x01, (0x44,), M.LTO3WORM, model_prefixes=ULTRIUM),
    SscRule(0x01, (0x46,), M.LTO4WORM, model_prefixes=ULTRIUM),
    SscRule(0x01, (0x58,), M.LTO5WORM, model_prefixes=ULTRIUM),

    # LTO-1 and LTO-2 cartridges
    SscRule(0x18, (0x00,), M.LTO, model_prefixes=ULTRIUM),
    SscRule(0x18, (0x40,), M.LTO),
    SscRule(0x28, (0x00,), M.LTO2, model_prefixes=ULTRIUM),
    SscRule(0x28, (0x42,), M.LTO2),

    # DAT and later LTO generations
    SscRule(0x33, (0x00, 0x25), M.DDS3, model_prefixes=DAT),
    SscRule(0x34, (0x00, 0x26), M.DDS4, model_prefixes=DAT),
    SscRule(0x35, (0x00, 0x47), M.DAT72, model_prefixes=DAT),
    SscRule(0x38, (0x00, 0x44), M.LTO3, model_prefixes=ULTRIUM),
    SscRule(0x3C, (0x00, 0x44), M.LTO3WORM, model_prefixes=ULTRIUM),
    SscRule(0x48, (0x00, 0x46), M.LTO4, model_prefixes=ULTRIUM),
    SscRule(0x4C, (0x00, 0x46), M.LTO4WORM, model_prefixes=ULTRIUM),
    SscRule(0x50, (0x00, 0x24), M.DDS2, model_prefixes=DAT),
    SscRule(0x58, (0x00, 0x58), M.LTO5, model_prefixes=ULTRIUM),
    SscRule(0x5C, (0x00, 0x58), M.LTO5WORM, model_prefixes=ULTRIUM),
    SscRule(0x68, (0x00, 0x5A), M.LTO6, model_prefixes=ULTRIUM),
    SscRule(0x6C, (0x00, 0x5A), M.LTO6WORM, model_prefixes=ULTRIUM),
    SscRule(0x78, (0x00, 0x5C), M.LTO7, model_prefixes=ULTRIUM),
    SscRule(0x7C, (0x00, 0x5C), M.LTO7WORM, model_prefixes=ULTRIUM),

    # 0x81: Exabyte 15m, IBM 3592, VXA-1
    SscRule(0x81, (0x00,), M.EXATAPE_15M, model_prefixes=EXABYTE),
    SscRule(0x81, (0x00,), M.IBM3592, vendor='ibm'),
    SscRule(0x81, (0x00,), M.VXA1, model_prefixes=VXA),
    SscRule(0x81, (0x14, 0x15, 0x27, 0x8C, 0x90), M.EXATAPE_15M, model_prefixes=EXABYTE),
    SscRule(0x81, (0x29, 0x2A), M.IBM3592, vendor='ibm'),
    SscRule(0x81, (0x80,), M.VXA1, model_prefixes=VXA),

    # 0x82: Exabyte 28m, IBM 3592, CompactTape, VXA-2/3
    SscRule(0x82, (0x00,), M.EXATAPE_28M, model_prefixes=EXABYTE),
    SscRule(0x82, (0x00,), M.IBM3592, vendor='ibm'),
    SscRule(0x82, (0x0A,), M.COMPACT_TAPE_I, model_prefixes=DLT),
    SscRule(0x82, (0x14, 0x15, 0x27, 0x8C, 0x90), M.EXATAPE_28M, model_prefixes=EXABYTE),
    SscRule(0x82, (0x16,), M.COMPACT_TAPE_II, model_prefixes=DLT),
    SscRule(0x82, (0x29, 0x2A), M.IBM3592, vendor='ibm'),
    SscRule(0x82, (0x81,), M.VXA2, model_prefixes=VXA),
    SscRule(0x82, (0x82,), M.VXA3, model_prefixes=VXA),

    # 0x83: Exabyte 54m, DLTtape III
    SscRule(0x83, (0x00,), M.EXATAPE_54M, model_prefixes=EXABYTE),
    SscRule(0x83, (0x00,), M.DLT_TAPE_III, model_prefixes=DLT),
    SscRule(0x83, (0x14, 0x15, 0x27, 0x8C, 0x90), M.EXATAPE_54M, model_prefixes=EXABYTE),
    SscRule(0x83, (0x17, 0x18, 0x19, 0x80, 0x81), M.DLT_TAPE_III, model_prefixes=DLT),

    # 0x84: Exabyte 80m, DLTtape IIIxt
    SscRule(0x84, (0x00,), M.EXATAPE_80M, model_prefixes=EXABYTE),
    SscRule(0x84, (0x00,), M.DLT_TAPE_IIIXT, model_prefixes=DLT),
    SscRule(0x84, (0x14, 0x15, 0x27, 0x8C, 0x90), M.EXATAPE_80M, model_prefixes=EXABYTE),
    SscRule(0x84, (0x19, 0x80, 0x81), M.DLT_TAPE_IIIXT, model_prefixes=DLT),

    # 0x85: Exabyte 106m, DLTtape IV, Travan 5
    SscRule(0x85, (0x00,), M.EXATAPE_106M, model_prefixes=EXABYTE),
    SscRule(0x85, (0x00,), M.DLT_TAPE_IV, model_prefixes=ANY_DLT),
    SscRule(0x85, (0x00,), M.TRAVAN5, model_prefixes=TRAVAN),
    SscRule(0x85, (0x14, 0x15, 0x27, 0x8C, 0x90), M.EXATAPE_106M, model_prefixes=EXABYTE),
    SscRule(0x85, (0x1A, 0x1B, 0x40, 0x41, 0x82, 0x83, 0x84, 0x85, 0x86, 0x87, 0x88, 0x89),
            M.DLT_TAPE_IV, model_prefixes=ANY_DLT),
    SscRule(0x85, (0x46,), M.TRAVAN5, model_prefixes=TRAVAN),

    # 0x86-0x90: Exabyte 160m XL, SDLT, VStape
    SscRule(0x86, (0x00, 0x90), M.EXATAPE_160M_XL, model_prefixes=EXABYTE),
    SscRule(0x86, (0x00, 0x90), M.SDLT1, model_prefixes=ANY_DLT),
    SscRule(0x86, (0x8C,), M.EXATAPE_160M_XL, model_prefixes=EXABYTE),
    SscRule(0x86, (0x91, 0x92, 0x93), M.SDLT1, model_prefixes=ANY_DLT),
    SscRule(0x87, (0x00, 0x4A), M.SDLT2, model_prefixes=ANY_DLT),
    SscRule(0x90, (0x00, 0x50, 0x98, 0x99), M.VS_TAPE_I, model_prefixes=ANY_DLT),

    # Travan
    SscRule(0x95, None, M.TRAVAN7, model_prefixes=TRAVAN),
    SscRule(0xB6, (0x45,), M.TRAVAN4),
    SscRule(0xB7, (0x47,), M.TRAVAN5),

    # Exabyte cartridges by length
    SscRule(0xC1, (0x00, 0x14, 0x15, 0x8C, 0x90), M.EXATAPE_22M, model_prefixes=EXABYTE),
    SscRule(0xC2, EXB_DENSITIES, M.EXATAPE_40M, model_prefixes=EXABYTE),
    SscRule(0xC3, EXB_DENSITIES, M.EXATAPE_76M, model_prefixes=EXABYTE),
    SscRule(0xC4, EXB_DENSITIES, M.EXATAPE_112M, model_prefixes=EXABYTE),
    SscRule(0xD1, EXB_DENSITIES_LATE, M.EXATAPE_22M_AME, model_prefixes=EXABYTE),
    SscRule(0xD2, EXB_DENSITIES_LATE, M.EXATAPE_170M, model_prefixes=EXABYTE),
    SscRule(0xD3, EXB_DENSITIES_LATE, M.EXATAPE_125M, model_prefixes=EXABYTE),
    SscRule(0xD4, EXB_DENSITIES_LATE, M.EXATAPE_45M, model_prefixes=EXABYTE),
    SscRule(0xD5, EXB_DENSITIES_LATE, M.EXATAPE_225M, model_prefixes=EXABYTE),
    SscRule(0xD6, EXB_DENSITIES_LATE, M.EXATAPE_150M, model_prefixes=EXABYTE),
    SscRule(0xD7, EXB_DENSITIES_LATE, M.EXATAPE_75M, model_prefixes=EXABYTE),
)

del M


# =============================================================================
# Lookup
# =============================================================================

def get_media_type_from_ssc(scsi_peripheral_type: int, vendor: Optional[str],
                            model: Optional[str], medium_type: int, density_code: int,
                            blocks: int, block_size: int) -> MediaType:
    """
    Classify tape media from SSC device data.

    Args:
        scsi_peripheral_type: SCSI peripheral device type
        vendor: INQUIRY vendor string (None treated as empty)
        model: INQUIRY product string (None treated as empty)
        medium_type: MODE SENSE medium type
        density_code: MODE SENSE density code
        blocks: Number of blocks on the medium
        block_size: Size of a block in bytes

    Returns:
        The matching MediaType, or MediaType.UNKNOWN

    Example:
        >>> get_media_type_from_ssc(1, "HP", "Ultrium 3-SCSI", 0x38, 0x44, 0, 0)
        <MediaType.LTO3: 'LTO3'>
    """
    vendor_key = (vendor or "").strip().lower()
    model_key = (model or "").strip().lower()

    for rule in SSC_RULES:
        if rule.matches(medium_type, density_code, vendor_key, model_key):
            logger.debug(
                "SSC medium type 0x%02X, density 0x%02X, vendor %r, model %r: %s "
                "(peripheral %d, %d blocks of %d bytes)",
                medium_type, density_code, vendor, model, rule.media_type.value,
                scsi_peripheral_type, blocks, block_size,
            )
            return rule.media_type

    logger.debug("SSC medium type 0x%02X, density 0x%02X, vendor %r, model %r: no match",
                 medium_type, density_code, vendor, model)
    return MediaType.UNKNOWN
