"""
Media identification from device data.
"""

from .ssc import MediaType, SscRule, SSC_RULES, get_media_type_from_ssc

__all__ = [
    'MediaType',
    'SscRule',
    'SSC_RULES',
    'get_media_type_from_ssc',
]
