"""
Utility functions for tikr.
"""

from .formatting import format_time, format_position, format_region, parse_time
from .preferences import get_volume_preference, set_volume_preference

__all__ = [
    'format_time',
    'format_position',
    'format_region',
    'parse_time',
    'get_volume_preference',
    'set_volume_preference',
]
