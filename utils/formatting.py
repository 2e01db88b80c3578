"""
Formatting utilities for tikr's console output.
"""

from typing import Optional


def format_time(seconds: float, include_ms: bool = True) -> str:
    """
    Format seconds as M:SS.ss (or M:SS).

    Negative values are shown as 0:00.
    """
    seconds = max(0.0, seconds)
    minutes = int(seconds // 60)
    secs = seconds % 60

    if include_ms:
        return f"{minutes}:{secs:05.2f}"
    return f"{minutes}:{int(secs):02d}"


def format_position(position: float, duration: float) -> str:
    """
    Format a transport readout like "0:02.50 / 3:10.00".

    The duration shows as "--:--" while it is still unknown (0).
    """
    total = format_time(duration) if duration > 0 else "--:--"
    return f"{format_time(position)} / {total}"


def format_region(index: int, region, active: bool = False) -> str:
    """
    One line of the loop list: "* 1. chorus  0:02.00 - 0:05.50 (3.500s)".

    Args:
        index: 0-based position in the list (shown 1-based, matching the
               1-9 shortcuts)
        region: LoopRegion
        active: Mark the line as the active selection
    """
    marker = "*" if active else " "
    return (
        f"{marker} {index + 1}. {region.label}  "
        f"{format_time(region.start)} - {format_time(region.end)} "
        f"({region.duration:.3f}s)"
    )


def parse_time(text: str) -> Optional[float]:
    """
    Parse "1:23.45", "1:02:03" or "83.45" into seconds.

    Returns:
        Time in seconds, or None if the text is not a time
    """
    text = text.strip()
    if not text:
        return None

    try:
        parts = [float(p) for p in text.split(':')]
    except ValueError:
        return None

    if len(parts) > 3 or any(p < 0 for p in parts):
        return None

    seconds = 0.0
    for part in parts:
        seconds = seconds * 60 + part
    return seconds
