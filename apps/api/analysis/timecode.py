"""Timestamp formatting shared by the detector, vendor client and LLM prompts."""

import math


def format_seconds(sec: int) -> str:
    """Format seconds as M:SS (no leading zero on minutes, e.g. 1:05)."""
    minutes = sec // 60
    seconds = sec % 60
    return f"{minutes}:{seconds:02d}"


def round_half_up(value: float, digits: int = 0) -> float:
    """Round half up (2.5 -> 3). Built-in round() would give 2."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
