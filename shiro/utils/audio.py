"""Audio presentation helpers."""

from __future__ import annotations


def format_duration(duration_ms: int) -> str:
    """Render a duration as ``mm:ss``; minutes keep growing past an hour."""

    seconds = max(int(duration_ms), 0) // 1000
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


__all__ = ["format_duration"]
