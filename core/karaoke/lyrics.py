"""Timed lyric lines for the sing-along view.

Generated lyrics carry no timing, so each non-empty line is given a
fixed slot. Section markers such as ``[Verse]`` or ``[Chorus]`` are
removed before timing.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

DEFAULT_SECONDS_PER_LINE: float = 3.0

_SECTION_TAG = re.compile(r"\[.*?\]")


@dataclass(frozen=True)
class LyricLine:
    start_sec: float
    text: str


def parse_lyrics(
    text: str,
    seconds_per_line: float = DEFAULT_SECONDS_PER_LINE,
) -> tuple[LyricLine, ...]:
    """Split lyrics into lines with evenly spaced start times.

    Args:
        text: Raw lyrics, one line per sung phrase.
        seconds_per_line: Slot length given to every line.

    Returns:
        Lines in order, starting at 0.0 and spaced `seconds_per_line` apart.

    Raises:
        ValueError: If seconds_per_line is not positive.
    """
    if seconds_per_line <= 0:
        raise ValueError(f"seconds_per_line must be positive, got {seconds_per_line}")

    lines: list[LyricLine] = []
    for raw in text.splitlines():
        if not raw.strip():
            continue
        clean = _SECTION_TAG.sub("", raw).strip()
        if clean:
            lines.append(LyricLine(start_sec=len(lines) * seconds_per_line, text=clean))
    return tuple(lines)


def current_line_index(lines: Sequence[LyricLine], position_sec: float) -> int:
    """Index of the line being sung at `position_sec`, or -1 if none."""
    for index, line in enumerate(lines):
        next_start = lines[index + 1].start_sec if index + 1 < len(lines) else None
        if line.start_sec <= position_sec and (next_start is None or next_start > position_sec):
            return index
    return -1
