"""
core/karaoke/grading.py — Presentation data derived from a KaraokeScore.

Letter grades, the staged reveal sequence and the share summary. The UI
consumes these as plain data; nothing here holds timers.

Reveal sequence:
    Sub-scores count up one after another (pitch, rhythm, volume, beat)
    and the total comes last. Each count-up runs COUNT_UP_FRAMES frames
    spaced COUNT_UP_INTERVAL_MS apart.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from dataclasses import dataclass

from core.karaoke.types import KaraokeScore

COUNT_UP_FRAMES: int = 30
COUNT_UP_INTERVAL_MS: int = 50


@dataclass(frozen=True)
class Grade:
    """Letter grade for a total score."""

    letter: str
    """One of S, A, B, C, D."""

    min_score: int
    """Lowest total that earns this letter."""

    comment: str
    """Encouragement shown under the total."""


GRADES: tuple[Grade, ...] = (
    Grade("S", 90, "Flawless performance. You are a natural!"),
    Grade("A", 80, "Excellent singing. Keep it up!"),
    Grade("B", 70, "Nice take. There is still room to grow!"),
    Grade("C", 60, "Keep going. Practice makes it better!"),
    Grade("D", 0, "Keep practising. Every take gets you further!"),
)


@dataclass(frozen=True)
class RevealStep:
    """One staged count-up in the score reveal."""

    field: str
    """KaraokeScore attribute being revealed."""

    delay_ms: int
    """Delay from the start of the reveal before this count-up begins."""

    target: int
    """Final value of the count-up."""


# (field, delay) in reveal order
_REVEAL_ORDER: tuple[tuple[str, int], ...] = (
    ("pitch_accuracy", 500),
    ("rhythm_stability", 800),
    ("volume_control", 1100),
    ("beat_matching", 1400),
    ("total_score", 1800),
)


def grade_for(total_score: int) -> Grade:
    """Return the Grade whose threshold the total reaches."""
    for grade in GRADES:
        if total_score >= grade.min_score:
            return grade
    return GRADES[-1]


def reveal_schedule(score: KaraokeScore) -> tuple[RevealStep, ...]:
    """Staged reveal of a score: four sub-scores, then the total."""
    return tuple(
        RevealStep(field=name, delay_ms=delay, target=getattr(score, name))
        for name, delay in _REVEAL_ORDER
    )


def count_up(target: int, frames: int = COUNT_UP_FRAMES) -> Iterator[int]:
    """Yield the displayed values of one count-up animation.

    Each frame adds target / frames, clamped at the target, and the
    displayed value is rounded half-up. A zero or negative target
    yields a single frame holding the target.
    """
    if target <= 0 or frames <= 0:
        yield target
        return
    increment = target / frames
    current = 0.0
    while True:
        current += increment
        if current >= target:
            yield target
            return
        yield int(math.floor(current + 0.5))


def share_text(score: KaraokeScore, song_title: str) -> str:
    """Multi-line summary for sharing a result."""
    return (
        f"I scored {score.total_score} singing \"{song_title}\"!\n"
        f"Pitch accuracy: {score.pitch_accuracy}\n"
        f"Rhythm stability: {score.rhythm_stability}\n"
        f"Volume control: {score.volume_control}\n"
        f"Beat matching: {score.beat_matching}"
    )
