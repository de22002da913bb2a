"""
core/karaoke/types.py — Frozen value objects for karaoke take analysis.

All types are immutable so a finished score can be handed to the UI,
the history store and the metrics layer without defensive copies.

Design principles:
    - No I/O, no clocks, no side effects.
    - Sub-scores are stored already rounded; `details` keeps the raw
      floats the rounding was applied to.
    - `score_to_dict` / `score_from_dict` are the only serialization
      path, shared by the history store and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class SessionState(Enum):
    """Lifecycle of a single recording attempt."""

    IDLE = "idle"
    RECORDING = "recording"
    ANALYZING = "analyzing"
    SCORED = "scored"


class ScoringMode(Enum):
    """Aggregation strategy used to produce the total score.

    WEIGHTED:  sub-scores on 0–100, weighted sum, beat matching compares
               the take length against a reference track.
    FREESTYLE: sub-scores on 0–25, summed, then shaped by the duration
               curve and clamped to [40, 100].
    """

    WEIGHTED = "weighted"
    FREESTYLE = "freestyle"


@dataclass(frozen=True)
class AudioSample:
    """One point of the per-frame analysis time series.

    Invariants:
        timestamp_ms >= 0
        0 <= volume <= 255
    """

    pitch_hz: float
    """Frequency of the loudest bin. 0 (or less) means no usable pitch."""

    volume: float
    """Mean byte-scaled magnitude across the whole spectrum."""

    timestamp_ms: int
    """Milliseconds since the recording started."""


@dataclass(frozen=True)
class ScoreDetails:
    """Raw statistics behind a KaraokeScore."""

    recorded_duration: float
    """Wall-clock seconds between start and stop."""

    average_pitch: float
    """Mean of positive pitch estimates in Hz. 0.0 if none."""

    pitch_variance: float
    """Population variance of positive pitch estimates. 0.0 if none."""

    rhythm_consistency: float
    """Unrounded rhythm stability sub-score."""


@dataclass(frozen=True)
class KaraokeScore:
    """Final score of one take.

    Invariants:
        0 <= total_score <= 100
        FREESTYLE: 40 <= total_score, sub-scores in [0, 25]
        WEIGHTED:  sub-scores in [0, 100]
        The zero-sample score has every field at 50 in both modes.
    """

    total_score: int
    pitch_accuracy: int
    rhythm_stability: int
    volume_control: int
    beat_matching: int
    details: ScoreDetails
    mode: ScoringMode = ScoringMode.FREESTYLE
    sample_count: int = 0

    @property
    def sub_scores(self) -> dict[str, int]:
        """The four dimension scores keyed by dimension name."""
        return {
            "pitch_accuracy": self.pitch_accuracy,
            "rhythm_stability": self.rhythm_stability,
            "volume_control": self.volume_control,
            "beat_matching": self.beat_matching,
        }


def score_to_dict(score: KaraokeScore) -> dict[str, Any]:
    """Convert a KaraokeScore to a JSON-serializable dict."""
    return {
        "total_score": score.total_score,
        "pitch_accuracy": score.pitch_accuracy,
        "rhythm_stability": score.rhythm_stability,
        "volume_control": score.volume_control,
        "beat_matching": score.beat_matching,
        "mode": score.mode.value,
        "sample_count": score.sample_count,
        "details": {
            "recorded_duration": score.details.recorded_duration,
            "average_pitch": score.details.average_pitch,
            "pitch_variance": score.details.pitch_variance,
            "rhythm_consistency": score.details.rhythm_consistency,
        },
    }


def score_from_dict(data: dict[str, Any]) -> KaraokeScore:
    """Rebuild a KaraokeScore from `score_to_dict` output.

    Raises:
        KeyError: If a required field is missing.
        ValueError: If `mode` is not a known ScoringMode value.
    """
    details = data["details"]
    return KaraokeScore(
        total_score=int(data["total_score"]),
        pitch_accuracy=int(data["pitch_accuracy"]),
        rhythm_stability=int(data["rhythm_stability"]),
        volume_control=int(data["volume_control"]),
        beat_matching=int(data["beat_matching"]),
        details=ScoreDetails(
            recorded_duration=float(details["recorded_duration"]),
            average_pitch=float(details["average_pitch"]),
            pitch_variance=float(details["pitch_variance"]),
            rhythm_consistency=float(details["rhythm_consistency"]),
        ),
        mode=ScoringMode(data.get("mode", ScoringMode.FREESTYLE.value)),
        sample_count=int(data.get("sample_count", 0)),
    )
