"""
core/karaoke/scoring.py — Turn a finished take into a KaraokeScore.

Pure functions over the frozen sample sequence plus the recording
duration. Nothing here raises for numeric reasons: empty input, zero
means and single-sample takes all resolve to documented fallbacks.

Two scoring strategies coexist and are kept separate on purpose, since
they produce different score distributions:

    WeightedScorer (reference track known)
        Each dimension is scored on 0–100. Beat matching compares the
        take length with the reference length.

            total = round(pitch*0.30 + rhythm*0.25 + volume*0.25 + beat*0.20)

    FreestyleScorer (no reference track)
        Each dimension is scored on 0–25 and summed. Beat matching
        becomes a completeness bonus (duration + sample density). The sum
        is reshaped by the duration curve and clamped to [40, 100]:

            duration < 1s    ->  60
            1s  <= d < 2s    ->  70
            2s  <= d < 5s    ->  base * 0.8 + 20
            5s  <= d < 10s   ->  base * 0.9 + 10
            d >= 10s         ->  base + 15

Per-dimension formulas (K = dimension maximum):

    volume  = max(0, K - (var_v / mean_v) * K)          mean_v == 0 -> ratio 0
    pitch   = max(0, K - sqrt(var_p) / D)               no pitch > 0 -> K / 2
    rhythm  = max(0, K - sqrt(var_i) / mean_i * K)      < 2 samples or mean_i == 0 -> K / 2

where D is 10 in weighted mode and 40 in freestyle mode. All rounding
is half-up and happens only when the KaraokeScore is built.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence

from core.karaoke.types import AudioSample, KaraokeScore, ScoreDetails, ScoringMode

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASELINE_SCORE: int = 50
"""Every field of the score for a take with no samples."""

WEIGHTED_MAX_POINTS: float = 100.0
FREESTYLE_MAX_POINTS: float = 25.0

WEIGHTED_PITCH_DIVISOR: float = 10.0
FREESTYLE_PITCH_DIVISOR: float = 40.0

WEIGHTS: dict[str, float] = {
    "pitch": 0.30,
    "rhythm": 0.25,
    "volume": 0.25,
    "beat": 0.20,
}

FREESTYLE_FLOOR: int = 40
FREESTYLE_CEILING: int = 100

# Completeness bonus: 15 points for >= 10 s sung, 10 points for >= 100 samples
COMPLETENESS_FULL_DURATION_SEC: float = 10.0
COMPLETENESS_DURATION_POINTS: float = 15.0
COMPLETENESS_FULL_SAMPLES: int = 100
COMPLETENESS_SAMPLE_POINTS: float = 10.0


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from -inf (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _variance(values: Sequence[float], mean: float) -> float:
    """Population variance around a precomputed mean."""
    return sum((v - mean) ** 2 for v in values) / len(values)


def _finite_duration(duration_seconds: float) -> float:
    """Clamp NaN, infinite and negative durations to 0.0."""
    if not math.isfinite(duration_seconds) or duration_seconds < 0:
        return 0.0
    return duration_seconds


# ---------------------------------------------------------------------------
# Per-dimension scores
# ---------------------------------------------------------------------------


def volume_control(volumes: Sequence[float], *, max_points: float) -> float:
    """Score loudness steadiness: low variance relative to the mean.

    A silent take (mean 0) has no variation to punish and scores
    `max_points`.
    """
    if not volumes:
        return max_points / 2
    mean = _mean(volumes)
    variance = _variance(volumes, mean)
    ratio = variance / mean if mean > 0 else 0.0
    return max(0.0, max_points - ratio * max_points)


def pitch_statistics(samples: Sequence[AudioSample]) -> tuple[float, float]:
    """Mean and population variance of the positive, finite pitch estimates.

    Returns (0.0, 0.0) when no sample carries a usable pitch.
    """
    pitches = [s.pitch_hz for s in samples if math.isfinite(s.pitch_hz) and s.pitch_hz > 0]
    if not pitches:
        return 0.0, 0.0
    mean = _mean(pitches)
    return mean, _variance(pitches, mean)


def pitch_accuracy(
    samples: Sequence[AudioSample],
    *,
    max_points: float,
    divisor: float,
) -> float:
    """Score pitch steadiness from the spread of the dominant-bin estimate.

    Takes with no positive pitch get the neutral `max_points / 2`.
    """
    has_pitch = any(math.isfinite(s.pitch_hz) and s.pitch_hz > 0 for s in samples)
    if not has_pitch:
        return max_points / 2
    _, variance = pitch_statistics(samples)
    return max(0.0, max_points - math.sqrt(variance) / divisor)


def rhythm_stability(timestamps: Sequence[int], *, max_points: float) -> float:
    """Score the regularity of the sampling intervals.

    Uses the coefficient of variation of successive timestamp deltas.
    Fewer than two samples, or a zero mean interval, yield the neutral
    `max_points / 2`.
    """
    if len(timestamps) < 2:
        return max_points / 2
    intervals = [float(b - a) for a, b in zip(timestamps, timestamps[1:])]
    mean = _mean(intervals)
    if mean <= 0:
        return max_points / 2
    variance = _variance(intervals, mean)
    return max(0.0, max_points - math.sqrt(variance) / mean * max_points)


def beat_matching(duration_seconds: float, reference_duration: float | None) -> float:
    """Comparative beat score: penalise deviation from the reference length.

    Without a usable reference (None, NaN, zero or negative) the take's
    own duration is the reference, which is a perfect match (100). An
    infinite reference can never be matched and scores 0.
    """
    duration = _finite_duration(duration_seconds)
    if reference_duration == math.inf:
        return 0.0
    usable = reference_duration is not None and reference_duration > 0
    reference = reference_duration if usable else duration
    if reference <= 0:
        return 100.0
    deviation = abs(duration - reference) / reference
    return max(0.0, 100.0 - deviation * 100.0)


def completeness(duration_seconds: float, sample_count: int) -> float:
    """Freestyle beat score on 0–25: duration bonus plus sample-density bonus."""
    duration = _finite_duration(duration_seconds)
    duration_part = min(duration / COMPLETENESS_FULL_DURATION_SEC, 1.0)
    density_part = min(sample_count / COMPLETENESS_FULL_SAMPLES, 1.0)
    return duration_part * COMPLETENESS_DURATION_POINTS + density_part * COMPLETENESS_SAMPLE_POINTS


def apply_duration_curve(base_score: float, duration_seconds: float) -> float:
    """Reshape a 0–100 freestyle base score by how long the take lasted.

    Very short takes get a flat score regardless of content; long takes
    earn a bonus. The result is not clamped here.
    """
    duration = _finite_duration(duration_seconds)
    if duration < 1.0:
        return 60.0
    if duration < 2.0:
        return 70.0
    if duration < 5.0:
        return base_score * 0.8 + 20.0
    if duration < 10.0:
        return base_score * 0.9 + 10.0
    return base_score + 15.0


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def baseline_score(duration_seconds: float, mode: ScoringMode) -> KaraokeScore:
    """Score for a take that produced no samples.

    An empty take is never an error; every field is BASELINE_SCORE.
    """
    return KaraokeScore(
        total_score=BASELINE_SCORE,
        pitch_accuracy=BASELINE_SCORE,
        rhythm_stability=BASELINE_SCORE,
        volume_control=BASELINE_SCORE,
        beat_matching=BASELINE_SCORE,
        details=ScoreDetails(
            recorded_duration=_finite_duration(duration_seconds),
            average_pitch=0.0,
            pitch_variance=0.0,
            rhythm_consistency=0.0,
        ),
        mode=mode,
        sample_count=0,
    )


class ScoringStrategy(ABC):
    """Common template for both scoring modes.

    Subclasses choose the dimension scale, the pitch divisor, how beat
    matching is computed and how the four dimensions become a total.
    """

    @property
    @abstractmethod
    def mode(self) -> ScoringMode:
        """Which ScoringMode this strategy implements."""

    @property
    @abstractmethod
    def max_points(self) -> float:
        """Maximum value of each dimension score."""

    @property
    @abstractmethod
    def pitch_divisor(self) -> float:
        """How harshly pitch spread (in Hz) is punished."""

    @abstractmethod
    def beat(self, samples: Sequence[AudioSample], duration_seconds: float) -> float:
        """Unrounded beat/completeness dimension."""

    @abstractmethod
    def total(
        self,
        *,
        pitch: float,
        rhythm: float,
        volume: float,
        beat: float,
        duration_seconds: float,
    ) -> float:
        """Unrounded total from the unrounded dimension scores."""

    def score(self, samples: Sequence[AudioSample], duration_seconds: float) -> KaraokeScore:
        """Score a finished take.

        Args:
            samples: Chronologically ordered samples. Not re-sorted.
            duration_seconds: Wall-clock length of the take.

        Returns:
            A well-formed KaraokeScore; never raises for numeric reasons.
        """
        if not samples:
            return baseline_score(duration_seconds, self.mode)

        k = self.max_points
        volume = volume_control([s.volume for s in samples], max_points=k)
        pitch = pitch_accuracy(samples, max_points=k, divisor=self.pitch_divisor)
        rhythm = rhythm_stability([s.timestamp_ms for s in samples], max_points=k)
        beat = self.beat(samples, duration_seconds)
        total = self.total(
            pitch=pitch,
            rhythm=rhythm,
            volume=volume,
            beat=beat,
            duration_seconds=duration_seconds,
        )
        average_pitch, pitch_variance = pitch_statistics(samples)

        return KaraokeScore(
            total_score=round_half_up(total),
            pitch_accuracy=round_half_up(pitch),
            rhythm_stability=round_half_up(rhythm),
            volume_control=round_half_up(volume),
            beat_matching=round_half_up(beat),
            details=ScoreDetails(
                recorded_duration=_finite_duration(duration_seconds),
                average_pitch=average_pitch,
                pitch_variance=pitch_variance,
                rhythm_consistency=rhythm,
            ),
            mode=self.mode,
            sample_count=len(samples),
        )


class WeightedScorer(ScoringStrategy):
    """Reference-track scoring on a 0–100 scale per dimension.

    Args:
        reference_duration: Length of the original track in seconds.
            None or non-positive falls back to the take's own length.
    """

    def __init__(self, reference_duration: float | None = None) -> None:
        self.reference_duration = reference_duration

    @property
    def mode(self) -> ScoringMode:
        return ScoringMode.WEIGHTED

    @property
    def max_points(self) -> float:
        return WEIGHTED_MAX_POINTS

    @property
    def pitch_divisor(self) -> float:
        return WEIGHTED_PITCH_DIVISOR

    def beat(self, samples: Sequence[AudioSample], duration_seconds: float) -> float:
        return beat_matching(duration_seconds, self.reference_duration)

    def total(
        self,
        *,
        pitch: float,
        rhythm: float,
        volume: float,
        beat: float,
        duration_seconds: float,
    ) -> float:
        return (
            pitch * WEIGHTS["pitch"]
            + rhythm * WEIGHTS["rhythm"]
            + volume * WEIGHTS["volume"]
            + beat * WEIGHTS["beat"]
        )


class FreestyleScorer(ScoringStrategy):
    """Referenceless scoring: four 0–25 dimensions plus the duration curve."""

    @property
    def mode(self) -> ScoringMode:
        return ScoringMode.FREESTYLE

    @property
    def max_points(self) -> float:
        return FREESTYLE_MAX_POINTS

    @property
    def pitch_divisor(self) -> float:
        return FREESTYLE_PITCH_DIVISOR

    def beat(self, samples: Sequence[AudioSample], duration_seconds: float) -> float:
        return completeness(duration_seconds, len(samples))

    def total(
        self,
        *,
        pitch: float,
        rhythm: float,
        volume: float,
        beat: float,
        duration_seconds: float,
    ) -> float:
        base = pitch + rhythm + volume + beat
        shaped = apply_duration_curve(base, duration_seconds)
        return min(float(FREESTYLE_CEILING), max(float(FREESTYLE_FLOOR), shaped))


def scorer_for(
    reference_duration: float | None = None,
    mode: ScoringMode | None = None,
) -> ScoringStrategy:
    """Pick the strategy: weighted when a reference is known, else freestyle.

    An explicit `mode` overrides the reference-based choice.
    """
    if mode is None:
        mode = ScoringMode.WEIGHTED if reference_duration is not None else ScoringMode.FREESTYLE
    if mode is ScoringMode.WEIGHTED:
        return WeightedScorer(reference_duration)
    return FreestyleScorer()


def score_performance(
    samples: Sequence[AudioSample],
    duration_seconds: float,
    *,
    reference_duration: float | None = None,
    mode: ScoringMode | None = None,
) -> KaraokeScore:
    """Score a finished take with the strategy selected by `scorer_for`.

    Example:
        >>> score = score_performance(samples, 12.4)             # freestyle
        >>> score = score_performance(samples, 60.0, reference_duration=180.0)
    """
    return scorer_for(reference_duration, mode).score(samples, duration_seconds)
