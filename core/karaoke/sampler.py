"""
core/karaoke/sampler.py — Turn one spectrum snapshot into one AudioSample.

The sampler is stateless: the recording session calls `sample()` once per
frame while it is recording and owns the resulting sequence.

Pitch estimate:
    The index of the loudest bin in the dB spectrum is converted to Hz as

        pitch_hz = max_bin * sample_rate / (2 * fft_size)

    This reports the dominant partial, not the fundamental, and the
    factor of two is part of the formula the scoring thresholds were
    tuned against. Do not replace it with a real pitch tracker.

Volume:
    Arithmetic mean of the byte-scaled (0–255) spectrum.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import numpy as np

from core.karaoke.types import AudioSample

# Live meter: mean volume over the last N samples, relative to this level
REALTIME_WINDOW: int = 10
IDEAL_VOLUME: float = 50.0


class AnalysisNode(Protocol):
    """Frequency-domain view of a live audio input.

    Both snapshot methods return arrays of length `frequency_bin_count`
    (= fft_size / 2). Implemented by ingestion.analyser.SpectrumAnalyser.
    """

    @property
    def fft_size(self) -> int: ...

    @property
    def sample_rate(self) -> int: ...

    @property
    def frequency_bin_count(self) -> int: ...

    def byte_frequency_data(self) -> np.ndarray: ...

    def float_frequency_data(self) -> np.ndarray: ...


def estimate_pitch(float_bins: np.ndarray, sample_rate: float, fft_size: int) -> float:
    """Return the dominant-bin frequency in Hz.

    Linear scan with first-max-wins tie-break (numpy.argmax semantics).
    NaN bins are ignored. A spectrum that is entirely -inf (digital
    silence) reports bin 0, i.e. 0 Hz.

    Args:
        float_bins: dB magnitudes, one per bin.
        sample_rate: Input sample rate in Hz.
        fft_size: FFT window length in samples.

    Returns:
        Estimated pitch in Hz (0.0 for an empty spectrum).
    """
    bins = np.asarray(float_bins, dtype=np.float64)
    if bins.size == 0:
        return 0.0
    bins = np.where(np.isnan(bins), -np.inf, bins)
    max_index = int(np.argmax(bins))
    return (max_index * sample_rate) / (2 * fft_size)


def mean_volume(byte_bins: np.ndarray) -> float:
    """Mean of the byte-scaled bins (0.0 for an empty spectrum)."""
    bins = np.asarray(byte_bins, dtype=np.float64)
    if bins.size == 0:
        return 0.0
    return float(bins.mean())


def sample(node: AnalysisNode, *, timestamp_ms: int) -> AudioSample:
    """Read the node's current snapshot and derive one AudioSample.

    Must only be called while a recording is active; the caller supplies
    the timestamp so the sampler itself holds no clock.
    """
    volume = mean_volume(node.byte_frequency_data())
    pitch = estimate_pitch(node.float_frequency_data(), node.sample_rate, node.fft_size)
    return AudioSample(pitch_hz=pitch, volume=volume, timestamp_ms=timestamp_ms)


def realtime_score(
    samples: Sequence[AudioSample],
    *,
    window: int = REALTIME_WINDOW,
    ideal_volume: float = IDEAL_VOLUME,
) -> int:
    """Live 0–100 meter shown while recording.

    Averages the volume of the most recent `window` samples and scores it
    against `ideal_volume`. Returns 0 before the first sample.
    """
    if not samples or window <= 0 or ideal_volume <= 0:
        return 0
    recent = samples[-window:]
    avg = sum(s.volume for s in recent) / len(recent)
    return int(np.floor(min(avg / ideal_volume, 1.0) * 100 + 0.5))
