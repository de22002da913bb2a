"""
ingestion/analyser.py — Spectrum snapshots from a stream of PCM samples.

SpectrumAnalyser follows the frequency-domain behaviour of a browser
AnalyserNode, so the sampler's volume and pitch scales match what the
scoring thresholds were tuned on:

    1. Keep the most recent `fft_size` samples (zero-padded at start).
    2. Apply a Blackman window (alpha = 0.16).
    3. Real FFT, magnitude / fft_size, first fft_size / 2 bins.
    4. Exponential smoothing with the previous magnitudes:
           X = tau * X_prev + (1 - tau) * |X|
    5. dB = 20 * log10(X)   (-inf for 0)
    6. byte = floor(255 / (max_dB - min_dB) * (dB - min_dB)), clipped to 0..255

A snapshot is recomputed only when new audio arrived since the previous
one, so reading the byte and float views in the same tick does not
apply smoothing twice.

Audio arrives in one of two ways:
    - push: an input callback (e.g. a sounddevice stream running on the
      PortAudio thread) calls `write()`;
    - pull: a `source` callable is polled before each snapshot and
      returns whatever audio became available (file replay).
"""

from __future__ import annotations

import threading
from collections.abc import Callable

import numpy as np

from core.config import DEFAULT_CONFIG, KaraokeConfig

_BLACKMAN_ALPHA: float = 0.16


def blackman_window(size: int) -> np.ndarray:
    """Blackman window of length `size` using the N (not N-1) denominator."""
    a0 = (1 - _BLACKMAN_ALPHA) / 2
    a1 = 0.5
    a2 = _BLACKMAN_ALPHA / 2
    n = np.arange(size, dtype=np.float64)
    return a0 - a1 * np.cos(2 * np.pi * n / size) + a2 * np.cos(4 * np.pi * n / size)


class SpectrumAnalyser:
    """Thread-safe frequency analyser over a mono PCM stream.

    Satisfies core.karaoke.sampler.AnalysisNode.

    Args:
        sample_rate: Sample rate of the incoming audio in Hz.
        config: FFT size, smoothing and dB range.
        source: Optional pull callback returning new float samples
            (possibly empty) each time a snapshot is requested.
    """

    def __init__(
        self,
        sample_rate: int,
        *,
        config: KaraokeConfig = DEFAULT_CONFIG,
        source: Callable[[], np.ndarray] | None = None,
    ) -> None:
        self._sample_rate = int(sample_rate)
        self._fft_size = config.fft_size
        self._smoothing = config.smoothing_time_constant
        self._min_db = config.min_decibels
        self._max_db = config.max_decibels
        self._source = source

        self._buffer = np.zeros(self._fft_size, dtype=np.float64)
        self._window = blackman_window(self._fft_size)
        self._smoothed = np.zeros(self._fft_size // 2, dtype=np.float64)
        self._db = np.full(self._fft_size // 2, -np.inf)
        self._dirty = False
        self._lock = threading.Lock()

    @property
    def fft_size(self) -> int:
        return self._fft_size

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def frequency_bin_count(self) -> int:
        return self._fft_size // 2

    def write(self, samples: np.ndarray) -> None:
        """Append mono float samples (multi-channel input is averaged)."""
        data = np.asarray(samples, dtype=np.float64)
        if data.ndim > 1:
            data = data.mean(axis=1)
        data = data.reshape(-1)
        if data.size == 0:
            return
        with self._lock:
            if data.size >= self._fft_size:
                self._buffer[:] = data[-self._fft_size :]
            else:
                self._buffer = np.roll(self._buffer, -data.size)
                self._buffer[-data.size :] = data
            self._dirty = True

    def float_frequency_data(self) -> np.ndarray:
        """Current spectrum in dB, one value per bin."""
        self._refresh()
        with self._lock:
            return self._db.copy()

    def byte_frequency_data(self) -> np.ndarray:
        """Current spectrum scaled to 0..255 over [min_decibels, max_decibels]."""
        self._refresh()
        with self._lock:
            db = self._db.copy()
        scale = 255.0 / (self._max_db - self._min_db)
        with np.errstate(invalid="ignore"):
            scaled = np.floor(scale * (db - self._min_db))
        scaled = np.nan_to_num(scaled, nan=0.0, neginf=0.0, posinf=255.0)
        return np.clip(scaled, 0, 255).astype(np.uint8)

    def time_domain_data(self) -> np.ndarray:
        """Copy of the most recent `fft_size` samples."""
        with self._lock:
            return self._buffer.copy()

    def _refresh(self) -> None:
        if self._source is not None:
            self.write(self._source())
        with self._lock:
            if not self._dirty:
                return
            spectrum = np.fft.rfft(self._buffer * self._window)[: self._fft_size // 2]
            magnitude = np.abs(spectrum) / self._fft_size
            tau = self._smoothing
            self._smoothed = tau * self._smoothed + (1 - tau) * magnitude
            with np.errstate(divide="ignore"):
                self._db = 20.0 * np.log10(self._smoothed)
            self._dirty = False
