"""
Shared fixtures for the test suite.

Centralizes reusable test infrastructure so individual test files
don't need to repeat fake-input and sample-building boilerplate.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import numpy as np
import pytest

from core.karaoke.types import AudioSample

# ---------------------------------------------------------------------------
# Sample factory
# ---------------------------------------------------------------------------


def make_samples(
    count: int,
    *,
    volume: float = 50.0,
    pitch_hz: float = 440.0,
    interval_ms: int = 50,
) -> list[AudioSample]:
    """Evenly spaced samples with constant volume and pitch."""
    return [
        AudioSample(pitch_hz=pitch_hz, volume=volume, timestamp_ms=i * interval_ms)
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Fake analysis node
# ---------------------------------------------------------------------------


class FakeAnalysisNode:
    """Returns fixed spectra; counts how often it was read."""

    def __init__(
        self,
        byte_bins: np.ndarray | None = None,
        float_bins: np.ndarray | None = None,
        *,
        fft_size: int = 2048,
        sample_rate: int = 44100,
    ) -> None:
        bins = fft_size // 2
        self.byte_bins = np.zeros(bins, dtype=np.uint8) if byte_bins is None else byte_bins
        self.float_bins = np.full(bins, -np.inf) if float_bins is None else float_bins
        self.fft_size = fft_size
        self.sample_rate = sample_rate
        self.frequency_bin_count = bins
        self.reads = 0

    def byte_frequency_data(self) -> np.ndarray:
        self.reads += 1
        return self.byte_bins

    def float_frequency_data(self) -> np.ndarray:
        return self.float_bins


# ---------------------------------------------------------------------------
# Fake audio input
# ---------------------------------------------------------------------------


class FakeStream:
    """AudioStream over a FakeAnalysisNode that records stop() calls.

    Set `ended = True` to simulate the device going away mid-take.
    """

    def __init__(self, node: FakeAnalysisNode) -> None:
        self.analyser = node
        self.ended = False
        self.stop_calls = 0

    def stop(self) -> None:
        self.stop_calls += 1


class FakeAudioInput:
    """AudioInput handing out FakeStreams; can be told to fail."""

    def __init__(self, node: FakeAnalysisNode | None = None, error: Exception | None = None) -> None:
        self.node = node or FakeAnalysisNode()
        self.error = error
        self.streams: list[FakeStream] = []

    def open(self) -> FakeStream:
        if self.error is not None:
            raise self.error
        stream = FakeStream(self.node)
        self.streams.append(stream)
        return stream


class ManualClock:
    """Millisecond clock moved by hand."""

    def __init__(self, start_ms: float = 1_000.0) -> None:
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture()
def fake_input() -> FakeAudioInput:
    """Audio input with a loud, pitched spectrum (volume 50, bin 20 peak)."""
    byte_bins = np.full(1024, 50, dtype=np.uint8)
    float_bins = np.full(1024, -90.0)
    float_bins[20] = -20.0
    return FakeAudioInput(FakeAnalysisNode(byte_bins, float_bins))


@pytest.fixture()
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def mock_sounddevice() -> MagicMock:
    """sounddevice stand-in whose InputStream never calls back."""
    sd = MagicMock()
    sd.InputStream.return_value = MagicMock()
    return sd
