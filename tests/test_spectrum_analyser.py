"""
Tests for ingestion/analyser.py.

Signals are synthetic numpy sines placed exactly on a bin centre so the
loudest bin is known in advance.
"""

import numpy as np
import pytest

from core.config import KaraokeConfig
from ingestion.analyser import SpectrumAnalyser, blackman_window

SR = 8000
FFT = 1024


def _sine(bin_index: int, n: int = FFT, amplitude: float = 0.5) -> np.ndarray:
    freq = bin_index * SR / FFT
    t = np.arange(n) / SR
    return amplitude * np.sin(2 * np.pi * freq * t)


def _analyser(**overrides) -> SpectrumAnalyser:
    return SpectrumAnalyser(SR, config=KaraokeConfig(fft_size=FFT, **overrides))


# ---------------------------------------------------------------------------
# Window
# ---------------------------------------------------------------------------


class TestBlackmanWindow:
    def test_length(self):
        assert blackman_window(FFT).shape == (FFT,)

    def test_starts_at_zero(self):
        assert blackman_window(64)[0] == pytest.approx(0.0, abs=1e-12)

    def test_peak_at_centre(self):
        w = blackman_window(64)
        assert int(np.argmax(w)) == 32
        assert w[32] == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class TestSpectrumAnalyser:
    def test_bin_count(self):
        analyser = _analyser()
        assert analyser.frequency_bin_count == FFT // 2
        assert analyser.fft_size == FFT
        assert analyser.sample_rate == SR

    def test_silence(self):
        analyser = _analyser()
        floats = analyser.float_frequency_data()
        assert floats.shape == (FFT // 2,)
        assert np.all(np.isneginf(floats))
        assert np.all(analyser.byte_frequency_data() == 0)

    def test_sine_peaks_at_its_bin(self):
        analyser = _analyser()
        analyser.write(_sine(100))
        assert int(np.argmax(analyser.float_frequency_data())) == 100

    def test_byte_data_is_uint8(self):
        analyser = _analyser()
        analyser.write(_sine(50))
        data = analyser.byte_frequency_data()
        assert data.dtype == np.uint8
        assert data.max() > 0

    def test_loud_sine_saturates_at_255(self):
        analyser = _analyser(smoothing_time_constant=0.0)
        analyser.write(_sine(50, amplitude=1.0))
        assert analyser.byte_frequency_data()[50] == 255

    def test_reading_twice_does_not_smooth_twice(self):
        analyser = _analyser()
        analyser.write(_sine(100))
        first = analyser.float_frequency_data()
        second = analyser.float_frequency_data()
        np.testing.assert_array_equal(first, second)

    def test_smoothing_blends_with_previous(self):
        unsmoothed = _analyser(smoothing_time_constant=0.0)
        smoothed = _analyser(smoothing_time_constant=0.8)
        for analyser in (unsmoothed, smoothed):
            analyser.write(_sine(100))
        # first snapshot: 0.2 * |X| against zeros
        diff = smoothed.float_frequency_data()[100] - unsmoothed.float_frequency_data()[100]
        assert diff == pytest.approx(20 * np.log10(0.2))

    def test_new_audio_triggers_recompute(self):
        analyser = _analyser()
        analyser.write(_sine(100))
        before = analyser.float_frequency_data()[100]
        analyser.write(_sine(100))
        after = analyser.float_frequency_data()[100]
        assert after > before


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------


class TestWrite:
    def test_keeps_latest_fft_size_samples(self):
        analyser = _analyser()
        data = np.arange(FFT + 10, dtype=np.float64)
        analyser.write(data)
        np.testing.assert_array_equal(analyser.time_domain_data(), data[-FFT:])

    def test_short_writes_append(self):
        analyser = _analyser()
        analyser.write(np.ones(3))
        analyser.write(np.full(2, 2.0))
        tail = analyser.time_domain_data()[-5:]
        np.testing.assert_array_equal(tail, [1.0, 1.0, 1.0, 2.0, 2.0])
        assert analyser.time_domain_data()[0] == 0.0

    def test_multichannel_is_averaged(self):
        analyser = _analyser()
        stereo = np.column_stack([np.ones(4), np.full(4, 3.0)])
        analyser.write(stereo)
        np.testing.assert_array_equal(analyser.time_domain_data()[-4:], np.full(4, 2.0))

    def test_empty_write_is_ignored(self):
        analyser = _analyser()
        analyser.write(np.array([]))
        assert np.all(np.isneginf(analyser.float_frequency_data()))

    def test_pull_source_is_polled_per_snapshot(self):
        chunks = [_sine(60), np.empty(0)]
        calls = []

        def source():
            calls.append(1)
            return chunks.pop(0) if chunks else np.empty(0)

        analyser = SpectrumAnalyser(SR, config=KaraokeConfig(fft_size=FFT), source=source)
        assert int(np.argmax(analyser.float_frequency_data())) == 60
        analyser.byte_frequency_data()
        assert len(calls) == 2
