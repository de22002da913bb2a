"""
Tests for ingestion/audio_input.py and ingestion/audio_loader.py.

sounddevice and librosa are injected as MagicMock modules so no audio
backend is needed.
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from core.config import KaraokeConfig
from core.karaoke.errors import AcquisitionError
from ingestion.audio_input import (
    FileReplayInput,
    SoundDeviceInput,
    SoundDevicePermission,
    SoundDeviceStream,
    StaticPermission,
)
from ingestion.audio_loader import load_take
from ingestion.frame_loop import SimulatedClock

# ---------------------------------------------------------------------------
# Permission
# ---------------------------------------------------------------------------


class TestPermission:
    def test_static(self):
        assert StaticPermission().is_granted() is True
        assert StaticPermission(False).is_granted() is False

    def test_probe_grants_and_closes(self, mock_sounddevice):
        permission = SoundDevicePermission(device=3, sounddevice=mock_sounddevice)
        assert permission.is_granted() is True
        mock_sounddevice.check_input_settings.assert_called_once_with(device=3, channels=1)
        mock_sounddevice.InputStream.return_value.close.assert_called_once()

    def test_probe_result_cached(self, mock_sounddevice):
        permission = SoundDevicePermission(sounddevice=mock_sounddevice)
        permission.is_granted()
        permission.is_granted()
        assert mock_sounddevice.check_input_settings.call_count == 1

    def test_probe_failure_denies(self, mock_sounddevice):
        mock_sounddevice.check_input_settings.side_effect = RuntimeError("no input device")
        permission = SoundDevicePermission(sounddevice=mock_sounddevice)
        assert permission.is_granted() is False


# ---------------------------------------------------------------------------
# Live microphone
# ---------------------------------------------------------------------------


class TestSoundDeviceInput:
    def test_opens_mono_float_stream(self, mock_sounddevice):
        config = KaraokeConfig(sample_rate=48000)
        stream = SoundDeviceInput(config, device="USB", sounddevice=mock_sounddevice).open()

        kwargs = mock_sounddevice.InputStream.call_args.kwargs
        assert kwargs["device"] == "USB"
        assert kwargs["channels"] == 1
        assert kwargs["samplerate"] == 48000
        assert kwargs["dtype"] == "float32"
        mock_sounddevice.InputStream.return_value.start.assert_called_once()
        assert stream.analyser.sample_rate == 48000

    def test_callback_feeds_analyser(self, mock_sounddevice):
        stream = SoundDeviceInput(sounddevice=mock_sounddevice).open()
        callback = mock_sounddevice.InputStream.call_args.kwargs["callback"]

        callback(np.full((256, 1), 0.25, dtype=np.float32), 256, None, None)

        tail = stream.analyser.time_domain_data()[-256:]
        np.testing.assert_allclose(tail, 0.25)

    def test_create_failure(self, mock_sounddevice):
        mock_sounddevice.InputStream.side_effect = OSError("Invalid device")
        with pytest.raises(AcquisitionError, match="Invalid device"):
            SoundDeviceInput(device=7, sounddevice=mock_sounddevice).open()

    def test_start_failure_closes_stream(self, mock_sounddevice):
        raw = mock_sounddevice.InputStream.return_value
        raw.start.side_effect = RuntimeError("device busy")
        with pytest.raises(AcquisitionError) as excinfo:
            SoundDeviceInput(device="USB", sounddevice=mock_sounddevice).open()
        raw.close.assert_called_once()
        assert excinfo.value.device == "USB"

    def test_stream_stop_is_idempotent(self):
        raw = MagicMock()
        stream = SoundDeviceStream(raw, analyser=MagicMock())
        stream.stop()
        stream.stop()
        raw.stop.assert_called_once()
        raw.close.assert_called_once()

    def test_stream_closed_even_if_stop_fails(self):
        raw = MagicMock()
        raw.stop.side_effect = RuntimeError("PortAudio error")
        with pytest.raises(RuntimeError):
            SoundDeviceStream(raw, analyser=MagicMock()).stop()
        raw.close.assert_called_once()

    def test_running_stream_not_ended(self, mock_sounddevice):
        mock_sounddevice.InputStream.return_value.active = True
        stream = SoundDeviceInput(sounddevice=mock_sounddevice).open()
        assert stream.ended is False

    def test_finished_callback_marks_ended(self, mock_sounddevice):
        mock_sounddevice.InputStream.return_value.active = True
        stream = SoundDeviceInput(sounddevice=mock_sounddevice).open()
        finished_callback = mock_sounddevice.InputStream.call_args.kwargs["finished_callback"]

        finished_callback()

        assert stream.ended is True

    def test_inactive_stream_is_ended(self, mock_sounddevice):
        raw = mock_sounddevice.InputStream.return_value
        stream = SoundDeviceInput(sounddevice=mock_sounddevice).open()
        raw.active = False
        assert stream.ended is True

    def test_stopped_stream_not_reported_as_ended(self):
        raw = MagicMock()
        stream = SoundDeviceStream(raw, analyser=MagicMock())
        stream.stop()
        raw.active = False
        assert stream.ended is False


# ---------------------------------------------------------------------------
# File replay
# ---------------------------------------------------------------------------


class TestFileReplay:
    def test_invalid_sample_rate(self):
        with pytest.raises(ValueError, match="sr must be positive"):
            FileReplayInput(np.zeros(10), 0, clock=SimulatedClock().now)

    def test_duration(self):
        replay = FileReplayInput(np.zeros(16000), 8000, clock=SimulatedClock().now)
        assert replay.duration_seconds == 2.0

    def test_audio_released_as_clock_advances(self):
        clock = SimulatedClock()
        y = np.arange(1, 101, dtype=np.float64)
        replay = FileReplayInput(y, 100, clock=clock.now)
        stream = replay.open()
        assert replay.last_stream is stream

        stream.analyser.float_frequency_data()
        assert not np.any(stream.analyser.time_domain_data())

        clock.advance(0.5)
        stream.analyser.float_frequency_data()
        np.testing.assert_array_equal(stream.analyser.time_domain_data()[-50:], y[:50])

    def test_ended(self):
        clock = SimulatedClock()
        stream = FileReplayInput(np.zeros(100), 100, clock=clock.now).open()
        assert not stream.ended
        clock.advance(1.0)
        assert stream.ended

    def test_stopped_stream_delivers_nothing(self):
        clock = SimulatedClock()
        stream = FileReplayInput(np.ones(100), 100, clock=clock.now).open()
        stream.stop()
        clock.advance(0.5)
        stream.analyser.float_frequency_data()
        assert not np.any(stream.analyser.time_domain_data())


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


class TestLoadTake:
    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Recording not found"):
            load_take(tmp_path / "nope.wav", librosa=MagicMock())

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "take.txt"
        path.write_text("not audio")
        with pytest.raises(ValueError, match="Unsupported recording format"):
            load_take(path, librosa=MagicMock())

    def test_invalid_max_duration(self, tmp_path):
        path = tmp_path / "take.wav"
        path.write_bytes(b"RIFF")
        with pytest.raises(ValueError, match="max_duration"):
            load_take(path, max_duration=0, librosa=MagicMock())

    def test_decode_failure(self, tmp_path):
        path = tmp_path / "take.webm"
        path.write_bytes(b"\x1a\x45")
        librosa = MagicMock()
        librosa.load.side_effect = Exception("no backend")
        with pytest.raises(RuntimeError, match="Failed to decode"):
            load_take(path, librosa=librosa)

    def test_returns_mono_float32(self, tmp_path):
        path = tmp_path / "take.wav"
        path.write_bytes(b"RIFF")
        librosa = MagicMock()
        librosa.load.return_value = (np.zeros(400, dtype=np.float64), 22050)

        y, sr = load_take(path, sr=22050, librosa=librosa)

        assert y.dtype == np.float32
        assert sr == 22050
        librosa.load.assert_called_once_with(path, sr=22050, mono=True, duration=None)
