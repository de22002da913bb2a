"""
ingestion/audio_input.py — Microphone permission and audio input collaborators.

This is the hardware boundary of the recording pipeline. A session asks
an AudioInput to `open()` a stream, reads spectrum snapshots from the
stream's analyser once per frame, and calls `stream.stop()` to release
the device.

Implementations:
    SoundDeviceInput   live microphone through `sounddevice` (PortAudio)
    FileReplayInput    a pre-loaded take replayed against a clock

`sounddevice` is injected as a parameter or imported lazily on first
use, the same way librosa is handled in the audio loader, so tests and
file replay run without a PortAudio backend.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

import numpy as np

from core.config import DEFAULT_CONFIG, KaraokeConfig
from core.karaoke.errors import AcquisitionError
from ingestion.analyser import SpectrumAnalyser

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


class MicrophonePermission(Protocol):
    """Grants or denies access to the microphone."""

    def is_granted(self) -> bool: ...


class AudioStream(Protocol):
    """An open input whose spectrum can be sampled each frame."""

    @property
    def analyser(self) -> SpectrumAnalyser: ...

    @property
    def ended(self) -> bool:
        """True once the input stopped delivering audio on its own."""
        ...

    def stop(self) -> None:
        """Release the device. Must be safe to call more than once."""
        ...


class AudioInput(Protocol):
    """Factory for AudioStream; raises AcquisitionError on failure."""

    def open(self) -> AudioStream: ...


def _load_sounddevice(module: Any) -> Any:
    """Return the injected sounddevice module, importing it if needed."""
    if module is not None:
        return module
    import sounddevice  # deferred to allow running without PortAudio

    return sounddevice


# ---------------------------------------------------------------------------
# Permission
# ---------------------------------------------------------------------------


class StaticPermission:
    """Fixed answer. Used for file replay and tests."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    def is_granted(self) -> bool:
        return self.granted


class SoundDevicePermission:
    """Probe the default (or given) input device once and remember the answer.

    Access counts as granted when a short input stream can be opened and
    closed. The probe stream is released immediately.

    Args:
        device: Device index or name substring; None = system default.
        sounddevice: Injected sounddevice module (MagicMock in tests).
    """

    def __init__(self, device: int | str | None = None, sounddevice: Any = None) -> None:
        self._device = device
        self._sd = sounddevice
        self._granted: bool | None = None

    def is_granted(self) -> bool:
        if self._granted is None:
            self._granted = self._probe()
        return self._granted

    def _probe(self) -> bool:
        try:
            sd = _load_sounddevice(self._sd)
            sd.check_input_settings(device=self._device, channels=1)
            probe = sd.InputStream(device=self._device, channels=1)
            probe.close()
        except Exception as exc:
            logger.warning("Microphone probe failed (%s), access denied", exc)
            return False
        logger.info("Microphone access granted (device=%s)", self._device)
        return True


# ---------------------------------------------------------------------------
# Live microphone
# ---------------------------------------------------------------------------


class SoundDeviceStream:
    """Open PortAudio input feeding a SpectrumAnalyser from its callback thread.

    `finished` is set by PortAudio's finished_callback when the stream
    becomes inactive, e.g. the device was unplugged or access revoked.
    """

    def __init__(
        self,
        stream: Any,
        analyser: SpectrumAnalyser,
        finished: threading.Event | None = None,
    ) -> None:
        self._stream = stream
        self._analyser = analyser
        self._finished = finished if finished is not None else threading.Event()
        self._stopped = False

    @property
    def analyser(self) -> SpectrumAnalyser:
        return self._analyser

    @property
    def ended(self) -> bool:
        if self._stopped:
            return False
        return self._finished.is_set() or not bool(self._stream.active)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        try:
            self._stream.stop()
        finally:
            self._stream.close()
        logger.info("Microphone stream released")


class SoundDeviceInput:
    """Live microphone input.

    Args:
        config: Sample rate and analyser parameters.
        device: Device index or name substring; None = system default.
        sounddevice: Injected sounddevice module (MagicMock in tests).
    """

    def __init__(
        self,
        config: KaraokeConfig = DEFAULT_CONFIG,
        *,
        device: int | str | None = None,
        sounddevice: Any = None,
    ) -> None:
        self._config = config
        self._device = device
        self._sd = sounddevice

    def open(self) -> SoundDeviceStream:
        """Open and start the input stream.

        Raises:
            AcquisitionError: If the stream cannot be created or started.
                A stream that was created but failed to start is closed
                before the error is raised.
        """
        analyser = SpectrumAnalyser(self._config.sample_rate, config=self._config)

        def _callback(indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
            if status:
                logger.debug("Input stream status: %s", status)
            analyser.write(indata)

        finished = threading.Event()
        device = None if self._device is None else str(self._device)
        try:
            sd = _load_sounddevice(self._sd)
            stream = sd.InputStream(
                device=self._device,
                channels=1,
                samplerate=self._config.sample_rate,
                dtype="float32",
                callback=_callback,
                finished_callback=finished.set,
            )
        except Exception as exc:
            raise AcquisitionError(device, str(exc)) from exc

        try:
            stream.start()
        except Exception as exc:
            stream.close()
            raise AcquisitionError(device, str(exc)) from exc

        logger.info("Microphone stream started at %d Hz", self._config.sample_rate)
        return SoundDeviceStream(stream, analyser, finished)


# ---------------------------------------------------------------------------
# File replay
# ---------------------------------------------------------------------------


class FileReplayStream:
    """Replays a pre-loaded signal as if it were arriving live.

    Each snapshot request pulls every sample whose time has come,
    according to `clock` (seconds).
    """

    def __init__(
        self,
        y: np.ndarray,
        sr: int,
        *,
        clock: Callable[[], float],
        config: KaraokeConfig,
    ) -> None:
        self._y = np.asarray(y, dtype=np.float64).reshape(-1)
        self._sr = int(sr)
        self._clock = clock
        self._start = clock()
        self._position = 0
        self._stopped = False
        self._analyser = SpectrumAnalyser(self._sr, config=config, source=self._pull)

    @property
    def analyser(self) -> SpectrumAnalyser:
        return self._analyser

    @property
    def duration_seconds(self) -> float:
        return self._y.size / self._sr

    @property
    def ended(self) -> bool:
        """True once playback time has passed the end of the signal."""
        return self._clock() - self._start >= self.duration_seconds

    def stop(self) -> None:
        self._stopped = True

    def _pull(self) -> np.ndarray:
        if self._stopped:
            return np.empty(0)
        elapsed = max(0.0, self._clock() - self._start)
        target = min(self._y.size, int(elapsed * self._sr))
        chunk = self._y[self._position : target]
        self._position = max(self._position, target)
        return chunk


class FileReplayInput:
    """AudioInput over an in-memory signal (see ingestion.audio_loader).

    Args:
        y: Mono float samples.
        sr: Sample rate of `y` in Hz.
        clock: Time source in seconds shared with the frame loop.
        config: Analyser parameters.
    """

    def __init__(
        self,
        y: np.ndarray,
        sr: int,
        *,
        clock: Callable[[], float],
        config: KaraokeConfig = DEFAULT_CONFIG,
    ) -> None:
        if sr <= 0:
            raise ValueError(f"sr must be positive, got {sr}")
        self._y = y
        self._sr = sr
        self._clock = clock
        self._config = config
        self.last_stream: FileReplayStream | None = None

    @property
    def duration_seconds(self) -> float:
        return np.asarray(self._y).size / self._sr

    def open(self) -> FileReplayStream:
        self.last_stream = FileReplayStream(
            self._y, self._sr, clock=self._clock, config=self._config
        )
        return self.last_stream
