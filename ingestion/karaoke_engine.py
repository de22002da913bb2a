"""
ingestion/karaoke_engine.py — High-level orchestrator for scoring takes.

KaraokeEngine wires the recording pipeline together:

    take (file or microphone)
        │
        ├─ load_take()            [ingestion/audio_loader.py — file I/O]
        │       ↓
        ├─ AudioInput.open()      [ingestion/audio_input.py — replay or sounddevice]
        │       ↓
        ├─ RecordingSession       [ingestion/recording_session.py — lifecycle]
        │       │  per frame: sample()            [core/karaoke/sampler.py]
        │       ↓  on stop:   score_performance() [core/karaoke/scoring.py]
        └─ ScoreHistoryStore      [ingestion/score_store.py — JSON history]

File takes are replayed on a SimulatedClock: frames are spaced exactly
as they would be live, but nothing waits in real time. Live takes run on
the real clock for a fixed number of seconds.

Usage:
    engine = KaraokeEngine()
    result = engine.score_file("take.wav", song_title="Summer Dreams")
    print(result.score.total_score)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np

from core.config import DEFAULT_CONFIG, KaraokeConfig
from core.karaoke.types import AudioSample, KaraokeScore, ScoringMode, SessionState
from ingestion.audio_input import (
    AudioInput,
    FileReplayInput,
    MicrophonePermission,
    SoundDeviceInput,
    SoundDevicePermission,
    StaticPermission,
)
from ingestion.audio_loader import load_take
from ingestion.frame_loop import FrameLoop, SimulatedClock
from ingestion.recording_session import RecordingSession
from ingestion.score_store import ScoreHistoryStore, ScoreRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TakeResult:
    """Output of one scored take.

    Attributes:
        score:      The take's KaraokeScore.
        samples:    Analysis samples the score was computed from.
        record:     History entry if the score was saved, else None.
        processing_time_ms: Wall-clock time spent producing the result.
    """

    score: KaraokeScore
    samples: tuple[AudioSample, ...]
    record: ScoreRecord | None = None
    processing_time_ms: float = 0.0


class KaraokeEngine:
    """Score recorded or live takes and keep their history.

    Args:
        config: Capture and analyser configuration.
        store: Score history; defaults to a store at config.history_file.
        librosa: Injected librosa module for file loading.
        sounddevice: Injected sounddevice module for live capture.
        clock: Seconds source for live capture pacing.
        sleep: Sleep function used between live frames.
    """

    def __init__(
        self,
        config: KaraokeConfig = DEFAULT_CONFIG,
        *,
        store: ScoreHistoryStore | None = None,
        librosa: Any = None,
        sounddevice: Any = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        # an empty store is falsy (len 0), so test against None
        self.store = store if store is not None else ScoreHistoryStore(config.history_file)
        self._librosa = librosa
        self._sounddevice = sounddevice
        self._clock = clock
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Recorded takes
    # ------------------------------------------------------------------

    def score_file(
        self,
        path: str | Path,
        *,
        reference_duration: float | None = None,
        mode: ScoringMode | None = None,
        song_id: str | None = None,
        song_title: str | None = None,
        save: bool = True,
    ) -> TakeResult:
        """Load a recording from disk and score it.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file format is not supported.
            RuntimeError: If the audio cannot be decoded.
        """
        y, sr = load_take(path, librosa=self._librosa)
        logger.info("KaraokeEngine: loaded %s (%.1fs at %d Hz)", path, len(y) / sr, sr)
        return self.score_signal(
            y,
            sr,
            reference_duration=reference_duration,
            mode=mode,
            song_id=song_id,
            song_title=song_title,
            save=save,
        )

    def score_signal(
        self,
        y: np.ndarray,
        sr: int,
        *,
        reference_duration: float | None = None,
        mode: ScoringMode | None = None,
        song_id: str | None = None,
        song_title: str | None = None,
        save: bool = True,
    ) -> TakeResult:
        """Replay an in-memory signal through a full recording session.

        The take lasts exactly as long as the signal.
        """
        t0 = time.perf_counter()
        clock = SimulatedClock()
        loop = FrameLoop(frame_interval=self.config.frame_interval, sleep=clock.advance)
        audio_input = FileReplayInput(y, sr, clock=clock.now, config=self.config)
        duration = audio_input.duration_seconds

        def _until_end() -> None:
            loop.run_until(lambda: clock.now() >= duration)

        result = self._run_take(
            audio_input,
            loop,
            permission=StaticPermission(True),
            session_clock=clock.now_ms,
            wait_for_end=_until_end,
            reference_duration=reference_duration,
            mode=mode,
            song_id=song_id,
            song_title=song_title,
            save=save,
        )
        return _with_timing(result, t0)

    # ------------------------------------------------------------------
    # Live takes
    # ------------------------------------------------------------------

    def record_live(
        self,
        seconds: float,
        *,
        device: int | str | None = None,
        reference_duration: float | None = None,
        mode: ScoringMode | None = None,
        song_id: str | None = None,
        song_title: str | None = None,
        save: bool = True,
    ) -> TakeResult:
        """Record from the microphone for `seconds` and score the take.

        Raises:
            ValueError: If seconds is not positive.
            PermissionDeniedError: If microphone access is not granted.
            AcquisitionError: If the microphone cannot be opened.
        """
        if seconds <= 0:
            raise ValueError(f"seconds must be positive, got {seconds}")

        t0 = time.perf_counter()
        loop = FrameLoop(frame_interval=self.config.frame_interval, sleep=self._sleep)
        audio_input = SoundDeviceInput(self.config, device=device, sounddevice=self._sounddevice)
        permission = SoundDevicePermission(device, sounddevice=self._sounddevice)
        deadline = self._clock() + seconds

        def _until_deadline() -> None:
            loop.run_until(lambda: self._clock() >= deadline)

        result = self._run_take(
            audio_input,
            loop,
            permission=permission,
            session_clock=lambda: self._clock() * 1000.0,
            wait_for_end=_until_deadline,
            reference_duration=reference_duration,
            mode=mode,
            song_id=song_id,
            song_title=song_title,
            save=save,
        )
        return _with_timing(result, t0)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def history(self) -> list[ScoreRecord]:
        """Saved scores, newest first."""
        return self.store.list_all()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_take(
        self,
        audio_input: AudioInput,
        loop: FrameLoop,
        *,
        permission: MicrophonePermission,
        session_clock: Callable[[], float],
        wait_for_end: Callable[[], None],
        reference_duration: float | None,
        mode: ScoringMode | None,
        song_id: str | None,
        song_title: str | None,
        save: bool,
    ) -> TakeResult:
        scores: list[KaraokeScore] = []
        session = RecordingSession(
            audio_input,
            scheduler=loop,
            permission=permission,
            clock=session_clock,
            on_score_calculated=scores.append,
            reference_duration=reference_duration,
            mode=mode,
            config=self.config,
        )
        with session:
            session.start()
            wait_for_end()
            session.stop()
            loop.run_until(lambda: session.state is SessionState.SCORED)

        score = scores[0]
        record = None
        if save:
            record = self.store.append(score, song_id=song_id, song_title=song_title)
        return TakeResult(score=score, samples=session.samples, record=record)


def _with_timing(result: TakeResult, t0: float) -> TakeResult:
    return TakeResult(
        score=result.score,
        samples=result.samples,
        record=result.record,
        processing_time_ms=(time.perf_counter() - t0) * 1000.0,
    )
