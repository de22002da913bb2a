"""
ingestion/recording_session.py — Lifecycle of one sung take.

RecordingSession owns the microphone stream for the duration of a take,
samples its spectrum once per frame, and hands the frozen sample
sequence to the scorer when the take stops.

State machine::

    IDLE ──start()──→ RECORDING ──stop()──→ ANALYZING ──(scored)──→ SCORED
                          ↑                                            │
                          └─────────────────start()────────────────────┘

Guarantees:
    - start() fails fast with PermissionDeniedError or AcquisitionError
      and leaves the state untouched. A stream that was opened before
      the failure is released first.
    - Samples are appended only while RECORDING. Every tick re-checks
      the state before sampling, and stop() cancels the pending frame,
      so no sample is taken after stop().
    - The stream is released on every exit path: stop(), a sampling
      fault during a tick, the input ending on its own (device lost),
      close(), and leaving a `with` block.
    - on_score_calculated fires exactly once per completed take.
    - An empty take still produces a score (the scorer's baseline).

Usage:
    loop = FrameLoop()
    session = RecordingSession(SoundDeviceInput(), scheduler=loop,
                               permission=SoundDevicePermission(),
                               on_score_calculated=show_score)
    session.start()
    loop.run_until(lambda: time_is_up())
    session.stop()
    loop.run_until(lambda: session.state is SessionState.SCORED)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from core.config import DEFAULT_CONFIG, KaraokeConfig
from core.karaoke.errors import AcquisitionError, PermissionDeniedError, SessionStateError
from core.karaoke.sampler import realtime_score, sample
from core.karaoke.scoring import score_performance
from core.karaoke.types import AudioSample, KaraokeScore, ScoringMode, SessionState
from infrastructure.metrics import record_session_scored, record_start_failure
from ingestion.audio_input import AudioInput, AudioStream, MicrophonePermission, StaticPermission
from ingestion.frame_loop import FrameLoop

logger = logging.getLogger(__name__)


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RecordingSession:
    """Record, sample and score one take at a time.

    Args:
        audio_input: Opens the stream to sample (microphone or replay).
        scheduler: Frame loop that drives sampling and deferred scoring.
        permission: Microphone permission; defaults to always granted.
        clock: Milliseconds source used for timestamps and duration.
        on_score_calculated: Called with the KaraokeScore once per take.
        reference_duration: Length of the backing track in seconds.
            Selects weighted scoring when given.
        mode: Force a ScoringMode regardless of reference_duration.
        config: Live meter window and ideal volume.
    """

    def __init__(
        self,
        audio_input: AudioInput,
        *,
        scheduler: FrameLoop,
        permission: MicrophonePermission | None = None,
        clock: Callable[[], float] = _monotonic_ms,
        on_score_calculated: Callable[[KaraokeScore], None] | None = None,
        reference_duration: float | None = None,
        mode: ScoringMode | None = None,
        config: KaraokeConfig = DEFAULT_CONFIG,
    ) -> None:
        self._audio_input = audio_input
        self._scheduler = scheduler
        self._permission = permission or StaticPermission(True)
        self._clock = clock
        self._on_score_calculated = on_score_calculated
        self.reference_duration = reference_duration
        self.mode = mode
        self._config = config

        self._state = SessionState.IDLE
        self._stream: AudioStream | None = None
        self._frame_handle: int | None = None
        self._samples: list[AudioSample] = []
        self._frozen: tuple[AudioSample, ...] = ()
        self._start_ms = 0.0
        self._duration_seconds = 0.0
        self._realtime_score = 0
        self._score: KaraokeScore | None = None

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def samples(self) -> tuple[AudioSample, ...]:
        """Samples of the current (or last) take, oldest first."""
        return tuple(self._samples)

    @property
    def score(self) -> KaraokeScore | None:
        """Score of the last completed take; None until SCORED."""
        return self._score

    @property
    def duration_seconds(self) -> float:
        """Length of the last stopped take (0.0 while recording)."""
        return self._duration_seconds

    @property
    def realtime_score(self) -> int:
        """Live 0–100 volume meter, updated every tick."""
        return self._realtime_score

    @property
    def is_recording(self) -> bool:
        return self._state is SessionState.RECORDING

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin a new take.

        Allowed from IDLE and SCORED. Previous samples and score are
        discarded.

        Raises:
            SessionStateError: If a take is recording or being analysed.
            PermissionDeniedError: If microphone access is not granted.
            AcquisitionError: If the audio input cannot be opened.
        """
        if self._state in (SessionState.RECORDING, SessionState.ANALYZING):
            raise SessionStateError("start", self._state.value)

        if not self._permission.is_granted():
            logger.warning("RecordingSession: start refused, microphone permission denied")
            record_start_failure("permission_denied")
            raise PermissionDeniedError()

        stream = self._open_stream()

        self._stream = stream
        self._samples = []
        self._frozen = ()
        self._score = None
        self._duration_seconds = 0.0
        self._realtime_score = 0
        self._start_ms = self._clock()
        self._transition_to(SessionState.RECORDING)
        self._schedule_tick()

    def stop(self) -> None:
        """End the take, release the input and schedule scoring.

        A no-op outside RECORDING.
        """
        if self._state is not SessionState.RECORDING:
            logger.debug("RecordingSession: stop() ignored in state %s", self._state.value)
            return

        self._transition_to(SessionState.ANALYZING)
        try:
            if self._frame_handle is not None:
                self._scheduler.cancel_frame(self._frame_handle)
                self._frame_handle = None
            self._duration_seconds = max(0.0, (self._clock() - self._start_ms) / 1000.0)
            self._frozen = tuple(self._samples)
        finally:
            self._release_stream()
        self._scheduler.defer(self._analyze)

    def handle_reference_ended(self) -> None:
        """Backing track finished: stop the take if one is running."""
        if self.is_recording:
            logger.info("RecordingSession: reference track ended, stopping take")
            self.stop()

    def close(self) -> None:
        """Stop any running take and make sure the input is released."""
        self.stop()
        self._release_stream()

    def __enter__(self) -> RecordingSession:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_stream(self) -> AudioStream:
        try:
            stream = self._audio_input.open()
        except AcquisitionError as exc:
            logger.warning("RecordingSession: %s", exc)
            record_start_failure("acquisition_failed")
            raise
        except Exception as exc:
            logger.warning("RecordingSession: audio input failed to open (%s)", exc)
            record_start_failure("acquisition_failed")
            raise AcquisitionError(None, str(exc)) from exc

        try:
            if stream.analyser.frequency_bin_count <= 0:
                raise RuntimeError("analyser reports no frequency bins")
        except Exception as exc:
            stream.stop()
            logger.warning("RecordingSession: analyser unusable (%s)", exc)
            record_start_failure("acquisition_failed")
            raise AcquisitionError(None, str(exc)) from exc
        return stream

    def _transition_to(self, new_state: SessionState) -> None:
        old_state = self._state
        self._state = new_state
        logger.info(
            "RecordingSession: %s -> %s",
            old_state.value.upper(),
            new_state.value.upper(),
        )

    def _schedule_tick(self) -> None:
        self._frame_handle = self._scheduler.request_frame(self._tick)

    def _tick(self) -> None:
        self._frame_handle = None
        if self._state is not SessionState.RECORDING or self._stream is None:
            return

        if self._stream.ended:
            logger.warning("RecordingSession: audio input ended, stopping take")
            self.stop()
            return

        elapsed = int(self._clock() - self._start_ms)
        previous = self._samples[-1].timestamp_ms if self._samples else 0
        timestamp = max(elapsed, previous, 0)

        try:
            current = sample(self._stream.analyser, timestamp_ms=timestamp)
        except Exception as exc:
            logger.error(
                "RecordingSession: sampling failed (%s: %s), stopping take",
                type(exc).__name__,
                exc,
            )
            self.stop()
            return

        self._samples.append(current)
        self._realtime_score = realtime_score(
            self._samples,
            window=self._config.realtime_window,
            ideal_volume=self._config.ideal_volume,
        )
        logger.debug(
            "RecordingSession: sample t=%dms pitch=%.1fHz volume=%.1f",
            current.timestamp_ms,
            current.pitch_hz,
            current.volume,
        )
        self._schedule_tick()

    def _analyze(self) -> None:
        if self._state is not SessionState.ANALYZING:
            return
        score = score_performance(
            self._frozen,
            self._duration_seconds,
            reference_duration=self.reference_duration,
            mode=self.mode,
        )
        self._score = score
        self._transition_to(SessionState.SCORED)
        record_session_scored(
            mode=score.mode.value,
            total=score.total_score,
            duration_seconds=self._duration_seconds,
            sample_count=score.sample_count,
        )
        logger.info(
            "RecordingSession: scored %d (%s, %d samples, %.1fs)",
            score.total_score,
            score.mode.value,
            score.sample_count,
            self._duration_seconds,
        )
        if self._on_score_calculated is not None:
            self._on_score_calculated(score)

    def _release_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
