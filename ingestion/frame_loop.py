"""
ingestion/frame_loop.py — Cooperative per-frame scheduler.

Sampling runs on a display-refresh style loop, not a dedicated thread:
callbacks ask for "the next frame", and each frame runs every callback
requested before it started. Work that must not run inside the caller's
stack (scoring after a stop) is queued with `defer()` and runs right
after the frame callbacks, like a microtask.

The loop is single-threaded and deterministic. Tests drive it with
`step()`; the CLI drives it with `run_until()`, which paces frames with
an injectable `sleep` so a SimulatedClock can replay a file faster than
real time.

Usage:
    loop = FrameLoop(frame_interval=1 / 60)
    handle = loop.request_frame(on_tick)
    loop.cancel_frame(handle)
    loop.run_until(lambda: session.state is SessionState.SCORED)
"""

from __future__ import annotations

import itertools
import logging
import time
from collections import deque
from collections.abc import Callable

logger = logging.getLogger(__name__)


class SimulatedClock:
    """Manually advanced clock for replaying audio without waiting.

    `now_ms` is a drop-in for the session clock and `advance` for the
    loop's `sleep`.
    """

    def __init__(self, start_seconds: float = 0.0) -> None:
        self._now = start_seconds

    def now(self) -> float:
        """Current time in seconds."""
        return self._now

    def now_ms(self) -> float:
        """Current time in milliseconds."""
        return self._now * 1000.0

    def advance(self, seconds: float) -> None:
        """Move the clock forward (negative values are ignored)."""
        if seconds > 0:
            self._now += seconds


class FrameLoop:
    """Single-threaded frame scheduler with requestAnimationFrame semantics.

    Args:
        frame_interval: Seconds between frames when run with `run_until`.
        sleep: Called with the frame interval between frames.
    """

    def __init__(
        self,
        *,
        frame_interval: float = 1 / 60,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if frame_interval <= 0:
            raise ValueError(f"frame_interval must be positive, got {frame_interval}")
        self.frame_interval = frame_interval
        self._sleep = sleep
        self._frame_callbacks: dict[int, Callable[[], None]] = {}
        self._deferred: deque[Callable[[], None]] = deque()
        self._handles = itertools.count(1)
        self.frames_run = 0

    @property
    def pending(self) -> int:
        """Number of frame callbacks plus deferred tasks waiting to run."""
        return len(self._frame_callbacks) + len(self._deferred)

    def request_frame(self, callback: Callable[[], None]) -> int:
        """Run `callback` on the next frame. Returns a handle for cancel_frame."""
        handle = next(self._handles)
        self._frame_callbacks[handle] = callback
        return handle

    def cancel_frame(self, handle: int) -> None:
        """Forget a requested frame callback. Unknown handles are ignored."""
        self._frame_callbacks.pop(handle, None)

    def defer(self, callback: Callable[[], None]) -> None:
        """Run `callback` after the current (or next) frame's callbacks."""
        self._deferred.append(callback)

    def step(self) -> None:
        """Run one frame: due frame callbacks first, then deferred tasks.

        Callbacks requested while the frame runs wait for the next frame;
        callbacks cancelled while the frame runs do not fire.
        """
        due = list(self._frame_callbacks.keys())
        for handle in due:
            callback = self._frame_callbacks.pop(handle, None)
            if callback is not None:
                callback()
        while self._deferred:
            self._deferred.popleft()()
        self.frames_run += 1

    def run_until(
        self,
        predicate: Callable[[], bool],
        *,
        max_frames: int | None = None,
    ) -> bool:
        """Step frames until `predicate()` holds.

        Args:
            predicate: Checked before every frame.
            max_frames: Safety limit; None runs without limit.

        Returns:
            True if the predicate was met, False if max_frames ran out or
            nothing was left to run.
        """
        ran = 0
        while not predicate():
            if self.pending == 0:
                logger.debug("FrameLoop: idle before predicate was met")
                return False
            if max_frames is not None and ran >= max_frames:
                logger.warning("FrameLoop: stopped after %d frames", ran)
                return False
            self.step()
            ran += 1
            if not predicate():
                self._sleep(self.frame_interval)
        return True
