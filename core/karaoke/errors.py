"""Errors surfaced by the recording lifecycle.

Only resource acquisition can fail from the caller's point of view.
Numeric edge cases never raise: the scorer resolves them to fallback
values, and an empty take is a valid scoring outcome.
"""

from __future__ import annotations


class KaraokeError(Exception):
    """Base class for all karaoke errors."""


class PermissionDeniedError(KaraokeError):
    """Microphone access was not granted.

    Raised by RecordingSession.start() before any state changes.
    """

    def __init__(self, detail: str = "microphone access was not granted") -> None:
        """Initialize with a human-readable reason."""
        self.detail = detail
        super().__init__(f"Microphone permission denied: {detail}")


class AcquisitionError(KaraokeError):
    """The audio input could not be opened after permission was granted.

    Args:
        device: Name or index of the input that failed, if known.
        reason: Underlying failure description.
    """

    def __init__(self, device: str | None, reason: str) -> None:
        """Initialize with device context and the underlying reason."""
        self.device = device
        self.reason = reason
        where = f" on {device!r}" if device else ""
        super().__init__(f"Could not open audio input{where}: {reason}")


class SessionStateError(KaraokeError):
    """A command was issued in a state that does not accept it."""

    def __init__(self, command: str, state: str) -> None:
        """Initialize with the rejected command and the current state."""
        self.command = command
        self.state = state
        super().__init__(f"Cannot {command}() while session is {state}")
