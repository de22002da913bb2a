"""
ingestion/audio_loader.py — File I/O boundary for recorded takes.

Replaying a take from disk is the only place the scoring pipeline reads
audio files. Everything downstream (FileReplayInput, SpectrumAnalyser)
receives a pre-loaded (y, sr) pair.

Usage:
    from ingestion.audio_loader import load_take
    y, sr = load_take("/path/to/take.wav")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np

# Formats decodable by librosa (soundfile, with audioread fallback)
TAKE_EXTENSIONS: frozenset[str] = frozenset(
    {".wav", ".flac", ".ogg", ".mp3", ".m4a", ".webm", ".aiff", ".aif", ".opus"}
)


def load_take(
    path: str | Path,
    *,
    sr: int | None = None,
    max_duration: float | None = None,
    librosa: Any = None,
) -> tuple[np.ndarray, int]:
    """Load a recorded take as mono float samples.

    Unlike reference-track analysis, a take is loaded in full by default:
    its length is part of the score.

    Args:
        path: Path to the recording.
        sr: Target sample rate in Hz. None keeps the file's native rate.
        max_duration: Optional cap in seconds.
        librosa: Injected librosa module (MagicMock in tests). None imports
            it on first use.

    Returns:
        (y, sr): float32 mono samples and their sample rate.

    Raises:
        FileNotFoundError: The file does not exist.
        ValueError: The extension is not a supported format, or
            max_duration is not positive.
        RuntimeError: The file could not be decoded.
    """
    file_path = Path(path)

    if not file_path.exists():
        raise FileNotFoundError(f"Recording not found: {file_path}")

    if file_path.suffix.lower() not in TAKE_EXTENSIONS:
        raise ValueError(
            f"Unsupported recording format {file_path.suffix!r}. "
            f"Supported: {sorted(TAKE_EXTENSIONS)}"
        )

    if max_duration is not None and max_duration <= 0:
        raise ValueError(f"max_duration must be positive, got {max_duration}")

    if librosa is None:
        import librosa  # deferred to allow testing without audio backend

    try:
        y, loaded_sr = librosa.load(file_path, sr=sr, mono=True, duration=max_duration)
    except Exception as exc:
        raise RuntimeError(f"Failed to decode recording {file_path.name!r}: {exc}") from exc

    return np.asarray(y, dtype=np.float32), int(loaded_sr)
