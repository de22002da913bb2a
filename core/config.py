"""
Configuration for live take capture and analysis.

The immutable config object keeps capture parameters out of function
signatures, so the session, the analyser and the CLI share one source
of truth. `load_config()` layers environment overrides on top of the
defaults.

Environment variables
---------------------
``KARAOKE_FFT_SIZE``        FFT window length (default ``2048``)
``KARAOKE_SMOOTHING``       Spectrum smoothing time constant (default ``0.8``)
``KARAOKE_FRAME_RATE``      Sampling ticks per second (default ``60``)
``KARAOKE_SAMPLE_RATE``     Microphone sample rate in Hz (default ``44100``)
``KARAOKE_HISTORY_FILE``    Score history JSON path (default ``data/karaoke_scores.json``)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# FFT sizes accepted by the analyser: powers of two in this range
MIN_FFT_SIZE: int = 32
MAX_FFT_SIZE: int = 32768


@dataclass(frozen=True)
class KaraokeConfig:
    """
    Configuration for recording and analysing a take.

    Attributes:
        fft_size: Analysis window in samples. 2048 gives 1024 bins.
        smoothing_time_constant: Weight of the previous spectrum when
            averaging successive snapshots (0 = no smoothing).
        min_decibels: dB value mapped to byte 0.
        max_decibels: dB value mapped to byte 255.
        frame_rate: Sampling ticks per second, i.e. the display refresh rate.
        sample_rate: Microphone sample rate in Hz.
        realtime_window: Samples averaged by the live volume meter.
        ideal_volume: Byte-scale volume that fills the live meter.
        history_file: JSON file holding saved scores.

    Example:
        >>> config = KaraokeConfig(fft_size=1024, frame_rate=30.0)
        >>> session = RecordingSession(audio_input, scheduler=loop, config=config)
    """

    fft_size: int = 2048
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0
    frame_rate: float = 60.0
    sample_rate: int = 44100
    realtime_window: int = 10
    ideal_volume: float = 50.0
    history_file: Path = Path("data/karaoke_scores.json")

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not (MIN_FFT_SIZE <= self.fft_size <= MAX_FFT_SIZE) or (
            self.fft_size & (self.fft_size - 1)
        ):
            raise ValueError(
                f"fft_size must be a power of two in [{MIN_FFT_SIZE}, {MAX_FFT_SIZE}], "
                f"got {self.fft_size}"
            )
        if not 0.0 <= self.smoothing_time_constant <= 1.0:
            raise ValueError(
                f"smoothing_time_constant must be in [0, 1], got {self.smoothing_time_constant}"
            )
        if self.min_decibels >= self.max_decibels:
            raise ValueError(
                f"min_decibels ({self.min_decibels}) must be less than "
                f"max_decibels ({self.max_decibels})"
            )
        if self.frame_rate <= 0:
            raise ValueError(f"frame_rate must be positive, got {self.frame_rate}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.realtime_window <= 0:
            raise ValueError(f"realtime_window must be positive, got {self.realtime_window}")
        if self.ideal_volume <= 0:
            raise ValueError(f"ideal_volume must be positive, got {self.ideal_volume}")

    @property
    def frame_interval(self) -> float:
        """Seconds between two sampling ticks."""
        return 1.0 / self.frame_rate

    @property
    def frequency_bin_count(self) -> int:
        """Number of bins in each spectrum snapshot."""
        return self.fft_size // 2


DEFAULT_CONFIG = KaraokeConfig()
"""Default configuration: 2048-point FFT, 60 ticks/s, 44.1 kHz input."""


def load_config() -> KaraokeConfig:
    """Build a KaraokeConfig from the environment (and a .env file if present).

    Unset variables keep their defaults.

    Raises:
        ValueError: If a variable is not a number, or the resulting
            configuration fails validation.
    """
    load_dotenv()
    return KaraokeConfig(
        fft_size=int(os.getenv("KARAOKE_FFT_SIZE", str(DEFAULT_CONFIG.fft_size))),
        smoothing_time_constant=float(
            os.getenv("KARAOKE_SMOOTHING", str(DEFAULT_CONFIG.smoothing_time_constant))
        ),
        frame_rate=float(os.getenv("KARAOKE_FRAME_RATE", str(DEFAULT_CONFIG.frame_rate))),
        sample_rate=int(os.getenv("KARAOKE_SAMPLE_RATE", str(DEFAULT_CONFIG.sample_rate))),
        history_file=Path(os.getenv("KARAOKE_HISTORY_FILE", str(DEFAULT_CONFIG.history_file))),
    )
