"""
core/karaoke — Pure analysis and scoring of sung takes.

Everything in this package is free of I/O: the live input, the clock and
the frame scheduler are owned by ingestion/recording_session.py, which
feeds AudioSample values in and receives a KaraokeScore out.

Public API:
    Types:    AudioSample, KaraokeScore, ScoreDetails, SessionState, ScoringMode
    Errors:   KaraokeError, PermissionDeniedError, AcquisitionError, SessionStateError
    Sampler:  AnalysisNode, sample, estimate_pitch, mean_volume, realtime_score
    Scoring:  score_performance, scorer_for, WeightedScorer, FreestyleScorer
    Grading:  grade_for, reveal_schedule, count_up, share_text
    Lyrics:   parse_lyrics, current_line_index
"""

from core.karaoke.errors import (
    AcquisitionError,
    KaraokeError,
    PermissionDeniedError,
    SessionStateError,
)
from core.karaoke.grading import Grade, RevealStep, count_up, grade_for, reveal_schedule, share_text
from core.karaoke.lyrics import LyricLine, current_line_index, parse_lyrics
from core.karaoke.sampler import AnalysisNode, estimate_pitch, mean_volume, realtime_score, sample
from core.karaoke.scoring import (
    FreestyleScorer,
    ScoringStrategy,
    WeightedScorer,
    score_performance,
    scorer_for,
)
from core.karaoke.types import (
    AudioSample,
    KaraokeScore,
    ScoreDetails,
    ScoringMode,
    SessionState,
    score_from_dict,
    score_to_dict,
)

__all__ = [
    "AcquisitionError",
    "AnalysisNode",
    "AudioSample",
    "FreestyleScorer",
    "Grade",
    "KaraokeError",
    "KaraokeScore",
    "LyricLine",
    "PermissionDeniedError",
    "RevealStep",
    "ScoreDetails",
    "ScoringMode",
    "ScoringStrategy",
    "SessionState",
    "SessionStateError",
    "WeightedScorer",
    "count_up",
    "current_line_index",
    "estimate_pitch",
    "grade_for",
    "mean_volume",
    "parse_lyrics",
    "realtime_score",
    "reveal_schedule",
    "sample",
    "score_from_dict",
    "score_performance",
    "score_to_dict",
    "scorer_for",
    "share_text",
]
