"""
ingestion/score_store.py — Persist completed karaoke scores to JSON storage.

Side-effect module: reads and writes the history file. Ordering and
ranking helpers are kept pure as private functions over plain dicts.

Storage format (karaoke_scores.json), newest first:
    [
        {
            "record_id": "20250217T143022123456",
            "song_id": "42",
            "song_title": "Summer Dreams",
            "timestamp": "2025-02-17T14:30:22.123456+00:00",
            "score": {
                "total_score": 87,
                "pitch_accuracy": 22,
                ...
                "details": {"recorded_duration": 31.2, ...}
            }
        },
        ...
    ]

No deduplication and no cap: every saved take is kept.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from core.config import DEFAULT_CONFIG
from core.karaoke.types import KaraokeScore, score_from_dict, score_to_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreRecord:
    """
    Immutable value object for one saved take.

    Attributes:
        record_id: Timestamp-based identifier (YYYYMMDDTHHMMSSffffff)
        song_id: Identifier of the sung song, if known
        song_title: Title of the sung song, if known
        timestamp: ISO-8601 UTC datetime when the score was saved
        score: The saved KaraokeScore
    """

    record_id: str
    song_id: str | None
    song_title: str | None
    timestamp: str
    score: KaraokeScore


class ScoreHistoryStore:
    """
    Append-only score history backed by a JSON file.

    Example:
        store = ScoreHistoryStore(Path("data/karaoke_scores.json"))
        store.append(score, song_id="42", song_title="Summer Dreams")
        best = store.best(limit=10)
    """

    def __init__(self, history_file: Path = DEFAULT_CONFIG.history_file) -> None:
        """
        Args:
            history_file: Path to JSON storage file. Default: data/karaoke_scores.json
        """
        self._history_file = Path(history_file)

    @property
    def path(self) -> Path:
        return self._history_file

    def append(
        self,
        score: KaraokeScore,
        *,
        song_id: str | None = None,
        song_title: str | None = None,
        now: datetime | None = None,
    ) -> ScoreRecord:
        """
        Save a score as the newest history entry.

        Args:
            score: Completed score to save
            song_id: Optional song identifier
            song_title: Optional song title
            now: Timestamp override (tests); defaults to the current UTC time

        Returns:
            The stored ScoreRecord
        """
        moment = now or datetime.now(UTC)
        record = ScoreRecord(
            record_id=moment.strftime("%Y%m%dT%H%M%S%f"),
            song_id=song_id,
            song_title=song_title,
            timestamp=moment.isoformat(),
            score=score,
        )

        entries = self._load_entries()
        entries.insert(0, _record_to_dict(record))
        self._save_entries(entries)
        logger.info(
            "ScoreHistoryStore: saved %s (total=%d, %d entries)",
            record.record_id,
            score.total_score,
            len(entries),
        )
        return record

    def list_all(self) -> list[ScoreRecord]:
        """All saved records, newest first. Unreadable entries are skipped."""
        records = []
        for entry in self._load_entries():
            record = _record_from_dict(entry)
            if record is not None:
                records.append(record)
        return records

    def for_song(self, song_id: str) -> list[ScoreRecord]:
        """Records for one song, newest first."""
        return [r for r in self.list_all() if r.song_id == song_id]

    def best(self, limit: int = 10) -> list[ScoreRecord]:
        """Highest totals first; ties keep newest-first order."""
        if limit <= 0:
            return []
        return _rank_by_total(self.list_all())[:limit]

    def __len__(self) -> int:
        return len(self._load_entries())

    def _load_entries(self) -> list[dict[str, Any]]:
        """Load stored entries. Returns empty list if missing or unreadable."""
        if not self._history_file.exists():
            return []
        try:
            text = self._history_file.read_text(encoding="utf-8")
            data = json.loads(text)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("ScoreHistoryStore: ignoring unreadable %s (%s)", self._history_file, exc)
            return []
        return data if isinstance(data, list) else []

    def _save_entries(self, entries: list[dict[str, Any]]) -> None:
        """Persist entries to the JSON file. Creates parent dirs if needed."""
        self._history_file.parent.mkdir(parents=True, exist_ok=True)
        self._history_file.write_text(
            json.dumps(entries, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )


# ---------------------------------------------------------------------------
# Pure helper functions (no I/O, no side effects)
# ---------------------------------------------------------------------------


def _record_to_dict(record: ScoreRecord) -> dict[str, Any]:
    """Convert ScoreRecord to JSON-serializable dict."""
    return {
        "record_id": record.record_id,
        "song_id": record.song_id,
        "song_title": record.song_title,
        "timestamp": record.timestamp,
        "score": score_to_dict(record.score),
    }


def _record_from_dict(entry: Any) -> ScoreRecord | None:
    """Rebuild a ScoreRecord; None if the entry is malformed."""
    if not isinstance(entry, dict):
        return None
    try:
        return ScoreRecord(
            record_id=str(entry["record_id"]),
            song_id=entry.get("song_id"),
            song_title=entry.get("song_title"),
            timestamp=str(entry["timestamp"]),
            score=score_from_dict(entry["score"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


def _rank_by_total(records: list[ScoreRecord]) -> list[ScoreRecord]:
    """Stable sort by total score, highest first."""
    return sorted(records, key=lambda r: r.score.total_score, reverse=True)
