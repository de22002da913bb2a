#!/usr/bin/env python
"""Score a karaoke take from a file or the microphone.

Usage
-----
    # Score a recorded take (freestyle: no reference track)
    python -m scripts.score_take take.wav

    # Compare against a 3-minute backing track (weighted scoring)
    python -m scripts.score_take take.wav --reference-duration 180 --song-title "Summer Dreams"

    # Sing into the microphone for 20 seconds
    python -m scripts.score_take --live --seconds 20

    # Show the saved history, best first
    python -m scripts.score_take --history --limit 10

Exit codes
----------
    0  — success
    1  — microphone permission denied or input unavailable
    2  — the recording could not be loaded
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from core.config import load_config
from core.karaoke.errors import AcquisitionError, PermissionDeniedError
from core.karaoke.grading import grade_for
from core.karaoke.types import ScoringMode, score_to_dict
from ingestion.karaoke_engine import KaraokeEngine, TakeResult
from ingestion.score_store import ScoreHistoryStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Score a karaoke take")
    p.add_argument("path", nargs="?", default=None, help="Recorded take to score")
    p.add_argument("--live", action="store_true", help="Record from the microphone instead")
    p.add_argument(
        "--seconds",
        type=float,
        default=15.0,
        help="Length of a live take in seconds (default 15)",
    )
    p.add_argument("--device", default=None, help="Input device index or name")
    p.add_argument(
        "--reference-duration",
        type=float,
        default=None,
        help="Length of the backing track in seconds (enables weighted scoring)",
    )
    p.add_argument(
        "--mode",
        choices=[m.value for m in ScoringMode],
        default=None,
        help="Force a scoring mode",
    )
    p.add_argument("--song-id", default=None)
    p.add_argument("--song-title", default=None)
    p.add_argument("--no-save", action="store_true", help="Do not add the score to the history")
    p.add_argument("--history", action="store_true", help="Print saved scores and exit")
    p.add_argument("--limit", type=int, default=10, help="History entries to print")
    p.add_argument("--history-file", type=Path, default=None, help="Override the history file")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = p.parse_args(argv)
    if not args.history and not args.live and args.path is None:
        p.error("a recording path is required unless --live or --history is given")
    if args.live and not args.seconds > 0:
        p.error(f"--seconds must be positive, got {args.seconds}")
    return args


def _result_to_dict(result: TakeResult) -> dict:
    grade = grade_for(result.score.total_score)
    return {
        "score": score_to_dict(result.score),
        "grade": grade.letter,
        "comment": grade.comment,
        "record_id": result.record.record_id if result.record else None,
        "processing_time_ms": round(result.processing_time_ms, 1),
    }


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    store = ScoreHistoryStore(args.history_file or config.history_file)
    engine = KaraokeEngine(config, store=store)

    if args.history:
        records = store.best(args.limit)
        print(
            json.dumps(
                [
                    {
                        "record_id": r.record_id,
                        "song_title": r.song_title,
                        "timestamp": r.timestamp,
                        "total_score": r.score.total_score,
                    }
                    for r in records
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return 0

    mode = ScoringMode(args.mode) if args.mode else None
    common = {
        "reference_duration": args.reference_duration,
        "mode": mode,
        "song_id": args.song_id,
        "song_title": args.song_title,
        "save": not args.no_save,
    }

    if args.live:
        device = int(args.device) if args.device and args.device.isdigit() else args.device
        print(f"Recording for {args.seconds:.0f}s... sing!", file=sys.stderr)
        try:
            result = engine.record_live(args.seconds, device=device, **common)
        except (PermissionDeniedError, AcquisitionError) as exc:
            print(f"Cannot record: {exc}", file=sys.stderr)
            return 1
    else:
        try:
            result = engine.score_file(args.path, **common)
        except (FileNotFoundError, ValueError, RuntimeError) as exc:
            print(f"Cannot score {args.path}: {exc}", file=sys.stderr)
            return 2

    print(json.dumps(_result_to_dict(result), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
