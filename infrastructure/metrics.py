"""Prometheus metrics for karaoke recording sessions.

Exposes musical context in metrics so dashboards show how takes are
scored, not just how many ran.

Metrics:
    karaoke_sessions_total              Counter by outcome (scored/permission_denied/acquisition_failed)
    karaoke_total_score                 Histogram of total scores by scoring mode
    karaoke_recording_duration_seconds  Histogram of take lengths
    karaoke_samples_per_session         Histogram of analysis samples per take

Usage::

    from infrastructure.metrics import record_session_scored, record_start_failure
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


REGISTRY = CollectorRegistry()

sessions_total = Counter(
    "karaoke_sessions_total",
    "Recording sessions by outcome",
    ["outcome"],
    registry=REGISTRY,
)

total_score = Histogram(
    "karaoke_total_score",
    "Total score of completed takes",
    ["mode"],
    buckets=[40, 50, 60, 70, 80, 90, 100],
    registry=REGISTRY,
)

recording_duration_seconds = Histogram(
    "karaoke_recording_duration_seconds",
    "Wall-clock length of completed takes in seconds",
    buckets=[1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 180.0, 300.0],
    registry=REGISTRY,
)

samples_per_session = Histogram(
    "karaoke_samples_per_session",
    "Analysis samples captured per completed take",
    buckets=[0, 10, 50, 100, 500, 1000, 5000, 20000],
    registry=REGISTRY,
)

START_FAILURE_KINDS: frozenset[str] = frozenset({"permission_denied", "acquisition_failed"})


def record_session_scored(
    *,
    mode: str,
    total: int,
    duration_seconds: float,
    sample_count: int,
) -> None:
    """Record a take that reached the SCORED state.

    Args:
        mode: ScoringMode value ("weighted" or "freestyle").
        total: Final total score.
        duration_seconds: Take length.
        sample_count: Number of samples the scorer saw.
    """
    sessions_total.labels(outcome="scored").inc()
    total_score.labels(mode=mode).observe(total)
    recording_duration_seconds.observe(duration_seconds)
    samples_per_session.observe(sample_count)


def record_start_failure(kind: str) -> None:
    """Record a start() that failed before recording began.

    Raises:
        ValueError: If kind is not one of START_FAILURE_KINDS.
    """
    if kind not in START_FAILURE_KINDS:
        raise ValueError(f"Unknown start failure kind {kind!r}, valid: {sorted(START_FAILURE_KINDS)}")
    sessions_total.labels(outcome=kind).inc()


def get_metrics_text() -> tuple[bytes, str]:
    """Return (body, content_type) in Prometheus text exposition format."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
