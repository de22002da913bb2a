"""Infrastructure layer — cross-cutting concerns for karaoke take scoring.

Modules:
    metrics     Prometheus metrics for recording sessions and scores.
"""
