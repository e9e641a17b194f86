"""Shared Prometheus metrics helpers."""
from typing import Iterable, Optional

from prometheus_client import Counter

DEFAULT_LABEL = "unknown"

content_counter = Counter(
    "blocks_content_generated_total",
    "Mock content generation runs",
    labelnames=("kind",),
)
assistant_counter = Counter(
    "blocks_assistant_queries_total",
    "Assistant queries by outcome",
    labelnames=("outcome",),
)
violation_counter = Counter(
    "blocks_reference_violations_total",
    "Assistant answers rejected by the reference validator",
    labelnames=("reason",),
)
perf_marker_counter = Counter(
    "blocks_perf_markers_total",
    "Client performance markers received",
    labelnames=("category",),
)


def record_generation(kind: str) -> None:
    """Increment the generation counter for ``recommendations`` or ``timelines``."""
    content_counter.labels(kind=_sanitize(kind)).inc()


def record_assistant_outcome(outcome: str) -> None:
    assistant_counter.labels(outcome=_sanitize(outcome)).inc()


def record_violation(reason: Optional[str]) -> None:
    violation_counter.labels(reason=_sanitize(reason)).inc()


def record_perf_markers(categories: Iterable[str]) -> None:
    """Count one marker per category entry."""
    for category in categories:
        perf_marker_counter.labels(category=_sanitize(category)).inc()


def _sanitize(value: Optional[str]) -> str:
    cleaned = (value or DEFAULT_LABEL).strip()
    return cleaned or DEFAULT_LABEL
