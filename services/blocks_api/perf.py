"""Performance marker ingestion and a batching collector for emitters."""

from __future__ import annotations

import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

logger = logging.getLogger("uvicorn.error")

# Upper bounds for "good" Core Web Vitals (CLS is unitless, the rest are ms).
WEB_VITAL_THRESHOLDS: Dict[str, float] = {
    "CLS": 0.1,
    "FID": 100.0,
    "FCP": 1800.0,
    "LCP": 2500.0,
    "TTFB": 800.0,
}
WEB_VITAL_PREFIX = "webvital:"


def marker_category(name: str) -> str:
    category = name.split(":", 1)[0].strip()
    return category or "other"


def summarize_markers(markers: Iterable[Any]) -> List[Dict[str, Any]]:
    """Per-category count, average and maximum, in first-seen category order."""
    stats: Dict[str, Dict[str, float]] = {}
    for marker in markers:
        bucket = stats.setdefault(marker_category(marker.name), {"count": 0, "total": 0.0, "max": float("-inf")})
        bucket["count"] += 1
        bucket["total"] += marker.value
        bucket["max"] = max(bucket["max"], marker.value)
    return [
        {
            "category": category,
            "count": int(bucket["count"]),
            "avgValue": round(bucket["total"] / bucket["count"], 2),
            "maxValue": round(bucket["max"], 2),
        }
        for category, bucket in stats.items()
    ]


def threshold_breaches(markers: Iterable[Any]) -> List[Dict[str, Any]]:
    breaches: List[Dict[str, Any]] = []
    for marker in markers:
        if not marker.name.startswith(WEB_VITAL_PREFIX):
            continue
        vital = marker.name[len(WEB_VITAL_PREFIX) :]
        threshold = WEB_VITAL_THRESHOLDS.get(vital)
        if threshold is not None and marker.value > threshold:
            breaches.append({"vital": vital, "value": marker.value, "threshold": threshold, "url": marker.url})
    return breaches


@dataclass(frozen=True)
class Marker:
    name: str
    value: float
    timestamp: float
    url: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name, "value": self.value, "timestamp": self.timestamp}
        if self.url:
            payload["url"] = self.url
        return payload


Sender = Callable[[Dict[str, Any]], None]


class HttpPerfSender:
    """Posts marker batches to a ``/perf/collect`` endpoint."""

    def __init__(self, url: str, timeout_s: float = 5.0, *, transport: httpx.BaseTransport | None = None) -> None:
        self._url = url
        self._timeout_s = timeout_s
        self._transport = transport

    def __call__(self, batch: Dict[str, Any]) -> None:
        with httpx.Client(timeout=self._timeout_s, transport=self._transport) as client:
            response = client.post(self._url, json=batch)
            response.raise_for_status()


class PerfCollector:
    """Buffers markers and ships them in batches.

    Each instance owns its buffer, timer and session id; there is no shared
    collector. Call :meth:`start` to enable periodic flushing and :meth:`stop`
    to cancel it and flush what is left.
    """

    def __init__(
        self,
        sender: Sender,
        *,
        session_id: Optional[str] = None,
        flush_interval_s: float = 10.0,
        max_buffer: int = 50,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_buffer <= 0:
            raise ValueError("max_buffer must be positive")
        if flush_interval_s <= 0:
            raise ValueError("flush_interval_s must be positive")
        self.session_id = session_id or str(uuid.uuid4())
        self._sender = sender
        self._flush_interval_s = flush_interval_s
        self._max_buffer = max_buffer
        self._clock = clock
        self._buffer: List[Marker] = []
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._buffer)

    @property
    def running(self) -> bool:
        return self._running

    def record(self, name: str, value: float, url: Optional[str] = None) -> None:
        marker = Marker(name=name, value=float(value), timestamp=self._clock() * 1000, url=url)
        with self._lock:
            self._buffer.append(marker)
            full = len(self._buffer) >= self._max_buffer
        if full:
            self.flush()

    def record_web_vital(self, vital: str, value: float, url: Optional[str] = None) -> None:
        if vital not in WEB_VITAL_THRESHOLDS:
            raise ValueError(f"Unknown web vital: {vital}")
        self.record(f"{WEB_VITAL_PREFIX}{vital}", value, url)

    def flush(self) -> int:
        """Send buffered markers; on failure they are put back for the next flush."""
        with self._lock:
            batch = self._buffer
            self._buffer = []
        if not batch:
            return 0
        payload = {"sessionId": self.session_id, "markers": [marker.to_wire() for marker in batch]}
        try:
            self._sender(payload)
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Failed to send %s performance marker(s): %s", len(batch), exc)
            with self._lock:
                self._buffer = (batch + self._buffer)[-self._max_buffer * 4 :]
            return 0
        return len(batch)

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
        self._schedule()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        self.flush()

    def on_visibility_hidden(self) -> None:
        self.flush()

    def on_unload(self) -> None:
        self.stop()

    def _schedule(self) -> None:
        timer = threading.Timer(self._flush_interval_s, self._tick)
        timer.daemon = True
        with self._lock:
            if not self._running:
                return
            self._timer = timer
        timer.start()

    def _tick(self) -> None:
        self.flush()
        self._schedule()
