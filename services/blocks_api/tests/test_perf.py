import json
import threading
from typing import Any, Dict, List

import httpx
import pytest

from services.blocks_api.perf import (
    HttpPerfSender,
    PerfCollector,
    summarize_markers,
    threshold_breaches,
)
from services.blocks_api.schemas import PerfMarker


class FakeSender:
    def __init__(self, fail: bool = False) -> None:
        self.batches: List[Dict[str, Any]] = []
        self.fail = fail
        self.sent = threading.Event()

    def __call__(self, batch: Dict[str, Any]) -> None:
        if self.fail:
            raise httpx.ConnectError("collector unreachable")
        self.batches.append(batch)
        self.sent.set()


def _markers() -> List[PerfMarker]:
    return [
        PerfMarker(name="webvital:LCP", value=3100, url="/app"),
        PerfMarker(name="webvital:CLS", value=0.05),
        PerfMarker(name="webvital:FID", value=150),
        PerfMarker(name="timing:render", value=40),
        PerfMarker(name="timing:render", value=60),
        PerfMarker(name="custom", value=1),
    ]


def test_summarize_markers_by_category() -> None:
    stats = {item["category"]: item for item in summarize_markers(_markers())}
    assert stats["webvital"]["count"] == 3
    assert stats["timing"] == {"category": "timing", "count": 2, "avgValue": 50.0, "maxValue": 60.0}
    assert stats["custom"]["count"] == 1


def test_threshold_breaches_only_flag_slow_vitals() -> None:
    breaches = threshold_breaches(_markers())
    assert [(item["vital"], item["threshold"]) for item in breaches] == [("LCP", 2500.0), ("FID", 100.0)]
    assert breaches[0]["url"] == "/app"


def test_collector_flushes_when_the_buffer_fills() -> None:
    sender = FakeSender()
    collector = PerfCollector(sender, session_id="sess-1", max_buffer=3)
    collector.record("timing:a", 1)
    collector.record("timing:b", 2)
    assert sender.batches == []
    collector.record("timing:c", 3)
    assert len(sender.batches) == 1
    assert sender.batches[0]["sessionId"] == "sess-1"
    assert [marker["name"] for marker in sender.batches[0]["markers"]] == ["timing:a", "timing:b", "timing:c"]
    assert collector.pending == 0


def test_failed_flush_keeps_markers() -> None:
    sender = FakeSender(fail=True)
    collector = PerfCollector(sender, max_buffer=10)
    collector.record_web_vital("LCP", 1200)
    assert collector.flush() == 0
    assert collector.pending == 1
    sender.fail = False
    assert collector.flush() == 1
    assert collector.pending == 0


def test_lifecycle_hooks_flush_synchronously() -> None:
    sender = FakeSender()
    collector = PerfCollector(sender)
    collector.record("timing:a", 1)
    collector.on_visibility_hidden()
    assert len(sender.batches) == 1
    collector.record("timing:b", 2)
    collector.on_unload()
    assert len(sender.batches) == 2
    assert not collector.running


def test_timer_flushes_periodically() -> None:
    sender = FakeSender()
    collector = PerfCollector(sender, flush_interval_s=0.05)
    collector.start()
    try:
        collector.record("timing:a", 1)
        assert sender.sent.wait(timeout=2.0)
    finally:
        collector.stop()
    assert not collector.running
    assert sender.batches[0]["markers"][0]["name"] == "timing:a"


def test_each_collector_owns_its_session() -> None:
    first = PerfCollector(FakeSender())
    second = PerfCollector(FakeSender())
    assert first.session_id != second.session_id


def test_invalid_configuration_is_rejected() -> None:
    with pytest.raises(ValueError):
        PerfCollector(FakeSender(), max_buffer=0)
    with pytest.raises(ValueError):
        PerfCollector(FakeSender()).record_web_vital("INP", 10)


def test_http_sender_posts_the_batch() -> None:
    received: Dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        received["url"] = str(request.url)
        received["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True})

    sender = HttpPerfSender("https://blocks.example/perf/collect", transport=httpx.MockTransport(handler))
    collector = PerfCollector(sender, session_id="sess-9")
    collector.record("timing:a", 5)
    assert collector.flush() == 1
    assert received["url"] == "https://blocks.example/perf/collect"
    assert received["body"]["sessionId"] == "sess-9"


def test_http_sender_errors_requeue() -> None:
    sender = HttpPerfSender(
        "https://blocks.example/perf/collect",
        transport=httpx.MockTransport(lambda request: httpx.Response(503)),
    )
    collector = PerfCollector(sender)
    collector.record("timing:a", 5)
    assert collector.flush() == 0
    assert collector.pending == 1
