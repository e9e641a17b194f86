import asyncio
import json

import pytest

from blocks_shared.references import INLINE_PATTERN
from services.blocks_api.schemas import AssistantResponse
from services.blocks_api.streaming import chunk_text, sse_events, wants_event_stream

TEXT = (
    "You spent $1,234.56 on 2025-09-19 [REF:agg:2025-09-19], peaking at 10:00 UTC "
    "[REF:agg:2025-09-19T10]. Rightsize EC2 [REF:rec:0f8c2a4e-1b7d-5c3e-9a6f-2d4b8e1c7a90]."
)


@pytest.mark.parametrize("size", [1, 5, 7, 13, 24, 500])
def test_chunks_never_split_a_marker(size: int) -> None:
    chunks = chunk_text(TEXT, size)
    assert "".join(chunks) == TEXT
    for chunk in chunks:
        assert chunk.count("[REF:") == len(INLINE_PATTERN.findall(chunk))


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        chunk_text(TEXT, 0)


def test_empty_text_has_no_chunks() -> None:
    assert chunk_text("", 10) == []


def test_accept_header_detection() -> None:
    assert wants_event_stream("text/event-stream")
    assert wants_event_stream("application/json, Text/Event-Stream")
    assert not wants_event_stream("application/json")
    assert not wants_event_stream(None)


def test_sse_frames_end_with_the_full_result() -> None:
    response = AssistantResponse(
        response=TEXT,
        references=["agg:2025-09-19", "agg:2025-09-19T10", "rec:0f8c2a4e-1b7d-5c3e-9a6f-2d4b8e1c7a90"],
        meta={"requestId": "req-1"},
    )

    async def _collect():
        return [frame async for frame in sse_events(response, 16)]

    frames = asyncio.run(_collect())
    assert all(frame.startswith("data: ") and frame.endswith("\n\n") for frame in frames)
    payloads = [json.loads(frame[len("data: ") :]) for frame in frames]
    final = payloads[-1]
    assert final["done"] is True
    assert final["result"]["references"] == response.references
    assert "".join(payload["chunk"] for payload in payloads[:-1]) == TEXT
