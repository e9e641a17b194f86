"""Server-sent-event transport for assistant answers.

Streaming only changes delivery: the frames carry an answer that has already
passed the citation gate, and the final frame repeats it in full.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, List, Optional, Tuple

from blocks_shared.references import INLINE_PATTERN

from .schemas import AssistantResponse

EVENT_STREAM = "text/event-stream"
SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def wants_event_stream(accept: Optional[str]) -> bool:
    return bool(accept) and EVENT_STREAM in accept.lower()


def chunk_text(text: str, size: int) -> List[str]:
    """Slice ``text`` into roughly ``size``-character chunks.

    A chunk boundary that would land inside a ``[REF:...]`` marker is moved to
    the end of that marker.
    """
    if size <= 0:
        raise ValueError("chunk size must be positive")
    spans: List[Tuple[int, int]] = [(match.start(), match.end()) for match in INLINE_PATTERN.finditer(text)]
    chunks: List[str] = []
    position = 0
    while position < len(text):
        end = min(position + size, len(text))
        for start, stop in spans:
            if start < end < stop:
                end = stop
                break
        chunks.append(text[position:end])
        position = end
    return chunks


def _frame(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def sse_events(response: AssistantResponse, chunk_chars: int, delay_s: float = 0.0) -> AsyncIterator[str]:
    for chunk in chunk_text(response.response, chunk_chars):
        yield _frame({"chunk": chunk})
        if delay_s:
            await asyncio.sleep(delay_s)
    yield _frame({"done": True, "result": response.model_dump(mode="json", by_alias=True)})
