"""Reference-annotated assistant response builder."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Mapping, Optional

from blocks_shared.metrics import record_assistant_outcome, record_violation
from blocks_shared.references import ReferenceViolation, extract_inline_tokens, first_seen

from . import planner, synthesis
from .context import RequestContext
from .cost_client import get_fact_source
from .errors import BlocksError, ReferenceIntegrityError, ValidationError
from .facts import FactSource
from .schemas import AssistantResponse, SourceRef
from .settings import get_settings
from .validator import validate

logger = logging.getLogger("uvicorn.error")

MISSING_CITATIONS = "missing_citations"
TOO_MANY_REFERENCES = "too_many_references"
# Number of distinct citations at which an answer counts as fully covered.
FULL_COVERAGE_REFERENCES = 4


def require_prompt(prompt: Optional[str], max_chars: int) -> str:
    if prompt is None or not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError.for_field("prompt", "is required")
    cleaned = prompt.strip()
    if len(cleaned) > max_chars:
        raise ValidationError.for_field("prompt", f"must be at most {max_chars} characters")
    return cleaned


def estimate_confidence(plan: planner.Plan, reference_count: int) -> Optional[float]:
    """Share of the expected citation coverage an answer actually reached."""
    if plan.conversational:
        return None
    coverage = min(1.0, reference_count / FULL_COVERAGE_REFERENCES)
    return round(0.5 + 0.45 * coverage, 2)


def _reject(reason: str, token: str, message: str) -> ReferenceIntegrityError:
    record_violation(reason)
    return ReferenceIntegrityError(ReferenceViolation(reason=reason, token=token, message=message))


async def build_response(
    prompt: Optional[str],
    ctx: RequestContext,
    *,
    conversation_id: Optional[str] = None,
    context: Optional[Mapping[str, Any]] = None,
    fact_source: Optional[FactSource] = None,
    streamed: bool = False,
) -> AssistantResponse:
    """Answer ``prompt`` for the tenant-day in ``ctx`` with inline citations.

    The prompt is checked before any fact is loaded. The returned response has
    passed :func:`validate`; integrity failures are raised, never returned.
    """
    settings = get_settings()
    text = require_prompt(prompt, settings.prompt_max_chars)
    t0 = time.time()
    log_extra = {"request_id": ctx.request_id, "tenant_id": ctx.tenant_id}

    query_plan = planner.plan(text, context)
    source = fact_source or get_fact_source()
    try:
        facts = await source.load(ctx)
        draft = synthesis.compose(text, query_plan, facts)

        references = first_seen(extract_inline_tokens(draft.text))
        if query_plan.factual and not references:
            raise _reject(MISSING_CITATIONS, "", "Factual answer carries no citations")
        if len(references) > settings.max_references:
            raise _reject(
                TOO_MANY_REFERENCES,
                references[settings.max_references],
                f"Answer cites {len(references)} facts; the limit is {settings.max_references}",
            )
        validate(draft.text, references)
    except ReferenceIntegrityError as exc:
        record_assistant_outcome("rejected")
        logger.error(
            "Assistant answer rejected (%s): %s",
            exc.violation.reason,
            exc.message,
            extra=log_extra | {"error_code": exc.code.value},
        )
        raise
    except BlocksError:
        record_assistant_outcome("error")
        raise

    labelled: Dict[str, Dict[str, str]] = {item["token"]: item for item in draft.sources}
    sources = [SourceRef(**labelled[token]) for token in references if token in labelled]
    latency_ms = round((time.time() - t0) * 1000, 1)
    response = AssistantResponse(
        response=draft.text,
        references=references,
        confidence=estimate_confidence(query_plan, len(references)),
        sources=sources,
        meta={
            "requestId": ctx.request_id,
            "tenantId": ctx.tenant_id,
            "day": ctx.day.isoformat(),
            "topics": sorted(query_plan.topics),
            "conversationId": conversation_id,
            "mock": not settings.cost_api_url,
            "streamed": streamed,
            "interactionId": str(uuid.uuid4()),
            "latencyMs": latency_ms,
        },
    )
    record_assistant_outcome("answered" if references else "conversational")
    logger.info(
        "Assistant query answered: topics=%s references=%s latency_ms=%s",
        ",".join(sorted(query_plan.topics)) or "none",
        len(references),
        latency_ms,
        extra=log_extra,
    )
    return response
