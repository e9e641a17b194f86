"""Client for a real cost-aggregation backend."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx
from pydantic import ValidationError as PydanticValidationError

from .context import RequestContext
from .errors import ExternalServiceError
from .facts import Aggregate, FactSheet, FactSource, MockFactSource, savings_aggregate
from .generator import ContentGenerator, default_generator
from .seed import GenerationSeed
from .settings import get_settings

logger = logging.getLogger("uvicorn.error")


class CostApiFactSource:
    """Aggregates come from the cost API; recommendations stay generated.

    The HTTP call is the only suspension point of an assistant query and is
    bounded by ``timeout_s``. Failures are not retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout_s: float,
        *,
        generator: ContentGenerator | None = None,
        currency: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._generator = generator
        self._currency = currency
        self._transport = transport

    async def _fetch(self, ctx: RequestContext) -> Dict[str, Any]:
        url = f"{self._base_url}/v1/aggregates"
        params = {"tenantId": ctx.tenant_id, "date": ctx.day.isoformat()}
        async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
            response = await client.get(url, params=params, headers={"X-Request-ID": ctx.request_id})
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise RuntimeError("Cost API payload must be a JSON object.")
            return data

    async def load(self, ctx: RequestContext) -> FactSheet:
        try:
            data = await self._fetch(ctx)
            raw_items = data.get("aggregates")
            if not isinstance(raw_items, list):
                raise RuntimeError("Cost API payload is missing 'aggregates'")
            aggregates: List[Aggregate] = [Aggregate.model_validate(item) for item in raw_items]
        except httpx.HTTPError as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            logger.error(
                "Cost API request failed (status=%s): %s",
                status_code,
                exc,
                extra={"request_id": ctx.request_id, "tenant_id": ctx.tenant_id},
            )
            raise ExternalServiceError("Cost API request failed", detail=str(exc)) from exc
        except (RuntimeError, ValueError, PydanticValidationError) as exc:
            logger.error(
                "Cost API returned malformed payload: %s",
                exc,
                extra={"request_id": ctx.request_id, "tenant_id": ctx.tenant_id},
            )
            raise ExternalServiceError("Cost API returned malformed payload", detail=str(exc)) from exc

        generator = self._generator or default_generator()
        currency = self._currency or get_settings().currency
        seed = GenerationSeed.derive(ctx.tenant_id, ctx.day)
        recommendations = generator.recommendations(seed)
        aggregates.append(savings_aggregate(seed.day, recommendations, currency))
        return FactSheet(
            tenant_id=seed.tenant_id,
            day=seed.day,
            currency=currency,
            aggregates=tuple(aggregates),
            recommendations=tuple(recommendations),
        )


def get_fact_source() -> FactSource:
    settings = get_settings()
    if settings.cost_api_url:
        return CostApiFactSource(settings.cost_api_url, settings.cost_api_timeout_s)
    return MockFactSource()
