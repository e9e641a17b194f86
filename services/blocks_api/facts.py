"""Citable facts behind assistant answers."""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from blocks_shared.models import RecommendationStub
from blocks_shared.references import ReferenceToken

from .context import RequestContext
from .generator import ContentGenerator, default_generator
from .seed import GenerationSeed
from .settings import get_settings
from .spend import daily_spend_minor, hourly_spend_minor

WEEK_DAYS = 7


class AggregateKind(str, Enum):
    HOURLY_PEAK = "hourly_peak"
    DAILY_SPEND = "daily_spend"
    WEEKLY_SPEND = "weekly_spend"
    MONTHLY_PROJECTION = "monthly_projection"
    SAVINGS_POTENTIAL = "savings_potential"


class Aggregate(BaseModel):
    """Precomputed summary metric cited with an ``agg:`` token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(pattern=r"^[A-Za-z0-9:-]+$")
    kind: AggregateKind
    label: str
    amount_minor: int = Field(ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    period: str

    @property
    def token(self) -> ReferenceToken:
        return ReferenceToken.aggregate(self.id)


@dataclass(frozen=True)
class FactSheet:
    tenant_id: str
    day: date
    currency: str
    aggregates: Tuple[Aggregate, ...]
    recommendations: Tuple[RecommendationStub, ...]

    def aggregate(self, kind: AggregateKind) -> Optional[Aggregate]:
        for aggregate in self.aggregates:
            if aggregate.kind is kind:
                return aggregate
        return None

    def lookup(self) -> Dict[str, str]:
        """Map every citable token to a short human label."""
        labels: Dict[str, str] = {}
        for aggregate in self.aggregates:
            labels[str(aggregate.token)] = aggregate.label
        for stub in self.recommendations:
            labels[str(ReferenceToken.recommendation(stub.reference_id))] = stub.title
        return labels


class FactSource(Protocol):
    async def load(self, ctx: RequestContext) -> FactSheet:
        ...


def hourly_bucket_id(day: date, hour: int) -> str:
    return f"{day.isoformat()}T{hour:02d}"


def spend_aggregates(tenant_id: str, day: date, currency: str) -> List[Aggregate]:
    """Derive the day's spend aggregates from the tenant's daily spend stream."""
    hourly = hourly_spend_minor(tenant_id, day)
    peak_hour = max(range(len(hourly)), key=lambda hour: hourly[hour])
    week = [day - timedelta(days=offset) for offset in range(WEEK_DAYS)]
    daily = {current: daily_spend_minor(tenant_id, current) for current in week}

    month_start = day.replace(day=1)
    month_days = calendar.monthrange(day.year, day.month)[1]
    elapsed = [month_start + timedelta(days=offset) for offset in range((day - month_start).days + 1)]
    month_to_date = sum(daily_spend_minor(tenant_id, current) for current in elapsed)
    run_rate = month_to_date / len(elapsed)
    projected_month = int(round(run_rate * month_days))

    aggregates = [
        Aggregate(
            id=hourly_bucket_id(day, peak_hour),
            kind=AggregateKind.HOURLY_PEAK,
            label=f"Peak hourly spend on {day.isoformat()} ({peak_hour:02d}:00 UTC)",
            amount_minor=hourly[peak_hour],
            currency=currency,
            period=hourly_bucket_id(day, peak_hour),
        ),
        Aggregate(
            id=day.isoformat(),
            kind=AggregateKind.DAILY_SPEND,
            label=f"Spend on {day.isoformat()}",
            amount_minor=daily[day],
            currency=currency,
            period=day.isoformat(),
        ),
        Aggregate(
            id=f"week:{day.isoformat()}",
            kind=AggregateKind.WEEKLY_SPEND,
            label=f"Spend for the 7 days ending {day.isoformat()}",
            amount_minor=sum(daily.values()),
            currency=currency,
            period=f"{week[-1].isoformat()}/{day.isoformat()}",
        ),
        Aggregate(
            id=f"proj:{day.strftime('%Y-%m')}",
            kind=AggregateKind.MONTHLY_PROJECTION,
            label=f"Projected spend for {day.strftime('%B %Y')}",
            amount_minor=projected_month,
            currency=currency,
            period=day.strftime("%Y-%m"),
        ),
    ]
    return aggregates


def savings_aggregate(day: date, recommendations: Sequence[RecommendationStub], currency: str) -> Aggregate:
    return Aggregate(
        id=f"savings:{day.isoformat()}",
        kind=AggregateKind.SAVINGS_POTENTIAL,
        label="Estimated monthly savings across open recommendations",
        amount_minor=sum(stub.estimated_monthly_savings_minor for stub in recommendations),
        currency=currency,
        period=day.strftime("%Y-%m"),
    )


class MockFactSource:
    """Facts derived entirely from the tenant-day seed; no I/O."""

    def __init__(self, generator: ContentGenerator | None = None, currency: str | None = None) -> None:
        self._generator = generator
        self._currency = currency

    async def load(self, ctx: RequestContext) -> FactSheet:
        generator = self._generator or default_generator()
        currency = self._currency or get_settings().currency
        seed = GenerationSeed.derive(ctx.tenant_id, ctx.day)
        recommendations = generator.recommendations(seed)
        aggregates = spend_aggregates(seed.tenant_id, seed.day, currency)
        aggregates.append(savings_aggregate(seed.day, recommendations, currency))
        return FactSheet(
            tenant_id=seed.tenant_id,
            day=seed.day,
            currency=currency,
            aggregates=tuple(aggregates),
            recommendations=tuple(recommendations),
        )
