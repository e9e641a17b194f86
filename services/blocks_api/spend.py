"""Deterministic spend series and savings projections.

Each calendar day's spend is derived from ``(tenant_id, that day)`` alone, so
a day's figure is the same whichever range it is viewed through.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from .context import RequestContext
from .errors import ValidationError
from .seed import GenerationSeed

SPEND_STREAM = "spend"
PROJECTION_STREAM = "projection"

TIME_RANGES = ("day", "week", "month", "ytd")
GRANULARITIES = ("hour", "day")
MAX_SERIES_POINTS = 744

SERVICE_SHARES: Dict[str, float] = {
    "EC2": 0.42,
    "RDS": 0.18,
    "S3": 0.12,
    "Lambda": 0.08,
    "CloudFront": 0.06,
    "Other": 0.14,
}


def daily_spend_minor(tenant_id: str, day: date) -> int:
    rng = GenerationSeed.derive(tenant_id, day).stream(SPEND_STREAM)
    base = int(rng.integers(80_000, 240_001))
    if day.weekday() >= 5:
        base = int(base * 0.8)
    return base


def hourly_spend_minor(tenant_id: str, day: date) -> List[int]:
    """Split the day's spend into 24 buckets that add up to the daily total."""
    total = daily_spend_minor(tenant_id, day)
    rng = GenerationSeed.derive(tenant_id, day).stream(f"{SPEND_STREAM}:hourly")
    weights = rng.uniform(0.5, 1.5, size=24)
    shares = weights / weights.sum()
    buckets = [int(total * float(share)) for share in shares]
    buckets[-1] += total - sum(buckets)
    return buckets


def savings_rate(tenant_id: str, day: date) -> float:
    rng = GenerationSeed.derive(tenant_id, day).stream(PROJECTION_STREAM)
    return round(float(rng.uniform(0.08, 0.25)), 4)


def range_days(time_range: str, day: date) -> List[date]:
    if time_range == "day":
        start = day
    elif time_range == "week":
        start = day - timedelta(days=6)
    elif time_range == "month":
        start = day - timedelta(days=29)
    elif time_range == "ytd":
        start = date(day.year, 1, 1)
    else:
        raise ValidationError.for_field("timeRange", f"must be one of: {', '.join(TIME_RANGES)}")
    return [start + timedelta(days=offset) for offset in range((day - start).days + 1)]


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def _service_share(service: Optional[str]) -> float:
    if not service:
        return 1.0
    for name, share in SERVICE_SHARES.items():
        if name.lower() == service.strip().lower():
            return share
    raise ValidationError.for_field("service", f"must be one of: {', '.join(SERVICE_SHARES)}")


def spend_series(
    ctx: RequestContext,
    time_range: str,
    granularity: str = "day",
    service: Optional[str] = None,
    currency: str = "USD",
) -> Dict[str, Any]:
    if granularity not in GRANULARITIES:
        raise ValidationError.for_field("granularity", "must be either hour or day")
    days = range_days(time_range, ctx.day)
    if granularity == "hour" and len(days) * 24 > MAX_SERIES_POINTS:
        raise ValidationError.for_field("granularity", "hourly series are limited to 31 days")
    share = _service_share(service)
    rate = savings_rate(ctx.tenant_id, ctx.day)

    points: List[Tuple[datetime, int]] = []
    for current in days:
        if granularity == "hour":
            for hour, amount in enumerate(hourly_spend_minor(ctx.tenant_id, current)):
                points.append((_midnight(current) + timedelta(hours=hour), amount))
        else:
            points.append((_midnight(current), daily_spend_minor(ctx.tenant_id, current)))

    series = []
    baseline = 0
    projected = 0
    for moment, amount in points:
        cost = int(round(amount * share))
        projected_cost = int(round(cost * (1 - rate)))
        baseline += cost
        projected += projected_cost
        series.append({"ts": _iso(moment), "costMinor": cost, "projectedCostMinor": projected_cost})

    return {
        "tenantId": ctx.tenant_id,
        "timeRange": time_range,
        "currency": currency,
        "granularity": granularity,
        "series": series,
        "totals": {
            "baselineMinor": baseline,
            "projectedMinor": projected,
            "deltaPct": round((baseline - projected) / baseline, 4) if baseline else 0.0,
        },
        "meta": {
            "lastIngestAt": _iso(_midnight(ctx.day)),
            "dataPoints": len(series),
            "currency": currency,
        },
    }


def projection(ctx: RequestContext, period: str) -> Dict[str, Any]:
    days = range_days(period, ctx.day)
    baseline = sum(daily_spend_minor(ctx.tenant_id, current) for current in days)
    rate = savings_rate(ctx.tenant_id, ctx.day)
    projected = int(round(baseline * (1 - rate)))
    return {
        "tenantId": ctx.tenant_id,
        "period": period,
        "baselineMinor": baseline,
        "projectedMinor": projected,
        "deltaPct": round((baseline - projected) / baseline, 4) if baseline else 0.0,
        "generatedAt": _iso(_midnight(ctx.day)),
    }
