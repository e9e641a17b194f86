import asyncio
from datetime import date, timedelta

import pytest

from blocks_shared.references import is_valid_token
from services.blocks_api.context import RequestContext
from services.blocks_api.errors import ValidationError
from services.blocks_api.facts import AggregateKind, MockFactSource, spend_aggregates
from services.blocks_api.spend import (
    SERVICE_SHARES,
    daily_spend_minor,
    hourly_spend_minor,
    projection,
    range_days,
    spend_series,
)

from conftest import DAY, TENANT


def test_mock_fact_source_builds_every_aggregate(ctx: RequestContext) -> None:
    sheet = asyncio.run(MockFactSource().load(ctx))
    kinds = {aggregate.kind for aggregate in sheet.aggregates}
    assert kinds == set(AggregateKind)
    assert sheet.aggregate(AggregateKind.DAILY_SPEND).id == "2025-09-19"
    assert sheet.aggregate(AggregateKind.WEEKLY_SPEND).id == "week:2025-09-19"
    assert sheet.aggregate(AggregateKind.MONTHLY_PROJECTION).id == "proj:2025-09"
    assert sheet.aggregate(AggregateKind.SAVINGS_POTENTIAL).id == "savings:2025-09-19"
    peak = sheet.aggregate(AggregateKind.HOURLY_PEAK)
    assert peak.id.startswith("2025-09-19T") and len(peak.id) == len("2025-09-19T10")
    for aggregate in sheet.aggregates:
        assert is_valid_token(str(aggregate.token))
    assert sheet.aggregate(AggregateKind.SAVINGS_POTENTIAL).amount_minor == sum(
        stub.estimated_monthly_savings_minor for stub in sheet.recommendations
    )


def test_lookup_labels_every_citable_fact(ctx: RequestContext) -> None:
    sheet = asyncio.run(MockFactSource().load(ctx))
    labels = sheet.lookup()
    assert len(labels) == len(sheet.aggregates) + len(sheet.recommendations)
    assert labels["agg:2025-09-19"] == "Spend on 2025-09-19"


def test_hourly_buckets_add_up_to_the_day() -> None:
    hourly = hourly_spend_minor(TENANT, DAY)
    assert len(hourly) == 24
    assert sum(hourly) == daily_spend_minor(TENANT, DAY)


def test_weekly_and_peak_aggregates_match_the_daily_stream() -> None:
    aggregates = {aggregate.kind: aggregate for aggregate in spend_aggregates(TENANT, DAY, "USD")}
    week = [DAY - timedelta(days=offset) for offset in range(7)]
    assert aggregates[AggregateKind.WEEKLY_SPEND].amount_minor == sum(daily_spend_minor(TENANT, d) for d in week)
    assert aggregates[AggregateKind.HOURLY_PEAK].amount_minor == max(hourly_spend_minor(TENANT, DAY))


def test_range_days_shapes() -> None:
    assert len(range_days("day", DAY)) == 1
    assert len(range_days("week", DAY)) == 7
    assert len(range_days("month", DAY)) == 30
    assert range_days("ytd", DAY)[0] == date(2025, 1, 1)
    with pytest.raises(ValidationError):
        range_days("decade", DAY)


def test_spend_series_daily_week(ctx: RequestContext) -> None:
    payload = spend_series(ctx, "week")
    assert payload["granularity"] == "day"
    assert len(payload["series"]) == 7
    assert payload["series"][-1]["ts"] == "2025-09-19T00:00:00Z"
    assert payload["totals"]["baselineMinor"] == sum(point["costMinor"] for point in payload["series"])
    assert payload["totals"]["projectedMinor"] < payload["totals"]["baselineMinor"]
    assert payload["meta"]["dataPoints"] == 7


def test_spend_series_is_stable_across_ranges(ctx: RequestContext) -> None:
    week = spend_series(ctx, "week")["series"]
    month = spend_series(ctx, "month")["series"]
    assert month[-7:] == week


def test_spend_series_hourly_and_limits(ctx: RequestContext) -> None:
    assert len(spend_series(ctx, "day", "hour")["series"]) == 24
    with pytest.raises(ValidationError):
        spend_series(ctx, "ytd", "hour")
    with pytest.raises(ValidationError):
        spend_series(ctx, "week", "minute")


def test_spend_series_service_filter(ctx: RequestContext) -> None:
    total = spend_series(ctx, "week")["totals"]["baselineMinor"]
    ec2 = spend_series(ctx, "week", service="ec2")["totals"]["baselineMinor"]
    assert ec2 == pytest.approx(total * SERVICE_SHARES["EC2"], rel=0.01)
    with pytest.raises(ValidationError):
        spend_series(ctx, "week", service="Mainframe")


def test_projection_is_deterministic(ctx: RequestContext) -> None:
    first = projection(ctx, "month")
    assert first == projection(ctx, "month")
    assert first["generatedAt"] == "2025-09-19T00:00:00Z"
    assert 0.08 <= first["deltaPct"] <= 0.25
