"""CSV exports of spend series and recommendations."""

from __future__ import annotations

import csv
import io
from datetime import date
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from blocks_shared.models import RecommendationStub
from blocks_shared.money import minor_to_major

from .errors import ValidationError

EXPORT_KINDS = ("spending", "recommendations", "full")

SPENDING_HEADERS = ("Date", "Cost", "Projected Cost", "Currency")
RECOMMENDATION_HEADERS = (
    "Title",
    "Category",
    "Impact",
    "Status",
    "Risk",
    "Estimated Monthly Savings",
    "Currency",
    "Reference",
)


def _to_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def spending_csv(spend: Mapping[str, Any]) -> str:
    currency = spend.get("currency", "USD")
    rows: List[Tuple[Any, ...]] = [
        (
            point["ts"][:10] if spend.get("granularity") == "day" else point["ts"],
            f"{minor_to_major(point['costMinor']):.2f}",
            f"{minor_to_major(point['projectedCostMinor']):.2f}",
            currency,
        )
        for point in spend.get("series", [])
    ]
    return _to_csv(SPENDING_HEADERS, rows)


def recommendations_csv(recommendations: Sequence[RecommendationStub], currency: str = "USD") -> str:
    rows = [
        (
            stub.title,
            stub.category or "",
            stub.impact_level.value,
            stub.status.value,
            stub.risk_level.value,
            f"{minor_to_major(stub.estimated_monthly_savings_minor):.2f}",
            currency,
            f"rec:{stub.reference_id}",
        )
        for stub in recommendations
    ]
    return _to_csv(RECOMMENDATION_HEADERS, rows)


def export_filename(kind: str, day: date) -> str:
    return f"{kind}-export-{day.isoformat()}.csv"


def render_export(
    kind: str,
    day: date,
    *,
    spend: Mapping[str, Any],
    recommendations: Sequence[RecommendationStub],
    currency: str = "USD",
) -> Tuple[str, str]:
    """Return ``(filename, csv_text)`` for an export ``kind``."""
    if kind == "spending":
        body = spending_csv(spend)
    elif kind == "recommendations":
        body = recommendations_csv(recommendations, currency)
    elif kind == "full":
        body = (
            "SPENDING DATA\n"
            + spending_csv(spend)
            + "\nRECOMMENDATIONS DATA\n"
            + recommendations_csv(recommendations, currency)
        )
    else:
        raise ValidationError.for_field("type", f"must be one of: {', '.join(EXPORT_KINDS)}")
    return export_filename(kind, day), body
