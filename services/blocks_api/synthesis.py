"""Answer composition with inline reference tokens."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from blocks_shared.models import RecommendationStatus, RecommendationStub
from blocks_shared.money import format_minor
from blocks_shared.references import ReferenceToken

from .facts import Aggregate, AggregateKind, FactSheet
from .planner import Plan

GREETING_TEXT = (
    "Hi! I can walk you through your cloud spend, month-end projections and savings "
    "recommendations. Ask about costs or optimization opportunities to get figures with references."
)
CAPABILITY_TEXT = (
    "I can answer questions about your cloud spend, cost projections and optimization "
    "recommendations. Try asking what you spent this week or which savings opportunities are open."
)

STATUS_PHRASES = {
    RecommendationStatus.PROTOTYPE: "available to try now",
    RecommendationStatus.COMING_SOON: "coming soon",
    RecommendationStatus.FUTURE: "on the roadmap",
}


@dataclass
class CitationLedger:
    """Records each fact as it is cited so references mirror the prose."""

    _tokens: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def cite_aggregate(self, aggregate: Aggregate) -> str:
        return self._cite(aggregate.token, aggregate.label)

    def cite_recommendation(self, stub: RecommendationStub) -> str:
        return self._cite(ReferenceToken.recommendation(stub.reference_id), stub.title)

    def _cite(self, token: ReferenceToken, label: str) -> str:
        key = str(token)
        if key not in self._tokens:
            self._tokens[key] = {"token": key, "kind": token.kind, "label": label}
        return token.inline()

    @property
    def references(self) -> List[str]:
        return list(self._tokens)

    @property
    def sources(self) -> List[Dict[str, str]]:
        return list(self._tokens.values())

    def __len__(self) -> int:
        return len(self._tokens)


@dataclass(frozen=True)
class Draft:
    text: str
    references: List[str]
    sources: List[Dict[str, str]]
    recommendations_considered: int = 0


def _spend_paragraph(facts: FactSheet, ledger: CitationLedger) -> Optional[str]:
    daily = facts.aggregate(AggregateKind.DAILY_SPEND)
    peak = facts.aggregate(AggregateKind.HOURLY_PEAK)
    weekly = facts.aggregate(AggregateKind.WEEKLY_SPEND)
    sentences: List[str] = []
    if daily:
        sentence = f"You spent {format_minor(daily.amount_minor, daily.currency)} on {daily.period} {ledger.cite_aggregate(daily)}"
        if peak:
            hour = peak.id.rsplit("T", 1)[-1]
            sentence += (
                f", with the busiest hour at {hour}:00 UTC costing "
                f"{format_minor(peak.amount_minor, peak.currency)} {ledger.cite_aggregate(peak)}"
            )
        sentences.append(sentence + ".")
    if weekly:
        sentences.append(
            f"Over the last 7 days your spend totalled {format_minor(weekly.amount_minor, weekly.currency)} "
            f"{ledger.cite_aggregate(weekly)}."
        )
    return " ".join(sentences) or None


def _projection_paragraph(facts: FactSheet, ledger: CitationLedger) -> Optional[str]:
    projected = facts.aggregate(AggregateKind.MONTHLY_PROJECTION)
    if not projected:
        return None
    return (
        f"At the current run rate, {projected.period} is projected to close at "
        f"{format_minor(projected.amount_minor, projected.currency)} {ledger.cite_aggregate(projected)}."
    )


def _select_recommendations(
    recommendations: Sequence[RecommendationStub], category: Optional[str], limit: int
) -> List[RecommendationStub]:
    pool = [stub for stub in recommendations if not category or (stub.category or "").lower() == category]
    ranked = sorted(pool, key=lambda stub: (-stub.estimated_monthly_savings_minor, stub.display_order or 0))
    return ranked[:limit]


def _recommendation_paragraph(
    facts: FactSheet, plan: Plan, ledger: CitationLedger
) -> tuple[Optional[str], int]:
    selected = _select_recommendations(facts.recommendations, plan.category, plan.max_recommendations)
    lines: List[str] = []
    if plan.category and not selected:
        lines.append(f"No open recommendations match the '{plan.category}' category today.")
        selected = _select_recommendations(facts.recommendations, None, plan.max_recommendations)
    if not selected:
        return (" ".join(lines) or None), 0

    savings = facts.aggregate(AggregateKind.SAVINGS_POTENTIAL)
    if savings:
        lines.append(
            f"Your open recommendations could save about {format_minor(savings.amount_minor, savings.currency)} "
            f"per month {ledger.cite_aggregate(savings)}. The largest opportunities are:"
        )
    else:
        lines.append("The largest savings opportunities are:")
    for stub in selected:
        lines.append(
            f"- {stub.title} ({stub.impact_level.value} impact, {STATUS_PHRASES[stub.status]}): "
            f"about {format_minor(stub.estimated_monthly_savings_minor, facts.currency)}/month "
            f"{ledger.cite_recommendation(stub)}"
        )
    return "\n".join(lines), len(selected)


def compose(prompt: str, plan: Plan, facts: FactSheet) -> Draft:
    """Write the answer for ``plan`` and collect the tokens it cites.

    References come from the ledger, in first-cited order, so every token in
    the text is listed and nothing uncited is.
    """
    ledger = CitationLedger()
    if plan.conversational:
        text = GREETING_TEXT if plan.greeting else CAPABILITY_TEXT
        return Draft(text=text, references=[], sources=[])

    paragraphs: List[str] = []
    considered = 0
    if plan.wants_spend:
        spend = _spend_paragraph(facts, ledger)
        if spend:
            paragraphs.append(spend)
    if plan.wants_projection:
        projected = _projection_paragraph(facts, ledger)
        if projected:
            paragraphs.append(projected)
    if plan.wants_recommendations or not len(ledger):
        recommendations, considered = _recommendation_paragraph(facts, plan, ledger)
        if recommendations:
            paragraphs.append(recommendations)

    return Draft(
        text="\n\n".join(paragraphs),
        references=ledger.references,
        sources=ledger.sources,
        recommendations_considered=considered,
    )
