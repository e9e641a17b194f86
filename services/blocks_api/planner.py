"""Keyword planner that decides which facts an answer should cite."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional

from .errors import ValidationError

COST = "cost"
OPTIMIZATION = "optimization"
RECOMMENDATION = "recommendation"
PROJECTION = "projection"
FACTUAL_TOPICS = frozenset({COST, OPTIMIZATION, RECOMMENDATION, PROJECTION})
CATEGORY_PATTERN = re.compile(r"[a-z0-9-]{1,64}")

TOPIC_KEYWORDS: Dict[str, tuple[str, ...]] = {
    COST: (
        "cost",
        "costs",
        "spend",
        "spending",
        "spent",
        "bill",
        "billing",
        "invoice",
        "expense",
        "budget",
        "charges",
        "price",
    ),
    OPTIMIZATION: (
        "optimize",
        "optimise",
        "optimization",
        "optimisation",
        "saving",
        "savings",
        "save",
        "reduce",
        "cut",
        "waste",
        "efficiency",
        "opportunities",
        "rightsize",
        "rightsizing",
    ),
    RECOMMENDATION: (
        "recommend",
        "recommendation",
        "recommendations",
        "suggest",
        "suggestion",
        "advice",
        "should i",
        "next step",
        "action",
    ),
    PROJECTION: (
        "projection",
        "project",
        "projected",
        "forecast",
        "predict",
        "end of month",
        "run rate",
        "trend",
    ),
}
GREETINGS = ("hello", "hi", "hey", "thanks", "thank you", "good morning", "good evening")

DEFAULT_RECOMMENDATION_LIMIT = 3
_COUNT_PATTERN = re.compile(r"\b(?:top|best|first)\s+(\d{1,2})\b")


@dataclass(frozen=True)
class Plan:
    topics: FrozenSet[str] = field(default_factory=frozenset)
    wants_spend: bool = False
    wants_projection: bool = False
    wants_recommendations: bool = False
    max_recommendations: int = DEFAULT_RECOMMENDATION_LIMIT
    category: Optional[str] = None
    greeting: bool = False

    @property
    def factual(self) -> bool:
        """True when the answer must carry at least one citation."""
        return bool(self.topics & FACTUAL_TOPICS)

    @property
    def conversational(self) -> bool:
        return not self.factual


def _matches(lowered: str, keyword: str) -> bool:
    if " " in keyword:
        return keyword in lowered
    return re.search(rf"\b{re.escape(keyword)}\b", lowered) is not None


def classify(prompt: str) -> FrozenSet[str]:
    lowered = prompt.lower()
    return frozenset(
        topic for topic, keywords in TOPIC_KEYWORDS.items() if any(_matches(lowered, keyword) for keyword in keywords)
    )


def _requested_count(lowered: str) -> int:
    match = _COUNT_PATTERN.search(lowered)
    if not match:
        return DEFAULT_RECOMMENDATION_LIMIT
    return max(1, min(int(match.group(1)), 10))


def plan(prompt: str, context: Optional[Mapping[str, Any]] = None) -> Plan:
    """Map a prompt (and optional client context) to the facts worth citing.

    Only the citation invariant is contractual; this heuristic can be swapped
    for a classifier without touching the builder.
    """
    lowered = prompt.lower()
    topics = set(classify(prompt))
    hints = dict(context or {})
    category = hints.get("category")
    if isinstance(category, str) and category.strip():
        category = category.strip().lower()
        if not CATEGORY_PATTERN.fullmatch(category):
            raise ValidationError.for_field(
                "context.category", "use lowercase letters, digits and hyphens (max 64)"
            )
        topics.add(RECOMMENDATION)
    elif category is not None and not isinstance(category, str):
        raise ValidationError.for_field("context.category", "must be a string")
    else:
        category = None

    wants_recommendations = bool(topics & {OPTIMIZATION, RECOMMENDATION})
    wants_spend = COST in topics or (OPTIMIZATION in topics and RECOMMENDATION not in topics)
    return Plan(
        topics=frozenset(topics),
        wants_spend=wants_spend,
        wants_projection=PROJECTION in topics,
        wants_recommendations=wants_recommendations,
        max_recommendations=_requested_count(lowered),
        category=category,
        greeting=any(_matches(lowered, greeting) for greeting in GREETINGS),
    )
