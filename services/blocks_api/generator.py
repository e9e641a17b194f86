"""Deterministic mock recommendations and timeline blocks.

Output depends only on ``(tenant_id, calendar day)``: reloads within a day see
identical content, a new day reshuffles selections and values.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Sequence, Tuple, TypeVar

import numpy as np

from blocks_shared.metrics import record_generation
from blocks_shared.models import (
    ImpactLevel,
    MetricType,
    RecommendationStatus,
    RecommendationStub,
    RiskLevel,
    TimelineBlock,
    TimelineDataPoint,
)

from .errors import ContentGenerationError
from .seed import DayLike, GenerationSeed
from .settings import get_settings

logger = logging.getLogger("uvicorn.error")

RECOMMENDATION_STREAM = "recommendations"
TIMELINE_STREAM = "timelines"

# Monthly savings range in cents per impact level.
SAVINGS_RANGE_MINOR: Dict[ImpactLevel, Tuple[int, int]] = {
    ImpactLevel.LOW: (5_000, 40_000),
    ImpactLevel.MEDIUM: (40_000, 180_000),
    ImpactLevel.HIGH: (180_000, 650_000),
}


@dataclass(frozen=True)
class RecommendationTemplate:
    id: str
    titles: Tuple[str, ...]
    short_description: str
    impact_level: ImpactLevel
    status: RecommendationStatus
    category: str
    rationale_preview: str
    risk_level: RiskLevel = RiskLevel.LOW


@dataclass(frozen=True)
class TimelineTemplate:
    id: str
    title: str
    metric_type: MetricType


RECOMMENDATION_TEMPLATES: Tuple[RecommendationTemplate, ...] = (
    RecommendationTemplate(
        id="rightsizing-ec2",
        titles=("Rightsize EC2 Instances", "Downsize Idle EC2 Capacity"),
        short_description="Identify over-provisioned instances running below optimal capacity",
        impact_level=ImpactLevel.HIGH,
        status=RecommendationStatus.PROTOTYPE,
        category="rightsizing",
        rationale_preview="Large instance family with <20% avg utilization",
        risk_level=RiskLevel.MEDIUM,
    ),
    RecommendationTemplate(
        id="unused-volumes",
        titles=("Remove Unused EBS Volumes", "Clean Up Detached EBS Volumes"),
        short_description="Clean up unattached storage volumes accumulating costs",
        impact_level=ImpactLevel.MEDIUM,
        status=RecommendationStatus.PROTOTYPE,
        category="idle",
        rationale_preview="Detached volumes older than 7 days",
    ),
    RecommendationTemplate(
        id="reserved-instance-optimization",
        titles=("Reserved Instance Optimization", "Tune Reserved Instance Coverage"),
        short_description="Optimize RI coverage and instance family selection",
        impact_level=ImpactLevel.HIGH,
        status=RecommendationStatus.COMING_SOON,
        category="commitment",
        rationale_preview="Potential 30-60% savings on stable workloads",
        risk_level=RiskLevel.MEDIUM,
    ),
    RecommendationTemplate(
        id="spot-instance-migration",
        titles=("Spot Instance Migration", "Move Batch Jobs to Spot"),
        short_description="Migrate suitable workloads to cost-effective spot instances",
        impact_level=ImpactLevel.MEDIUM,
        status=RecommendationStatus.COMING_SOON,
        category="rightsizing",
        rationale_preview="Up to 90% savings for fault-tolerant workloads",
        risk_level=RiskLevel.HIGH,
    ),
    RecommendationTemplate(
        id="storage-class-optimization",
        titles=("S3 Storage Class Optimization", "Tier Cold S3 Objects"),
        short_description="Transition infrequently accessed data to cheaper storage tiers",
        impact_level=ImpactLevel.MEDIUM,
        status=RecommendationStatus.PROTOTYPE,
        category="storage",
        rationale_preview="Objects not accessed in 30+ days",
    ),
    RecommendationTemplate(
        id="lambda-memory-optimization",
        titles=("Lambda Memory Optimization", "Right-size Lambda Memory"),
        short_description="Right-size Lambda functions for optimal cost-performance ratio",
        impact_level=ImpactLevel.LOW,
        status=RecommendationStatus.FUTURE,
        category="serverless",
        rationale_preview="Memory over-provisioning detected",
    ),
    RecommendationTemplate(
        id="database-rightsizing",
        titles=("RDS Instance Rightsizing", "Downsize Underused RDS Instances"),
        short_description="Optimize database instance sizes based on actual usage patterns",
        impact_level=ImpactLevel.HIGH,
        status=RecommendationStatus.COMING_SOON,
        category="rightsizing",
        rationale_preview="CPU utilization consistently below 30%",
        risk_level=RiskLevel.MEDIUM,
    ),
    RecommendationTemplate(
        id="cloudfront-optimization",
        titles=("CloudFront Cache Optimization", "Raise CloudFront Cache Hit Ratio"),
        short_description="Improve cache hit ratios and reduce origin requests",
        impact_level=ImpactLevel.MEDIUM,
        status=RecommendationStatus.FUTURE,
        category="performance",
        rationale_preview="Low cache hit ratio affecting costs",
    ),
)

TIMELINE_TEMPLATES: Tuple[TimelineTemplate, ...] = (
    TimelineTemplate(id="spend-trend", title="Daily Spend Trend", metric_type=MetricType.SPEND),
    TimelineTemplate(id="performance-overview", title="Resource Performance", metric_type=MetricType.PERFORMANCE),
    TimelineTemplate(id="cost-projection", title="Cost Projection", metric_type=MetricType.PROJECTION),
    TimelineTemplate(id="savings-opportunity", title="Savings Opportunities", metric_type=MetricType.OTHER),
    TimelineTemplate(id="efficiency-score", title="Efficiency Score", metric_type=MetricType.PERFORMANCE),
)


@dataclass(frozen=True)
class GeneratedContent:
    tenant_id: str
    day: date
    recommendations: Tuple[RecommendationStub, ...]
    timelines: Tuple[TimelineBlock, ...]

    def to_wire(self) -> Dict[str, object]:
        return {
            "tenantId": self.tenant_id,
            "day": self.day.isoformat(),
            "recommendations": [item.to_wire() for item in self.recommendations],
            "timelines": [block.to_wire() for block in self.timelines],
        }


T = TypeVar("T")


def _dedupe_by_id(items: Iterable[T], label: str) -> List[T]:
    seen: set[str] = set()
    unique: List[T] = []
    duplicates = 0
    for item in items:
        identifier = getattr(item, "id")
        if identifier in seen:
            duplicates += 1
            continue
        seen.add(identifier)
        unique.append(item)
    if duplicates:
        logger.warning("Removed %s duplicate %s template(s)", duplicates, label)
    return unique


def _pick(rng: np.random.Generator, pool: Sequence[T], minimum: int, maximum: int) -> List[T]:
    upper = min(maximum, len(pool))
    count = int(rng.integers(minimum, upper + 1))
    order = rng.permutation(len(pool))
    return [pool[int(index)] for index in order[:count]]


def day_start_ms(day: date) -> int:
    return int(datetime(day.year, day.month, day.day, tzinfo=timezone.utc).timestamp() * 1000)


def _series_values(metric_type: MetricType, rng: np.random.Generator, days: int) -> List[float]:
    values: List[float] = []
    for position in range(days):
        # Days remaining until the generation day, oldest first.
        offset = days - 1 - position
        if metric_type is MetricType.SPEND:
            base = 500 + rng.uniform(-200, 800)
            weekly = math.sin((offset / 7) * math.pi) * 0.3 + 1
            value = max(100.0, base * weekly + rng.uniform(-100, 100))
        elif metric_type is MetricType.PERFORMANCE:
            base = 75 + math.sin((offset / 30) * math.pi * 2) * 15
            value = max(0.0, min(100.0, base + rng.uniform(-10, 10)))
        elif metric_type is MetricType.PROJECTION:
            trend = 1000 + position * 20
            value = max(0.0, trend + rng.uniform(-150, 150))
        else:
            previous = values[-1] if values else 500.0
            value = max(0.0, min(1000.0, previous + rng.uniform(-50, 50)))
        values.append(round(float(value), 2))
    return values


def build_data_points(metric_type: MetricType, rng: np.random.Generator, day: date, days: int) -> List[TimelineDataPoint]:
    """``days`` daily points ending at ``day`` (UTC midnight), oldest first."""
    first = day - timedelta(days=days - 1)
    values = _series_values(metric_type, rng, days)
    return [
        TimelineDataPoint(timestamp=day_start_ms(first + timedelta(days=index)), value=value)
        for index, value in enumerate(values)
    ]


@dataclass
class ContentGenerator:
    recommendation_templates: Sequence[RecommendationTemplate] = RECOMMENDATION_TEMPLATES
    timeline_templates: Sequence[TimelineTemplate] = TIMELINE_TEMPLATES
    min_recommendations: int = 5
    max_recommendations: int = 7
    min_timelines: int = 3
    max_timelines: int = 5
    timeline_days: int = 30
    _pools: Dict[str, list] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.timeline_days < 2:
            raise ValueError("timeline_days must be at least 2")
        if self.max_recommendations < self.min_recommendations or self.max_timelines < self.min_timelines:
            raise ValueError("maximum counts must not be below the minimum counts")
        self._pools["recommendations"] = _dedupe_by_id(self.recommendation_templates, "recommendation")
        self._pools["timelines"] = _dedupe_by_id(self.timeline_templates, "timeline")

    def generate(self, tenant_id: str, day: DayLike) -> GeneratedContent:
        seed = GenerationSeed.derive(tenant_id, day)
        recommendations = self.recommendations(seed)
        timelines = self.timelines(seed)
        return GeneratedContent(
            tenant_id=seed.tenant_id,
            day=seed.day,
            recommendations=tuple(recommendations),
            timelines=tuple(timelines),
        )

    def recommendations(self, seed: GenerationSeed) -> List[RecommendationStub]:
        pool: List[RecommendationTemplate] = self._pools["recommendations"]
        self._require_pool("recommendation", len(pool), self.min_recommendations)
        rng = seed.stream(RECOMMENDATION_STREAM)
        chosen = _pick(rng, pool, self.min_recommendations, self.max_recommendations)
        stubs: List[RecommendationStub] = []
        for position, template in enumerate(chosen, start=1):
            low, high = SAVINGS_RANGE_MINOR[template.impact_level]
            title = template.titles[int(rng.integers(0, len(template.titles)))]
            stubs.append(
                RecommendationStub(
                    id=template.id,
                    title=title,
                    short_description=template.short_description,
                    impact_level=template.impact_level,
                    status=template.status,
                    category=template.category,
                    display_order=position,
                    rationale_preview=template.rationale_preview,
                    reference_id=seed.uuid_for(f"rec:{template.id}"),
                    estimated_monthly_savings_minor=int(rng.integers(low, high + 1)),
                    risk_level=template.risk_level,
                )
            )
        self._check_batch("recommendation", stubs, self.min_recommendations)
        record_generation("recommendations")
        return stubs

    def timelines(self, seed: GenerationSeed) -> List[TimelineBlock]:
        pool: List[TimelineTemplate] = self._pools["timelines"]
        self._require_pool("timeline", len(pool), self.min_timelines)
        rng = seed.stream(TIMELINE_STREAM)
        chosen = _pick(rng, pool, self.min_timelines, self.max_timelines)
        blocks = [
            TimelineBlock(
                id=template.id,
                title=template.title,
                metric_type=template.metric_type,
                time_range=f"LAST_{self.timeline_days}_DAYS",
                data_points=build_data_points(template.metric_type, rng, seed.day, self.timeline_days),
                disclaimer_flag=True,
            )
            for template in chosen
        ]
        self._check_batch("timeline", blocks, self.min_timelines)
        record_generation("timelines")
        return blocks

    @staticmethod
    def _require_pool(label: str, available: int, minimum: int) -> None:
        if available < minimum:
            raise ContentGenerationError(
                f"Only {available} distinct {label} template(s) configured; at least {minimum} required",
                detail={"label": label, "available": available, "minimum": minimum},
            )

    @staticmethod
    def _check_batch(label: str, items: Sequence[object], minimum: int) -> None:
        identifiers = [getattr(item, "id") for item in items]
        if len(set(identifiers)) != len(identifiers):
            raise ContentGenerationError(f"Duplicate {label} ids generated: {identifiers}")
        if len(identifiers) < minimum:
            raise ContentGenerationError(f"Generated {len(identifiers)} {label}(s); at least {minimum} required")


def default_generator() -> ContentGenerator:
    settings = get_settings()
    return ContentGenerator(
        min_recommendations=settings.min_recommendations,
        max_recommendations=settings.max_recommendations,
        min_timelines=settings.min_timelines,
        max_timelines=settings.max_timelines,
        timeline_days=settings.timeline_days,
    )


def generate(tenant_id: str, day: DayLike) -> GeneratedContent:
    """Generate the day's recommendations and timelines for ``tenant_id``."""
    return default_generator().generate(tenant_id, day)
