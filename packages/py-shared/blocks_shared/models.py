"""Display-oriented domain records shared by the API and its tooling."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ImpactLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class RecommendationStatus(str, Enum):
    """Availability stage of a recommendation; drives the CTA shown next to it."""

    PROTOTYPE = "Prototype"
    COMING_SOON = "ComingSoon"
    FUTURE = "Future"


class MetricType(str, Enum):
    SPEND = "Spend"
    PERFORMANCE = "Performance"
    PROJECTION = "Projection"
    OTHER = "Other"


class CallToAction(str, Enum):
    TRY_NOW = "try_now"
    NOTIFY_ME = "notify_me"
    ROADMAP = "roadmap"


_CTA_BY_STATUS = {
    RecommendationStatus.PROTOTYPE: CallToAction.TRY_NOW,
    RecommendationStatus.COMING_SOON: CallToAction.NOTIFY_ME,
    RecommendationStatus.FUTURE: CallToAction.ROADMAP,
}
if set(_CTA_BY_STATUS) != set(RecommendationStatus):
    raise RuntimeError("every recommendation status needs a call to action")


def cta_for(status: RecommendationStatus | str) -> CallToAction:
    """Return the call-to-action affordance for a recommendation status."""
    return _CTA_BY_STATUS[RecommendationStatus(status)]


class WireModel(BaseModel):
    """Frozen model serialised with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RecommendationStub(WireModel):
    id: str = Field(min_length=1, pattern=r"^[a-z0-9][a-z0-9-]*$")
    title: str = Field(min_length=1)
    short_description: str
    impact_level: ImpactLevel
    status: RecommendationStatus
    category: Optional[str] = None
    display_order: Optional[int] = Field(default=None, ge=1)
    rationale_preview: Optional[str] = None
    reference_id: str
    estimated_monthly_savings_minor: int = Field(default=0, ge=0)
    risk_level: RiskLevel = RiskLevel.LOW

    @property
    def cta(self) -> CallToAction:
        return cta_for(self.status)


class TimelineDataPoint(WireModel):
    timestamp: int
    value: float


class TimelineBlock(WireModel):
    id: str = Field(min_length=1)
    title: str
    metric_type: MetricType
    time_range: str
    data_points: List[TimelineDataPoint]
    disclaimer_flag: bool = True

    @model_validator(mode="after")
    def check_points(self) -> "TimelineBlock":
        if len(self.data_points) < 2:
            raise ValueError("timeline blocks need at least 2 data points")
        previous = None
        for point in self.data_points:
            if previous is not None and point.timestamp <= previous:
                raise ValueError("timeline timestamps must be strictly increasing")
            previous = point.timestamp
        return self
