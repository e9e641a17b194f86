import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

SHARED = Path(__file__).resolve().parents[1]
if str(SHARED) not in sys.path:
    sys.path.insert(0, str(SHARED))

from blocks_shared.models import (  # noqa: E402
    CallToAction,
    ImpactLevel,
    MetricType,
    RecommendationStatus,
    RecommendationStub,
    TimelineBlock,
    TimelineDataPoint,
    cta_for,
)


def _stub(**overrides) -> RecommendationStub:
    fields = {
        "id": "rightsizing-ec2",
        "title": "Rightsize EC2 Instances",
        "short_description": "Identify over-provisioned instances",
        "impact_level": ImpactLevel.HIGH,
        "status": RecommendationStatus.PROTOTYPE,
        "reference_id": "0f8c2a4e-1b7d-5c3e-9a6f-2d4b8e1c7a90",
    }
    fields.update(overrides)
    return RecommendationStub(**fields)


def test_cta_mapping_covers_every_status() -> None:
    assert cta_for(RecommendationStatus.PROTOTYPE) is CallToAction.TRY_NOW
    assert cta_for("ComingSoon") is CallToAction.NOTIFY_ME
    assert cta_for(RecommendationStatus.FUTURE) is CallToAction.ROADMAP
    assert _stub(status=RecommendationStatus.FUTURE).cta is CallToAction.ROADMAP


@pytest.mark.parametrize("status", list(RecommendationStatus))
def test_every_status_has_a_call_to_action(status: RecommendationStatus) -> None:
    assert isinstance(cta_for(status), CallToAction)


def test_stub_serialises_with_camel_case() -> None:
    wire = _stub(category="rightsizing", display_order=1).to_wire()
    assert wire["shortDescription"] == "Identify over-provisioned instances"
    assert wire["impactLevel"] == "High"
    assert wire["status"] == "Prototype"
    assert wire["displayOrder"] == 1
    assert "rationalePreview" not in wire


def test_stub_accepts_camel_case_input() -> None:
    stub = RecommendationStub.model_validate(
        {
            "id": "unused-volumes",
            "title": "Remove Unused EBS Volumes",
            "shortDescription": "Clean up",
            "impactLevel": "Medium",
            "status": "ComingSoon",
            "referenceId": "abc",
        }
    )
    assert stub.status is RecommendationStatus.COMING_SOON


@pytest.mark.parametrize("overrides", [{"id": "Not A Slug"}, {"status": "Done"}, {"display_order": 0}])
def test_stub_rejects_bad_fields(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _stub(**overrides)


def test_stubs_are_immutable() -> None:
    stub = _stub()
    with pytest.raises(ValidationError):
        stub.title = "Changed"


def test_timeline_requires_increasing_points() -> None:
    points = [TimelineDataPoint(timestamp=1000, value=1.0), TimelineDataPoint(timestamp=2000, value=2.0)]
    block = TimelineBlock(id="spend-trend", title="Spend", metric_type=MetricType.SPEND, time_range="LAST_2_DAYS", data_points=points)
    assert block.to_wire()["dataPoints"][1] == {"timestamp": 2000, "value": 2.0}
    with pytest.raises(ValidationError):
        TimelineBlock(
            id="spend-trend",
            title="Spend",
            metric_type=MetricType.SPEND,
            time_range="LAST_2_DAYS",
            data_points=list(reversed(points)),
        )
    with pytest.raises(ValidationError):
        TimelineBlock(
            id="spend-trend",
            title="Spend",
            metric_type=MetricType.SPEND,
            time_range="LAST_1_DAYS",
            data_points=points[:1],
        )
