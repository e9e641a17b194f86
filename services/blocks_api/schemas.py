"""Request and response models for the Blocks API."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from blocks_shared.models import TimelineBlock


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueryRequest(CamelModel):
    """Body of ``POST /assistant/query``; the prompt is checked by the handler."""

    prompt: Optional[str] = None
    conversation_id: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    stream: bool = False


class SourceRef(CamelModel):
    token: str
    kind: str
    label: str


class AssistantResponse(CamelModel):
    """Standard envelope returned by the assistant endpoint."""

    response: str
    references: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None
    sources: List[SourceRef] = Field(default_factory=list)
    meta: Dict[str, Any] = Field(default_factory=dict)


class TimelinesResponse(CamelModel):
    blocks: List[TimelineBlock]


class ConnectionTestRequest(CamelModel):
    role_arn: Optional[str] = None
    external_id: Optional[str] = None


class TenantSetupRequest(CamelModel):
    name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=60)]
    role_arn: Optional[str] = None
    external_id: Optional[str] = None


class PerfMarker(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    value: float
    timestamp: Optional[float] = None
    url: Optional[str] = None


class PerfBatch(CamelModel):
    markers: List[PerfMarker] = Field(default_factory=list, max_length=500)
    session_id: Optional[str] = None
    user_agent: Optional[str] = None
