"""Date-seeded pseudo-randomness for mock content.

A :class:`GenerationSeed` is recomputed from ``(tenant_id, calendar day)`` on
every request; reproducibility comes from hashing the same two inputs, never
from stored state or the wall clock.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Union

import numpy as np

DayLike = Union[date, datetime]

_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "blocks://mock-content")


def calendar_day(value: DayLike) -> date:
    """Reduce ``value`` to a calendar date; aware datetimes are read in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")


@dataclass(frozen=True)
class GenerationSeed:
    tenant_id: str
    day: date
    value: int

    @classmethod
    def derive(cls, tenant_id: str, day: DayLike) -> "GenerationSeed":
        tenant = (tenant_id or "").strip()
        if not tenant:
            raise ValueError("tenant_id is required to derive a generation seed")
        normalized = calendar_day(day)
        digest = hashlib.sha256(f"{tenant}|{normalized.isoformat()}".encode("utf-8")).digest()
        return cls(tenant_id=tenant, day=normalized, value=int.from_bytes(digest[:8], "big"))

    def stream(self, salt: str) -> np.random.Generator:
        """Return an independent PCG64 stream for one consumer of the seed."""
        digest = hashlib.sha256(f"{self.value}|{salt}".encode("utf-8")).digest()
        return np.random.default_rng(int.from_bytes(digest[:16], "big"))

    def uuid_for(self, salt: str) -> str:
        return str(uuid.uuid5(_NAMESPACE, f"{self.tenant_id}|{self.day.isoformat()}|{salt}"))
