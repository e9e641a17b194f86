"""Per-request context threaded explicitly through handlers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from uuid import uuid4

from .errors import ValidationError


@dataclass(frozen=True)
class RequestContext:
    request_id: str
    tenant_id: str
    day: date


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def parse_day(raw: Optional[str]) -> date:
    """Parse an ``X-Blocks-Date`` override, defaulting to today in UTC."""
    if raw is None or not raw.strip():
        return utc_today()
    try:
        return date.fromisoformat(raw.strip())
    except ValueError as exc:
        raise ValidationError(
            f"Invalid date override: {raw!r}",
            hint="X-Blocks-Date must use YYYY-MM-DD",
        ) from exc


def build_context(
    *,
    request_id: Optional[str],
    tenant_id: Optional[str],
    default_tenant_id: str,
    day_header: Optional[str] = None,
) -> RequestContext:
    tenant = (tenant_id or "").strip() or default_tenant_id
    return RequestContext(
        request_id=(request_id or "").strip() or str(uuid4()),
        tenant_id=tenant,
        day=parse_day(day_header),
    )
