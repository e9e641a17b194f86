"""Citation gate applied to every assistant answer before it leaves the service."""

from __future__ import annotations

from typing import Optional, Sequence

from blocks_shared.metrics import record_violation
from blocks_shared.references import find_violation

from .errors import ReferenceIntegrityError
from .schemas import AssistantResponse


def validate(response_text: Optional[str], references: Sequence[str], *, allow_dangling: bool = False) -> None:
    """Raise :class:`ReferenceIntegrityError` for the first citation problem found."""
    violation = find_violation(response_text, references, allow_dangling=allow_dangling)
    if violation is not None:
        record_violation(violation.reason)
        raise ReferenceIntegrityError(violation)


def validate_response(response: AssistantResponse) -> None:
    validate(response.response, response.references)
