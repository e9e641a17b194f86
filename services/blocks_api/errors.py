"""Error taxonomy for the Blocks API and its wire envelope.

Every failure the service raises is a :class:`BlocksError` tagged with an
:class:`ErrorKind`. Rendering goes through one table keyed by kind, so the
set of error paths is closed and checked when this module is imported.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from blocks_shared.references import ReferenceViolation


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INTEGRITY = "integrity"
    GENERATION = "generation"
    EXTERNAL = "external"
    INTERNAL = "internal"


@dataclass(frozen=True)
class _Rendering:
    status_code: int
    code: ErrorCode
    public: bool
    fallback_message: str
    fallback_hint: Optional[str] = None


_RENDERING: Dict[ErrorKind, _Rendering] = {
    ErrorKind.VALIDATION: _Rendering(400, ErrorCode.VALIDATION_ERROR, True, "Validation failed"),
    ErrorKind.NOT_FOUND: _Rendering(404, ErrorCode.NOT_FOUND, True, "Resource not found"),
    ErrorKind.INTEGRITY: _Rendering(
        500,
        ErrorCode.INTERNAL_ERROR,
        False,
        "An unexpected error occurred",
        "Please try again later or contact support",
    ),
    ErrorKind.GENERATION: _Rendering(
        500,
        ErrorCode.INTERNAL_ERROR,
        False,
        "An unexpected error occurred",
        "Please try again later or contact support",
    ),
    ErrorKind.EXTERNAL: _Rendering(
        502,
        ErrorCode.EXTERNAL_SERVICE_ERROR,
        False,
        "External service error: cost data",
        "The external service is temporarily unavailable",
    ),
    ErrorKind.INTERNAL: _Rendering(
        500,
        ErrorCode.INTERNAL_ERROR,
        False,
        "An unexpected error occurred",
        "Please try again later or contact support",
    ),
}
if set(_RENDERING) != set(ErrorKind):
    raise RuntimeError("every error kind needs a rendering")


class BlocksError(Exception):
    """Base class for every error the service raises on purpose."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, *, hint: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.detail = detail

    @property
    def status_code(self) -> int:
        return _RENDERING[self.kind].status_code

    @property
    def code(self) -> ErrorCode:
        return _RENDERING[self.kind].code


class ValidationError(BlocksError):
    """Malformed or missing request fields."""

    kind = ErrorKind.VALIDATION

    @classmethod
    def for_field(cls, field: str, reason: str) -> "ValidationError":
        return cls(f"Validation failed for field '{field}': {reason}", hint=f"Invalid field: {field}")


class NotFoundError(BlocksError):
    kind = ErrorKind.NOT_FOUND


class ReferenceIntegrityError(BlocksError):
    """An assistant answer whose inline citations and references disagree."""

    kind = ErrorKind.INTEGRITY

    def __init__(self, violation: ReferenceViolation) -> None:
        super().__init__(violation.message, detail={"reason": violation.reason, "token": violation.token})
        self.violation = violation


class ContentGenerationError(BlocksError):
    """The generator could not meet its cardinality or uniqueness contract."""

    kind = ErrorKind.GENERATION


class ExternalServiceError(BlocksError):
    """A real backend call failed or timed out."""

    kind = ErrorKind.EXTERNAL


class InternalError(BlocksError):
    kind = ErrorKind.INTERNAL


def error_envelope(error: BlocksError, request_id: Optional[str] = None) -> Dict[str, Any]:
    """Render the public ``{error: {...}, requestId}`` body for ``error``.

    Kinds marked non-public never echo the original message or detail.
    """
    rendering = _RENDERING[error.kind]
    if rendering.public:
        message = error.message or rendering.fallback_message
        hint = error.hint or rendering.fallback_hint
    else:
        message = rendering.fallback_message
        hint = rendering.fallback_hint
    body: Dict[str, Any] = {"error": {"code": rendering.code.value, "message": message}}
    if hint:
        body["error"]["hint"] = hint
    if request_id:
        body["requestId"] = request_id
    return body
