"""Shared models and utilities for the Blocks services."""

from .models import (  # noqa: F401
    CallToAction,
    ImpactLevel,
    MetricType,
    RecommendationStatus,
    RecommendationStub,
    RiskLevel,
    TimelineBlock,
    TimelineDataPoint,
    cta_for,
)
from .money import DEFAULT_CURRENCY_CODE, currency_symbol_for, format_minor  # noqa: F401
from .references import (  # noqa: F401
    INLINE_PATTERN,
    STRICT_INLINE_PATTERN,
    TOKEN_PATTERN,
    ReferenceToken,
    ReferenceViolation,
    extract_inline_tokens,
    find_violation,
    first_seen,
    is_valid_inline,
    is_valid_token,
)
