"""Reference token grammar and citation integrity checks.

Assistant answers cite facts inline as ``[REF:agg:<id>]`` or
``[REF:rec:<uuid>]``. The same tokens, without the ``[REF:...]`` wrapper, are
listed in the response's ``references`` array. :func:`find_violation` checks
that the two representations agree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

AGGREGATE = "agg"
RECOMMENDATION = "rec"

TOKEN_PATTERN = re.compile(r"^(agg|rec):[A-Za-z0-9:-]+$")
INLINE_PATTERN = re.compile(r"\[REF:([^\]]+)\]")
STRICT_INLINE_PATTERN = re.compile(r"^\[REF:(agg|rec):[A-Za-z0-9:-]+\]$")
_CASE_INSENSITIVE_MARKER = re.compile(r"\[(ref):", re.IGNORECASE)


@dataclass(frozen=True)
class ReferenceToken:
    """A typed citation: an aggregate bucket or a specific recommendation."""

    kind: str
    payload: str

    def __post_init__(self) -> None:
        if not TOKEN_PATTERN.fullmatch(f"{self.kind}:{self.payload}"):
            raise ValueError(f"Invalid reference token: {self.kind}:{self.payload!r}")

    def __str__(self) -> str:
        return f"{self.kind}:{self.payload}"

    def inline(self) -> str:
        return f"[REF:{self}]"

    @classmethod
    def parse(cls, text: str) -> "ReferenceToken":
        if not isinstance(text, str) or not TOKEN_PATTERN.fullmatch(text):
            raise ValueError(f"Invalid reference token: {text!r}")
        kind, payload = text.split(":", 1)
        return cls(kind=kind, payload=payload)

    @classmethod
    def aggregate(cls, identifier: str) -> "ReferenceToken":
        return cls(kind=AGGREGATE, payload=identifier)

    @classmethod
    def recommendation(cls, identifier: str) -> "ReferenceToken":
        return cls(kind=RECOMMENDATION, payload=identifier)


def is_valid_token(text: str) -> bool:
    return isinstance(text, str) and bool(TOKEN_PATTERN.fullmatch(text))


def is_valid_inline(marker: str) -> bool:
    return isinstance(marker, str) and bool(STRICT_INLINE_PATTERN.fullmatch(marker))


def extract_inline_tokens(text: str | None) -> List[str]:
    """Return every token cited inline, in order of appearance."""
    return INLINE_PATTERN.findall(text or "")


def first_seen(tokens: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(tokens))


@dataclass(frozen=True)
class ReferenceViolation:
    """First integrity problem found in an assistant answer."""

    reason: str
    token: str
    message: str


MALFORMED_REFERENCE = "malformed_reference"
MALFORMED_TOKEN = "malformed_token"
UNKNOWN_REFERENCE = "unknown_reference"
CASE_MISMATCH = "case_mismatch"
DANGLING_REFERENCE = "dangling_reference"


def find_violation(
    response_text: str | None,
    references: Sequence[str],
    *,
    allow_dangling: bool = False,
) -> Optional[ReferenceViolation]:
    """Cross-check inline citations against the references list.

    Returns ``None`` when the answer is consistent, otherwise the first
    violation found. Checks run in a fixed order: the references list
    grammar, lowercase ``[ref:`` markers, inline grammar, inline membership,
    and finally references that are never cited inline.
    """
    text = response_text or ""
    for reference in references:
        if not is_valid_token(reference):
            return ReferenceViolation(
                reason=MALFORMED_REFERENCE,
                token=str(reference),
                message=f"Reference {reference!r} does not match the token grammar",
            )

    for match in _CASE_INSENSITIVE_MARKER.finditer(text):
        if match.group(1) != "REF":
            return ReferenceViolation(
                reason=CASE_MISMATCH,
                token=match.group(0),
                message=f"Citation marker {match.group(0)!r} must be upper-case [REF:",
            )

    inline_tokens = extract_inline_tokens(text)
    known = set(references)
    for token in inline_tokens:
        if not is_valid_token(token):
            return ReferenceViolation(
                reason=MALFORMED_TOKEN,
                token=token,
                message=f"Inline citation {token!r} does not match the token grammar",
            )
        if token not in known:
            return ReferenceViolation(
                reason=UNKNOWN_REFERENCE,
                token=token,
                message=f"Inline citation {token!r} is missing from references",
            )

    if not allow_dangling:
        cited = set(inline_tokens)
        for reference in references:
            if reference not in cited:
                return ReferenceViolation(
                    reason=DANGLING_REFERENCE,
                    token=reference,
                    message=f"Reference {reference!r} is never cited in the response",
                )
    return None
