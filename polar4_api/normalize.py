"""
Postcode normalization and validation.

Responsibilities:
- canonical key: whitespace removed, letters uppercased
- shape check: 5-8 uppercase ASCII letters or digits
- boundary check for raw request input (length first, then shape)

Only the shape is validated; no UK area/district grammar is enforced.
"""

from __future__ import annotations

from .errors import InputFormatError
from .rules import CANONICAL_POSTCODE_RE, RAW_MAX_LENGTH, RAW_MIN_LENGTH, WHITESPACE_RE


def normalize_postcode(raw: str) -> str:
    return WHITESPACE_RE.sub("", raw).upper()


def is_valid_postcode(raw: str) -> bool:
    return CANONICAL_POSTCODE_RE.match(normalize_postcode(raw)) is not None


def validate_postcode(raw: str) -> str:
    """
    Check raw request input and return its canonical key.

    Raw length is checked before normalization so that padded input
    ("A  B  1  0  1  A  A") is rejected even though its key would be valid.
    """
    if not raw or len(raw) < RAW_MIN_LENGTH or len(raw) > RAW_MAX_LENGTH:
        raise InputFormatError(f"Postcode must be {RAW_MIN_LENGTH}-{RAW_MAX_LENGTH} characters")

    if not is_valid_postcode(raw):
        raise InputFormatError("Postcode contains invalid characters")

    return normalize_postcode(raw)
