"""Lookup flow shared by the server and edge handlers."""

from __future__ import annotations

from .errors import NotFoundError
from .models import LookupResponse, PostcodeRecord
from .normalize import validate_postcode
from .rules import describe_quintile
from .tables import LookupTable


def build_response(record: PostcodeRecord) -> LookupResponse:
    return LookupResponse(
        postcode=record.display_form,
        polar4=record.quintile,
        polar_description=describe_quintile(record.quintile),
    )


def lookup_postcode(table: LookupTable, raw: str) -> LookupResponse:
    """
    Validate `raw`, look it up and build the success envelope.

    InputFormatError is raised before the table is touched; NotFoundError
    carries the raw input, not the canonical key.
    """
    key = validate_postcode(raw)
    record = table.get(key)
    if record is None:
        raise NotFoundError(raw)
    return build_response(record)
