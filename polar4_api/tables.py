"""
Lookup tables.

Both backends answer `get(canonical_key)` with a PostcodeRecord or None.
Keys passed in are expected to be canonical already.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .errors import BackendFault
from .models import PostcodeRecord
from .rules import SQL_TABLE

logger = logging.getLogger(__name__)


class LookupTable(ABC):
    @abstractmethod
    def get(self, canonical_key: str) -> Optional[PostcodeRecord]:
        ...


class InMemoryTable(LookupTable):
    """Read-only snapshot of a loaded source. Never mutated after construction."""

    def __init__(self, records: Mapping[str, PostcodeRecord]):
        self._records = MappingProxyType(dict(records))

    def get(self, canonical_key: str) -> Optional[PostcodeRecord]:
        return self._records.get(canonical_key)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, canonical_key: object) -> bool:
        return canonical_key in self._records

    def records(self):
        return self._records.values()


class SqlTable(LookupTable):
    """
    One primary-key query per lookup against the `postcodes` table.

    A failing query is not retried; the fault is logged and re-raised as
    BackendFault so callers never see driver detail.
    """

    QUERY = text(f"SELECT postcode_display, polar4 FROM {SQL_TABLE} WHERE postcode = :postcode")

    def __init__(self, engine: Engine):
        self.engine = engine

    def get(self, canonical_key: str) -> Optional[PostcodeRecord]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(self.QUERY, {"postcode": canonical_key}).first()
        except SQLAlchemyError as exc:
            logger.error("Database error looking up %s: %s", canonical_key, exc)
            raise BackendFault("lookup query failed") from exc

        if row is None:
            return None
        return PostcodeRecord(canonical_key, row.postcode_display, int(row.polar4))
