"""
CSV -> SQL ingestion for the database-backed handler.

Records go through the same loader as the in-memory server, so the SQL
table holds exactly the keys and quintiles the server would hold.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, List

from sqlalchemy import Column, Integer, MetaData, Table, Text
from sqlalchemy.engine import Engine

from .loader import Source, load_table
from .models import PostcodeRecord
from .rules import SQL_BATCH_SIZE, SQL_TABLE

logger = logging.getLogger(__name__)

metadata = MetaData()

postcodes = Table(
    SQL_TABLE,
    metadata,
    Column("postcode", Text, primary_key=True),
    Column("postcode_display", Text, nullable=False),
    Column("polar4", Integer, nullable=False),
)


def schema_sql() -> str:
    return (
        "-- Schema for postcode POLAR4 data\n"
        f"CREATE TABLE IF NOT EXISTS {SQL_TABLE} (\n"
        "    postcode TEXT PRIMARY KEY,\n"
        "    postcode_display TEXT NOT NULL,\n"
        "    polar4 INTEGER NOT NULL\n"
        ");\n\n"
        f"CREATE INDEX IF NOT EXISTS idx_{SQL_TABLE}_postcode ON {SQL_TABLE}(postcode);\n"
    )


def sql_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _insert(values: List[str]) -> str:
    return (
        f"INSERT INTO {SQL_TABLE} (postcode, postcode_display, polar4) VALUES\n"
        + ",\n".join(values)
        + ";\n"
    )


def check_batch_size(batch_size: int) -> int:
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    return batch_size


def iter_insert_statements(records: Iterable[PostcodeRecord], batch_size: int = SQL_BATCH_SIZE) -> Iterator[str]:
    """Yield multi-row INSERT statements of at most `batch_size` rows each."""
    check_batch_size(batch_size)

    batch: List[str] = []
    for record in records:
        batch.append(
            f"({sql_quote(record.canonical_key)}, {sql_quote(record.display_form)}, {int(record.quintile)})"
        )
        if len(batch) >= batch_size:
            yield _insert(batch)
            batch = []

    if batch:
        yield _insert(batch)


def write_import_sql(csv_path: Source, out_path: Source, batch_size: int = SQL_BATCH_SIZE) -> int:
    """Write an import script for `csv_path`; returns the number of rows written."""
    check_batch_size(batch_size)
    table = load_table(csv_path)

    with open(Path(out_path), "w", encoding="utf-8", newline="\n") as fh:
        fh.write("-- Generated SQL for importing postcodes\n\n")
        for statement in iter_insert_statements(table.records(), batch_size):
            fh.write(statement)
            fh.write("\n")
        fh.write(f"-- Total rows: {len(table)}\n")

    logger.info("Generated %s with %d postcodes", out_path, len(table))
    return len(table)


def ingest_into_database(csv_path: Source, engine: Engine, batch_size: int = SQL_BATCH_SIZE) -> int:
    """
    Load `csv_path` into the `postcodes` table, creating it if missing.

    Existing rows for the same keys are replaced, matching the last-wins
    rule of the in-memory loader.
    """
    check_batch_size(batch_size)
    table = load_table(csv_path)
    rows = [
        {"postcode": r.canonical_key, "postcode_display": r.display_form, "polar4": r.quintile}
        for r in table.records()
    ]

    metadata.create_all(engine)
    with engine.begin() as conn:
        if rows:
            keys = [row["postcode"] for row in rows]
            for start in range(0, len(keys), batch_size):
                conn.execute(postcodes.delete().where(postcodes.c.postcode.in_(keys[start:start + batch_size])))
            for start in range(0, len(rows), batch_size):
                conn.execute(postcodes.insert(), rows[start:start + batch_size])

    logger.info("Ingested %d postcodes into %s", len(rows), engine.url.render_as_string(hide_password=True))
    return len(rows)
