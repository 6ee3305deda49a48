"""
CSV loading.

The source is read once, row by row, into an InMemoryTable:
- encoding detection via charset-normalizer (UTF-8 BOM handled)
- header aliases matched case-insensitively
- rows with an empty/ill-shaped postcode or a quintile outside 1-5 are skipped
- duplicate canonical keys: the later row replaces the earlier one
"""

from __future__ import annotations

import csv
import logging
import os
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from charset_normalizer import from_path

from .errors import LoadError
from .models import PostcodeRecord
from .normalize import is_valid_postcode, normalize_postcode
from .rules import POLAR4_COLUMN, POLAR4_COLUMN_FRAGMENT, POSTCODE_COLUMN, VALID_QUINTILES
from .tables import InMemoryTable

logger = logging.getLogger(__name__)

Source = Union[str, os.PathLike]


def detect_encoding(path: Path) -> str:
    """
    Best-effort encoding of a CSV file, judged from the whole file.

    ascii is widened to utf-8, its superset. UTF-8 with a BOM is reported as
    utf-8-sig so the BOM never ends up in the first header name.
    """
    with open(path, "rb") as fh:
        head = fh.read(3)

    encoding = "utf-8"
    match = from_path(path).best()
    if match is not None and match.encoding.lower().replace("-", "_") not in ("ascii", "us_ascii", "utf_8", "utf8"):
        encoding = match.encoding

    if head.startswith(b"\xef\xbb\xbf") and encoding == "utf-8":
        encoding = "utf-8-sig"
    return encoding


def _clean(value: str) -> str:
    return value.strip().strip('"').strip()


def resolve_columns(headers: List[str]) -> Tuple[int, int]:
    """Return (postcode_index, polar4_index) for a header row."""
    names = [_clean(h.lstrip("\ufeff")).lower() for h in headers]

    postcode_index = next((i for i, h in enumerate(names) if h == POSTCODE_COLUMN), -1)
    polar4_index = next(
        (i for i, h in enumerate(names) if h == POLAR4_COLUMN or POLAR4_COLUMN_FRAGMENT in h),
        -1,
    )

    if postcode_index == -1 or polar4_index == -1:
        raise LoadError(
            "Could not find required columns (Postcode, POLAR4_quintile). "
            f"Found headers: {names}"
        )
    return postcode_index, polar4_index


def parse_quintile(value: str) -> Optional[int]:
    try:
        quintile = int(_clean(value))
    except ValueError:
        return None
    return quintile if quintile in VALID_QUINTILES else None


def iter_rows(source: Source) -> Iterator[List[str]]:
    """
    Lazily yield raw CSV rows, header first.

    The iterator is finite and single-use: the file is closed once it is
    exhausted.
    """
    path = Path(source)
    if not path.is_file():
        raise LoadError(f"CSV file not found: {path}")

    try:
        encoding = detect_encoding(path)
        with open(path, "r", encoding=encoding, newline="") as fh:
            for row in csv.reader(fh):
                yield row
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise LoadError(f"Could not read CSV file {path}: {exc}") from exc


class LoadStats:
    def __init__(self):
        self.rows = 0
        self.skipped = 0

    @property
    def accepted(self) -> int:
        return self.rows - self.skipped


def iter_records(source: Source, stats: Optional[LoadStats] = None) -> Iterator[PostcodeRecord]:
    """Yield one PostcodeRecord per acceptable data row, in file order."""
    stats = stats if stats is not None else LoadStats()
    rows = iter_rows(source)

    header = next(rows, None)
    if header is None:
        raise LoadError(f"CSV file is empty: {source}")
    postcode_index, polar4_index = resolve_columns(header)
    width = max(postcode_index, polar4_index)

    for row in rows:
        stats.rows += 1
        if len(row) <= width:
            stats.skipped += 1
            continue

        display = _clean(row[postcode_index])
        quintile = parse_quintile(row[polar4_index])
        if not display or quintile is None or not is_valid_postcode(display):
            stats.skipped += 1
            continue

        yield PostcodeRecord(normalize_postcode(display), display, quintile)


def load_table(source: Source) -> InMemoryTable:
    """
    Build the lookup table from a CSV file.

    Either the whole file is loaded or LoadError is raised; a partially
    read table is never returned.
    """
    logger.info("Loading CSV from: %s", source)
    stats = LoadStats()
    records: Dict[str, PostcodeRecord] = {}

    for record in iter_records(source, stats):
        records[record.canonical_key] = record

    table = InMemoryTable(records)
    logger.info(
        "Loaded %d postcodes from CSV (%d rows read, %d skipped)",
        len(table), stats.rows, stats.skipped,
    )
    return table
