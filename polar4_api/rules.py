"""
Fixed lookup rules.

Kept in one place so the server, the edge handler and the ingestion tool
agree on what a valid key and a valid quintile are.
"""

import re

CANONICAL_POSTCODE_RE = re.compile(r"^[A-Z0-9]{5,8}$")
WHITESPACE_RE = re.compile(r"\s+")

RAW_MIN_LENGTH = 5
RAW_MAX_LENGTH = 10

VALID_QUINTILES = (1, 2, 3, 4, 5)

POLAR_DESCRIPTIONS = {
    1: "Quintile 1 - Areas with lowest young participation in higher education (most disadvantaged)",
    2: "Quintile 2 - Areas with low young participation in higher education",
    3: "Quintile 3 - Areas with medium young participation in higher education",
    4: "Quintile 4 - Areas with high young participation in higher education",
    5: "Quintile 5 - Areas with highest young participation in higher education (most advantaged)",
}
UNKNOWN_QUINTILE = "Unknown quintile"

POSTCODE_COLUMN = "postcode"
POLAR4_COLUMN = "polar4_quintile"
POLAR4_COLUMN_FRAGMENT = "polar4"

SQL_TABLE = "postcodes"
SQL_BATCH_SIZE = 500


def describe_quintile(quintile) -> str:
    return POLAR_DESCRIPTIONS.get(quintile, UNKNOWN_QUINTILE)
