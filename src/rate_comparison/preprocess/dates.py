from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any

import pandas as pd

# Source sheets mix `MM/DD/YYYY` and ISO `YYYY-MM-DD` (sometimes with a time suffix).
US_DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
ISO_DATE_PATTERN = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ][0-9:.+\-Z]*)?$")


def date_parts(value: Any) -> tuple[int, int, int] | None:
    """Decompose an effective date into ``(year, month, day)`` integers.

    Strings matching neither supported layout return ``None``; no locale-aware
    parser is consulted.
    """
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        return (value.year, value.month, value.day)
    if isinstance(value, (date, datetime)):
        return (value.year, value.month, value.day)
    if isinstance(value, float) and pd.isna(value):
        return None

    text = str(value).strip()
    us_match = US_DATE_PATTERN.match(text)
    if us_match:
        month, day, year = (int(part) for part in us_match.groups())
        return (year, month, day)
    iso_match = ISO_DATE_PATTERN.match(text)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        return (year, month, day)
    return None


def parse_effective_date(value: Any) -> date | None:
    parts = date_parts(value)
    if parts is None:
        return None
    try:
        return date(*parts)
    except ValueError:
        return None


def add_effective_date(df: pd.DataFrame, column: str = "rate_effective_date") -> pd.DataFrame:
    working = df.copy()
    working["effective_date"] = working[column].map(parse_effective_date)
    working["effective_ordinal"] = pd.to_numeric(
        working["effective_date"].map(lambda value: value.toordinal() if value else None),
        errors="coerce",
    )
    return working
