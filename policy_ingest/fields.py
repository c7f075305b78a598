"""Policy Ingest - Field parsing.

Converts raw cell text into stored values. Parsing never raises for bad
input: an unparseable date degrades to None.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from dateutil import parser as dtparse

# Fallback patterns, tried in order after the general parse. Each entry is
# (pattern, group index of year, month, day).
_DATE_PATTERNS: tuple[tuple[re.Pattern[str], tuple[int, int, int]], ...] = (
    (re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})"), (3, 1, 2)),  # MM/DD/YYYY
    (re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})"), (1, 2, 3)),  # YYYY-MM-DD
    (re.compile(r"(\d{1,2})-(\d{1,2})-(\d{4})"), (3, 1, 2)),  # MM-DD-YYYY
)

# Fills the parts a partial date ("March 2024") leaves out
_PARSE_DEFAULT = datetime(1900, 1, 1)


def clean(value: object) -> str:
    """Return value as trimmed text; None becomes the empty string."""
    if value is None:
        return ""
    return str(value).strip()


def parse_date(raw: str | None) -> date | None:
    """Parse a date cell.

    Tries a general calendar parse of the whole string first, then the
    MM/DD/YYYY, YYYY-MM-DD and MM-DD-YYYY patterns. The first pattern that
    matches decides the result.

    Partial dates take their missing parts from 1900-01-01, so "March 2024"
    is always 2024-03-01.

    Args:
        raw: Raw cell text.

    Returns:
        The parsed date, or None for blank or unrecognised input.
    """
    text = clean(raw)
    if not text:
        return None

    try:
        return dtparse.parse(text, default=_PARSE_DEFAULT).date()
    except (ValueError, OverflowError):
        pass

    for pattern, (year_idx, month_idx, day_idx) in _DATE_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        try:
            return date(
                int(match.group(year_idx)),
                int(match.group(month_idx)),
                int(match.group(day_idx)),
            )
        except ValueError:
            return None

    return None
