"""Normalization functions for member roster CSV ingestion.

All functions accept str | None.  Unlike lookups against the store, roster
fields are stored as empty strings rather than NULL, so the text helpers
return "" where a missing value is meaningful to the record.
"""

from __future__ import annotations

import re

_JSONP_NAME_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


# ---------------------------------------------------------------------------
# Rule 1: trim
# ---------------------------------------------------------------------------

def trim(value: str | None) -> str | None:
    """Strip leading/trailing whitespace; treat empty string as None."""
    if value is None:
        return None
    v = value.strip()
    return v if v else None


# ---------------------------------------------------------------------------
# Rule 2: clean_text
# ---------------------------------------------------------------------------

def clean_text(value: str | None) -> str:
    """Trim a roster field, returning "" for missing or blank values."""
    return trim(value) or ""


# ---------------------------------------------------------------------------
# Rule 3: normalize_callsign  (primary key)
# ---------------------------------------------------------------------------

def normalize_callsign(value: str | None) -> str | None:
    """Uppercase and trim a callsign.  Blank → None.

    The result is the store's primary key, so " w1abc " and "W1ABC" map to
    the same member.
    """
    v = trim(value)
    if v is None:
        return None
    return v.upper()


# ---------------------------------------------------------------------------
# Rule 4: parse_int
# ---------------------------------------------------------------------------

# Optional sign, ASCII digits only.
_PLAIN_INT_RE = re.compile(r"^[+-]?[0-9]+\Z")


def parse_int(value: str | None) -> int | None:
    """Parse a base-10 integer after trimming, returning None on failure.

    Blank input is a failure too: QTREXP/YEAREXP columns that are present
    but empty are reported, not silently zeroed.
    """
    v = trim(value)
    if v is None:
        return None
    if not _PLAIN_INT_RE.match(v):
        return None
    return int(v, 10)


# ---------------------------------------------------------------------------
# Rule 5: normalize_format
# ---------------------------------------------------------------------------

def normalize_format(value: str | None) -> str:
    """Lowercase an output-format flag; anything other than json means html."""
    v = (trim(value) or "").lower()
    return "json" if v == "json" else "html"


def is_valid_jsonp_name(value: str | None) -> bool:
    """Return True for a dotted JavaScript identifier such as 'cb' or 'app.render'."""
    if not value:
        return False
    return bool(_JSONP_NAME_RE.match(value))
