"""callsign_directory.members

Member record schema and the CSV column resolver.

Roster exports do not have a fixed column order, so every upload builds a
column map from its header row and reads each data row by offset.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

from callsign_directory.normalize import clean_text, normalize_callsign, parse_int
from callsign_directory.shared import ParseError

# ---------------------------------------------------------------------------
# Recognized header tokens
# ---------------------------------------------------------------------------

CALL_HEADER = "CALL"
LAST_NAME_HEADER = "LASTNAME"
NAME_HEADER = "NAME"
STREET_HEADER = "STREET"
CITY_HEADER = "CITY"
STATE_HEADER = "STATE"
ZIP_HEADER = "ZIP"
HOME_PHONE_HEADER = "HOMEPHONE"
LEAGUE_HEADER = "LEAGUE"
HOME_REPEATER_HEADER = "HOMERPT"
DATE_JOINED_HEADER = "DATEJOIN"
MEMBER_TYPE_HEADER = "MEMTYPE"
STATUS_HEADER = "STATUS"
QUARTER_EXPIRING_HEADER = "QTREXP"
YEAR_EXPIRING_HEADER = "YEAREXP"
EMAIL_HEADER = "EMAIL"

# HOMEPHONE and EMAIL are recognized so they never trip "unknown column"
# handling, but Member does not store them.
RECOGNIZED_HEADERS = (
    CALL_HEADER,
    LAST_NAME_HEADER,
    NAME_HEADER,
    STREET_HEADER,
    CITY_HEADER,
    STATE_HEADER,
    ZIP_HEADER,
    HOME_PHONE_HEADER,
    LEAGUE_HEADER,
    HOME_REPEATER_HEADER,
    DATE_JOINED_HEADER,
    MEMBER_TYPE_HEADER,
    STATUS_HEADER,
    QUARTER_EXPIRING_HEADER,
    YEAR_EXPIRING_HEADER,
    EMAIL_HEADER,
)

# Member attribute ← header token, for the plain text fields.
TEXT_FIELDS: dict[str, str] = {
    "last_name": LAST_NAME_HEADER,
    "name": NAME_HEADER,
    "street": STREET_HEADER,
    "city": CITY_HEADER,
    "state": STATE_HEADER,
    "zip": ZIP_HEADER,
    "league": LEAGUE_HEADER,
    "home_repeater": HOME_REPEATER_HEADER,
    "date_joined": DATE_JOINED_HEADER,
    "member_type": MEMBER_TYPE_HEADER,
    "status": STATUS_HEADER,
}

# Member attribute → JSON field name.
JSON_FIELD_NAMES: dict[str, str] = {
    "callsign": "Callsign",
    "last_name": "LastName",
    "name": "Name",
    "street": "Street",
    "city": "City",
    "state": "State",
    "zip": "Zip",
    "league": "League",
    "home_repeater": "HomeRepeater",
    "date_joined": "DateJoined",
    "member_type": "MemberType",
    "status": "Status",
    "quarter_expiring": "QuarterExpiring",
    "year_expiring": "YearExpiring",
}


# ---------------------------------------------------------------------------
# Member
# ---------------------------------------------------------------------------

@dataclass
class Member:
    callsign: str = ""
    last_name: str = ""
    name: str = ""
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    league: str = ""
    home_repeater: str = ""
    date_joined: str = ""
    member_type: str = ""
    status: str = ""
    quarter_expiring: int = 0
    year_expiring: int = 0

    def to_json_dict(self) -> dict[str, Any]:
        return {JSON_FIELD_NAMES[k]: v for k, v in asdict(self).items()}

    @classmethod
    def from_json_dict(cls, data: dict[str, Any]) -> "Member":
        by_json = {v: k for k, v in JSON_FIELD_NAMES.items()}
        return cls(**{by_json[k]: v for k, v in data.items() if k in by_json})


MEMBER_COLUMNS = tuple(f.name for f in fields(Member))


@dataclass
class ParsedRow:
    """A Member built from one CSV row plus any non-fatal diagnostics."""

    member: Member
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Column resolver
# ---------------------------------------------------------------------------

def build_column_map(header: list[str]) -> dict[str, int]:
    """Map each recognized header token to its zero-based column offset.

    Header cells are stripped and compared case-insensitively.  Unknown
    headers are ignored, absent ones simply get no entry, and if a token
    repeats the first occurrence wins.
    """
    recognized = set(RECOGNIZED_HEADERS)
    columns: dict[str, int] = {}
    for idx, heading in enumerate(header):
        token = heading.strip().upper()
        if token in recognized and token not in columns:
            columns[token] = idx
    return columns


def missing_columns(columns: dict[str, int]) -> list[str]:
    """Return recognized tokens that the header row did not contain."""
    return [h for h in RECOGNIZED_HEADERS if h not in columns]


def _cell(row: list[str], columns: dict[str, int], header: str) -> str | None:
    """Return the raw cell for a header token.

    Unmapped → None.  Mapped but past the end of a short row → ParseError.
    """
    idx = columns.get(header)
    if idx is None:
        return None
    if idx >= len(row):
        raise ParseError(
            f"row has {len(row)} fields; column {header} is at offset {idx}"
        )
    return row[idx]


def _expiration(
    row: list[str],
    columns: dict[str, int],
    header: str,
    label: str,
    callsign: str,
    warnings: list[str],
) -> int:
    raw = _cell(row, columns, header)
    if raw is None:
        return 0
    value = parse_int(raw)
    if value is None:
        warnings.append(f"Cannot parse {callsign}'s {label} as a number: {raw!r}")
        return 0
    return value


def parse_member_row(row: list[str], columns: dict[str, int]) -> ParsedRow:
    """Normalize one data row into a Member.

    Raises ParseError when the row has no usable callsign or is too short
    for a mapped column.  Unparseable expiration fields are reported as
    warnings and read as 0.
    """
    if CALL_HEADER not in columns:
        raise ParseError("no CALL column in header")
    callsign = normalize_callsign(_cell(row, columns, CALL_HEADER))
    if callsign is None:
        raise ParseError("empty callsign")

    member = Member(callsign=callsign)
    for attr, header in TEXT_FIELDS.items():
        setattr(member, attr, clean_text(_cell(row, columns, header)))

    warnings: list[str] = []
    member.quarter_expiring = _expiration(
        row, columns, QUARTER_EXPIRING_HEADER, "Quarter Expiring", callsign, warnings,
    )
    member.year_expiring = _expiration(
        row, columns, YEAR_EXPIRING_HEADER, "Year Expiring", callsign, warnings,
    )
    return ParsedRow(member=member, warnings=warnings)
