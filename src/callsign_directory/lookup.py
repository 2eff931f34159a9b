"""callsign_directory.lookup

Single-callsign lookup rendered as HTML, JSON or JSONP.  Read-only.
"""

from __future__ import annotations

import html
import json
from dataclasses import dataclass

from callsign_directory.members import Member
from callsign_directory.normalize import is_valid_jsonp_name, normalize_callsign, normalize_format, trim
from callsign_directory.store import MemberStore

ROOT_PAGE = """<html>
  <body>
    <form action="/lookup" method="get">
      <div>Callsign: <input type="text" name="callsign"></div>
      <div><input type="submit" value="Lookup"></div>
    </form>
  </body>
</html>
"""

LOOKUP_PAGE = """<html>
  <body>
    <h3>{callsign}</h3>
    <div>{name}</div>
    <div>{street}</div>
    <div>{city}, {state} {zip}</div>
    <div>Joined: {date_joined}</div>
    <div>Expires: Q{quarter_expiring} {year_expiring}</div>
  </body>
</html>
"""

NOT_FOUND_PAGE = """<html>
  <body>
    <div>Not Found.</div>
  </body>
</html>
"""

HTML_MEDIA_TYPE = "text/html; charset=utf-8"
JSON_MEDIA_TYPE = "application/json"
JSONP_MEDIA_TYPE = "application/javascript"


class InvalidCallbackError(ValueError):
    """Raised when a JSONP callback name is not a plain JavaScript identifier."""


@dataclass
class LookupResponse:
    body: str
    media_type: str
    found: bool


def find_member(store: MemberStore, callsign: str | None) -> Member | None:
    key = normalize_callsign(callsign)
    if key is None:
        return None
    return store.get(key)


def render_member_html(member: Member) -> str:
    return LOOKUP_PAGE.format(
        callsign=html.escape(member.callsign),
        name=html.escape(member.name),
        street=html.escape(member.street),
        city=html.escape(member.city),
        state=html.escape(member.state),
        zip=html.escape(member.zip),
        date_joined=html.escape(member.date_joined),
        quarter_expiring=member.quarter_expiring,
        year_expiring=member.year_expiring,
    )


def encode_member_json(member: Member) -> str:
    return json.dumps(member.to_json_dict(), separators=(",", ":"))


def respond(
    store: MemberStore,
    callsign: str | None,
    output_format: str | None = None,
    jsonp: str | None = None,
) -> LookupResponse:
    """Look up one callsign and render it.

    A missing member renders the "Not Found." page for HTML.  For JSON it
    encodes a zero-valued Member, as existing clients expect; `found` lets
    the caller expose the difference out of band.
    """
    fmt = normalize_format(output_format)
    callback = trim(jsonp)
    if fmt == "json" and callback is not None and not is_valid_jsonp_name(callback):
        raise InvalidCallbackError(f"invalid JSONP callback name: {callback!r}")

    member = find_member(store, callsign)
    found = member is not None

    if fmt != "json":
        if member is None:
            return LookupResponse(NOT_FOUND_PAGE, HTML_MEDIA_TYPE, found=False)
        return LookupResponse(render_member_html(member), HTML_MEDIA_TYPE, found=True)

    body = encode_member_json(member if member is not None else Member())
    if callback is not None:
        return LookupResponse(f"{callback}({body});", JSONP_MEDIA_TYPE, found=found)
    return LookupResponse(body, JSON_MEDIA_TYPE, found=found)
