"""Unit tests for the lookup responder."""

from __future__ import annotations

import json

import pytest

from callsign_directory.lookup import (
    HTML_MEDIA_TYPE,
    JSON_MEDIA_TYPE,
    JSONP_MEDIA_TYPE,
    NOT_FOUND_PAGE,
    InvalidCallbackError,
    respond,
)
from callsign_directory.members import Member
from callsign_directory.store import InMemoryMemberStore

W1ABC = Member(
    callsign="W1ABC",
    last_name="Doe",
    name="John Doe",
    street="1 Main St",
    city="Springfield",
    state="MA",
    zip="01101",
    date_joined="2001-05-01",
    quarter_expiring=4,
    year_expiring=2024,
)


@pytest.fixture
def directory():
    return InMemoryMemberStore([W1ABC])


class TestHtml:
    def test_found(self, directory):
        resp = respond(directory, "w1abc")
        assert resp.found is True
        assert resp.media_type == HTML_MEDIA_TYPE
        assert "<h3>W1ABC</h3>" in resp.body
        assert "Springfield, MA 01101" in resp.body
        assert "Expires: Q4 2024" in resp.body

    def test_not_found(self, directory):
        resp = respond(directory, "N0NE", "html")
        assert resp.found is False
        assert resp.body == NOT_FOUND_PAGE

    def test_blank_callsign_not_found(self, directory):
        assert respond(directory, "   ").body == NOT_FOUND_PAGE

    def test_fields_escaped(self):
        directory = InMemoryMemberStore([Member(callsign="W1ABC", name="<script>x</script>")])
        body = respond(directory, "W1ABC").body
        assert "<script>" not in body
        assert "&lt;script&gt;" in body


class TestJson:
    def test_found_round_trip(self, directory):
        resp = respond(directory, " w1abc ", "JSON")
        assert resp.media_type == JSON_MEDIA_TYPE
        assert Member.from_json_dict(json.loads(resp.body)) == W1ABC

    def test_not_found_is_zero_record(self, directory):
        resp = respond(directory, "N0NE", "json")
        assert resp.found is False
        data = json.loads(resp.body)
        assert data["Callsign"] == ""
        assert data["YearExpiring"] == 0

    def test_jsonp_wraps_body(self, directory):
        resp = respond(directory, "W1ABC", "json", "handleMember")
        assert resp.media_type == JSONP_MEDIA_TYPE
        assert resp.body.startswith("handleMember({")
        assert resp.body.endswith("});")
        inner = resp.body[len("handleMember("):-2]
        assert json.loads(inner)["Name"] == "John Doe"

    def test_jsonp_rejects_script(self, directory):
        with pytest.raises(InvalidCallbackError):
            respond(directory, "W1ABC", "json", "alert(document.cookie)//")

    def test_jsonp_ignored_for_html(self, directory):
        resp = respond(directory, "W1ABC", "html", "not a name")
        assert resp.media_type == HTML_MEDIA_TYPE
