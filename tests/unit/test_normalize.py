"""Unit tests for callsign_directory.normalize."""

from callsign_directory.normalize import (
    clean_text,
    is_valid_jsonp_name,
    normalize_callsign,
    normalize_format,
    parse_int,
    trim,
)


# ---------------------------------------------------------------------------
# trim / clean_text
# ---------------------------------------------------------------------------

class TestTrim:
    def test_strips_whitespace(self):
        assert trim("  hello  ") == "hello"

    def test_empty_string_returns_none(self):
        assert trim("") is None

    def test_whitespace_only_returns_none(self):
        assert trim("   ") is None

    def test_none_returns_none(self):
        assert trim(None) is None


class TestCleanText:
    def test_strips(self):
        assert clean_text("  Springfield ") == "Springfield"

    def test_blank_is_empty_string(self):
        assert clean_text("   ") == ""

    def test_none_is_empty_string(self):
        assert clean_text(None) == ""

    def test_keeps_internal_spacing(self):
        assert clean_text(" 12  Main St ") == "12  Main St"


# ---------------------------------------------------------------------------
# normalize_callsign
# ---------------------------------------------------------------------------

class TestNormalizeCallsign:
    def test_uppercases(self):
        assert normalize_callsign("w1abc") == "W1ABC"

    def test_trims(self):
        assert normalize_callsign("  k2xyz\t") == "K2XYZ"

    def test_blank_is_none(self):
        assert normalize_callsign("  ") is None

    def test_none(self):
        assert normalize_callsign(None) is None

    def test_portable_suffix_kept(self):
        assert normalize_callsign("w1abc/p") == "W1ABC/P"


# ---------------------------------------------------------------------------
# parse_int
# ---------------------------------------------------------------------------

class TestParseInt:
    def test_plain(self):
        assert parse_int("4") == 4

    def test_surrounding_whitespace(self):
        assert parse_int(" 2024 ") == 2024

    def test_negative(self):
        assert parse_int("-1") == -1

    def test_blank_is_none(self):
        assert parse_int("") is None

    def test_none(self):
        assert parse_int(None) is None

    def test_non_numeric(self):
        assert parse_int("Q4") is None

    def test_float_string(self):
        assert parse_int("4.0") is None

    def test_leading_plus(self):
        assert parse_int("+4") == 4

    def test_digit_separator_rejected(self):
        assert parse_int("2_024") is None

    def test_non_ascii_digits_rejected(self):
        assert parse_int("\u0662\u0660\u0662\u0664") is None

    def test_trailing_newline_rejected(self):
        assert parse_int("4\n5") is None


# ---------------------------------------------------------------------------
# normalize_format / is_valid_jsonp_name
# ---------------------------------------------------------------------------

class TestNormalizeFormat:
    def test_json_any_case(self):
        assert normalize_format("JSON") == "json"

    def test_default_html(self):
        assert normalize_format(None) == "html"

    def test_unknown_is_html(self):
        assert normalize_format("xml") == "html"


class TestJsonpName:
    def test_simple(self):
        assert is_valid_jsonp_name("cb") is True

    def test_dotted(self):
        assert is_valid_jsonp_name("app.render_member") is True

    def test_dollar(self):
        assert is_valid_jsonp_name("$cb") is True

    def test_script_injection(self):
        assert is_valid_jsonp_name("alert(1);cb") is False

    def test_leading_digit(self):
        assert is_valid_jsonp_name("1cb") is False

    def test_empty(self):
        assert is_valid_jsonp_name("") is False
