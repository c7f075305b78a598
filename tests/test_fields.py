"""Tests for policy_ingest.fields (cell cleaning and date parsing)."""

from datetime import date

import pytest

from policy_ingest.fields import clean, parse_date


class TestClean:
    """Tests for clean()."""

    def test_trims_whitespace(self):
        assert clean("  Alex Watts \t") == "Alex Watts"

    def test_none_is_empty(self):
        assert clean(None) == ""

    def test_non_string_is_rendered(self):
        assert clean(29702) == "29702"


class TestParseDate:
    """Tests for parse_date()."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("03/15/2024", date(2024, 3, 15)),
            ("2024-03-15", date(2024, 3, 15)),
            ("March 15, 2024", date(2024, 3, 15)),
            ("  11/02/2018  ", date(2018, 11, 2)),
        ],
    )
    def test_general_parse(self, raw, expected):
        """Common calendar formats parse directly."""
        assert parse_date(raw) == expected

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("March 2024", date(2024, 3, 1)),
            ("May 1990", date(1990, 5, 1)),
        ],
    )
    def test_partial_date_is_stable(self, raw, expected):
        """Missing day or month resolve to the first, not to the current date."""
        assert parse_date(raw) == expected

    def test_us_date_through_fallback_pattern(self):
        """A MM/DD/YYYY date embedded in other text is found by the fallback."""
        assert parse_date("Effective 03/15/2024 (renewal)") == date(2024, 3, 15)

    def test_iso_fallback_uses_year_month_day_order(self):
        """The YYYY-MM-DD fallback maps groups to year, month, day."""
        assert parse_date("Renewed on 2019-11-02 by agent") == date(2019, 11, 2)

    def test_dashed_us_fallback(self):
        assert parse_date("Starts 11-02-2019 sharp") == date(2019, 11, 2)

    def test_unparseable_is_none(self):
        """Garbage degrades to None instead of raising."""
        assert parse_date("not-a-date") is None

    def test_first_matching_pattern_decides(self):
        """An impossible date in the first matching pattern yields None."""
        assert parse_date("Due 2024-13-45 or later") is None

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_is_none(self, raw):
        assert parse_date(raw) is None
