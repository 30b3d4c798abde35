"""
Tests for status-code range parsing.
"""

import math

import pytest

from spec_router.errors import ConfigError, InvalidRangeError
from spec_router.status_range import WILDCARD, StatusRange, parse_range, validate_code


class TestParseRange:
    """Test range token parsing"""

    def test_wildcard(self):
        result = parse_range("*")

        assert result == WILDCARD
        assert result.lower == 0
        assert result.upper == math.inf
        assert result.is_wildcard

    def test_single_code(self):
        assert parse_range("200") == StatusRange(200, 200)

    def test_range(self):
        assert parse_range("200-299") == StatusRange(200, 299)

    def test_reversed_range_is_swapped(self):
        assert parse_range("599-100") == StatusRange(100, 599)

    @pytest.mark.parametrize("token", ["100", "199", "404", "599", "100-599", "301-302"])
    def test_valid_tokens_are_ordered(self, token):
        result = parse_range(token)

        assert 100 <= result.lower <= result.upper <= 599

    @pytest.mark.parametrize(
        "token",
        ["", "20", "2000", "600", "099", "abc", "2x0", "200-", "-200", "200-300-400", "200--300"],
    )
    def test_malformed_tokens(self, token):
        with pytest.raises(InvalidRangeError):
            parse_range(token)

    def test_invalid_range_is_config_error(self):
        with pytest.raises(ConfigError) as exc_info:
            parse_range("700")

        assert "must be between 100-599" in str(exc_info.value)

    def test_validate_code(self):
        assert validate_code("418") == 418


class TestStatusRange:
    """Test range operations"""

    def test_overlaps_is_symmetric(self):
        pairs = [
            (StatusRange(200, 299), StatusRange(250, 350)),
            (StatusRange(200, 200), StatusRange(201, 201)),
            (StatusRange(100, 599), StatusRange(404, 404)),
            (WILDCARD, StatusRange(500, 500)),
        ]

        for a, b in pairs:
            assert a.overlaps(b) == b.overlaps(a)

    def test_adjacent_ranges_do_not_overlap(self):
        assert not StatusRange(200, 299).overlaps(StatusRange(300, 399))

    def test_boundaries_are_inclusive(self):
        assert StatusRange(200, 299).overlaps(StatusRange(299, 300))

        status_range = StatusRange(200, 299)
        assert status_range.contains(200)
        assert status_range.contains(299)
        assert not status_range.contains(300)

    def test_wildcard_overlaps_everything(self):
        assert WILDCARD.overlaps(StatusRange(100, 100))
        assert WILDCARD.overlaps(StatusRange(599, 599))
        assert WILDCARD.contains(999)

    def test_str(self):
        assert str(parse_range("*")) == "*"
        assert str(parse_range("204")) == "204"
        assert str(parse_range("500-503")) == "500-503"

    def test_is_immutable(self):
        status_range = parse_range("200")

        with pytest.raises(Exception):
            status_range.lower = 100
