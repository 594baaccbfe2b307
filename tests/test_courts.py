"""Court label parsing and the stable court numbering used by matches."""
import pytest

from leaguenight.services.errors import InvalidCourts
from leaguenight.utils.courts import (
    number_courts,
    parse_court_labels,
    renumber_courts,
    validate_court_labels,
)


def test_parse_court_labels_string_comma_separated():
    """'1,5,6' parses to ['1','5','6'] (no list('1,5,6') corruption)."""
    assert parse_court_labels("1,5,6") == ["1", "5", "6"]


def test_parse_court_labels_list_unchanged():
    assert parse_court_labels(["1", "5", "6"]) == ["1", "5", "6"]


def test_parse_court_labels_none_or_empty():
    assert parse_court_labels(None) == []
    assert parse_court_labels("") == []
    assert parse_court_labels("   ") == []


def test_parse_court_labels_list_coerces_to_str():
    assert parse_court_labels([1, " 5 ", 6]) == ["1", "5", "6"]


def test_validate_rejects_empty():
    with pytest.raises(InvalidCourts, match="At least one"):
        validate_court_labels([])


def test_validate_rejects_blank_label():
    with pytest.raises(InvalidCourts, match="blank"):
        validate_court_labels(["1", "  "])


def test_validate_rejects_case_insensitive_duplicates():
    with pytest.raises(InvalidCourts, match="Duplicate court label: a"):
        validate_court_labels(["A", "a"])


def test_validate_accepts_string_input():
    assert validate_court_labels("Center, 2") == ["Center", "2"]


def test_number_courts():
    assert number_courts(["A", "B"]) == [{"number": 1, "label": "A"}, {"number": 2, "label": "B"}]


def test_renumber_keeps_surviving_numbers():
    existing = number_courts(["1", "2", "3"])
    assert renumber_courts(existing, ["3", "1"]) == [{"number": 3, "label": "3"}, {"number": 1, "label": "1"}]


def test_renumber_never_reuses_reserved_numbers():
    existing = [{"number": 1, "label": "1"}]
    # Court 2 was removed but a match on it is still in the history
    courts = renumber_courts(existing, ["1", "Show Court"], reserved={2})
    assert courts == [{"number": 1, "label": "1"}, {"number": 3, "label": "Show Court"}]
