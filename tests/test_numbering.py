"""Tests for topic and goal number allocation."""

from practice_journal.topics.numbering import (
    format_goal_number,
    next_goal_sub_number,
    next_number,
    next_topic_number,
    parse_sub_number,
)


def test_next_topic_number_starts_at_one():
    assert next_topic_number(None) == 1


def test_next_topic_number_is_max_plus_one():
    assert next_topic_number(7) == 8


def test_next_goal_sub_number_uses_max_not_count():
    """Goals 3.1, 3.2 and 3.4 exist: the next one is 3.5."""
    assert next_goal_sub_number(["3.1", "3.2", "3.4"]) == 5


def test_next_goal_sub_number_empty_topic():
    assert next_goal_sub_number([]) == 1


def test_next_goal_sub_number_ignores_malformed_numbers():
    assert next_goal_sub_number(["2.1", "garbage", "2.x", ""]) == 2


def test_sub_numbers_compare_numerically():
    assert next_goal_sub_number(["1.9", "1.10"]) == 11


def test_parse_sub_number():
    assert parse_sub_number("12.3") == 3
    assert parse_sub_number("12") is None
    assert parse_sub_number(None) is None


def test_next_number_skips_none():
    assert next_number([None, 4, None, 2]) == 5


def test_format_goal_number():
    assert format_goal_number(3, 5) == "3.5"
