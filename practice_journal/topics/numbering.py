"""
Hierarchical numbering for topics and goals.

Topics are numbered 1, 2, 3, ... per owner; goals are numbered
"{topic_number}.{sub}" with sub = 1, 2, 3, ... within their topic. The
next number is always max(existing) + 1, never count + 1, so gaps left by
deletions are not reused.

These functions only allocate. The caller inserts the row in the same
creation step; nothing here reserves the number, and the unique indexes on
(user_id, topic_number) and (topic_id, goal_number) reject a number that a
concurrent creation already took.
"""

from typing import Iterable, Optional


def next_number(existing: Iterable[Optional[int]]) -> int:
    """Return max(existing) + 1, or 1 if there are none."""
    numbers = [n for n in existing if n is not None]
    return max(numbers) + 1 if numbers else 1


def next_topic_number(current_max: Optional[int]) -> int:
    """
    Next topic number given the owner's highest existing one.

    Args:
        current_max: MAX(topic_number) for the owner, None if no topics
    """
    return next_number([current_max])


def parse_sub_number(goal_number: Optional[str]) -> Optional[int]:
    """
    Extract the sub-number from "3.4" -> 4.

    Returns None for a malformed goal number.
    """
    if not goal_number:
        return None
    _, sep, sub = goal_number.partition(".")
    if not sep:
        return None
    try:
        return int(sub)
    except ValueError:
        return None


def next_goal_sub_number(goal_numbers: Iterable[str]) -> int:
    """
    Next sub-number for a topic given its already-loaded goal numbers.

    >>> next_goal_sub_number(["3.1", "3.2", "3.4"])
    5
    """
    return next_number(parse_sub_number(n) for n in goal_numbers)


def format_goal_number(topic_number: int, sub: int) -> str:
    """Format a goal number as "{topic_number}.{sub}"."""
    return f"{topic_number}.{sub}"
