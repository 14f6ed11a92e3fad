"""
Leitner box policy.

Five boxes with increasing review intervals:
- Box 1: review in 1 day (struggling)
- Box 2: review in 3 days
- Box 3: review in 7 days
- Box 4: review in 14 days
- Box 5: review in 30 days (mastered)

The table is fixed. Out-of-range levels are clamped, never rejected.
"""

from __future__ import annotations

from datetime import date, timedelta

MIN_BOX = 1
MAX_BOX = 5

BOX_INTERVALS: dict[int, int] = {
    1: 1,
    2: 3,
    3: 7,
    4: 14,
    5: 30,
}


def clamp_box(level: int) -> int:
    """Clamp any computed level into [MIN_BOX, MAX_BOX]."""
    return max(MIN_BOX, min(MAX_BOX, int(level)))


def interval_for_box(level: int) -> int:
    """
    Review interval in days for a box level.

    Args:
        level: Box level (clamped into 1-5)

    Returns:
        Interval in days
    """
    return BOX_INTERVALS[clamp_box(level)]


def next_review_date(level: int, reviewed_on: date) -> date:
    """Calendar date on which an item reviewed on ``reviewed_on`` at ``level`` becomes due."""
    return reviewed_on + timedelta(days=interval_for_box(level))
