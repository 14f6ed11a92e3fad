"""
Core types for the Leitner review scheduler.
"""

from .box_policy import BOX_INTERVALS, MAX_BOX, MIN_BOX, clamp_box, interval_for_box, next_review_date
from .dates import Clock, ensure_utc, utc_date, utc_now, utc_today
from .exceptions import (
    ItemNotFoundError,
    LeitnerError,
    RepositoryError,
    ReviewValidationError,
    WriteConflictError,
)
from .modes import ItemType, ItemTypeFilter, StudyMode
from .records import AnswerLogEntry, ProgressRecord, ReviewableItem, ReviewItem

__all__ = [
    # Box policy
    "BOX_INTERVALS",
    "MIN_BOX",
    "MAX_BOX",
    "clamp_box",
    "interval_for_box",
    "next_review_date",
    # Dates
    "Clock",
    "ensure_utc",
    "utc_date",
    "utc_now",
    "utc_today",
    # Errors
    "LeitnerError",
    "ReviewValidationError",
    "ItemNotFoundError",
    "RepositoryError",
    "WriteConflictError",
    # Modes
    "StudyMode",
    "ItemType",
    "ItemTypeFilter",
    # Records
    "ProgressRecord",
    "ReviewableItem",
    "ReviewItem",
    "AnswerLogEntry",
]
