"""
Study modes and item type filters.
"""

from __future__ import annotations

from enum import Enum


class StudyMode(str, Enum):
    """How a review batch is chosen."""

    DUE = "due"  # Previously answered, scheduled on or before today
    NEW = "new"  # In the library, never answered
    RANDOM = "random"  # Previously answered, any schedule (free practice)


class ItemType(str, Enum):
    """Kind of reviewable item."""

    QUESTION = "question"
    FLASHCARD = "flashcard"


class ItemTypeFilter(str, Enum):
    """Item type restriction for a review batch."""

    ALL = "all"
    QUESTION = "question"
    FLASHCARD = "flashcard"

    def matches(self, item_type: ItemType) -> bool:
        return self is ItemTypeFilter.ALL or self.value == item_type.value
