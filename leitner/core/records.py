"""
Record types shared by the scheduler and its storage collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from .box_policy import MIN_BOX
from .dates import utc_now
from .modes import ItemType

# =============================================================================
# Progress
# =============================================================================


@dataclass
class ProgressRecord:
    """Leitner progress of one learner on one reviewable item."""

    user_id: str
    item_id: str
    box_level: int = MIN_BOX
    next_review_date: date | None = None
    times_correct: int = 0
    times_incorrect: int = 0
    last_reviewed_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)

    # Storage bookkeeping
    id: int | None = None
    version: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_id, self.item_id)

    @property
    def is_new(self) -> bool:
        """Never reviewed."""
        return self.last_reviewed_at is None

    @property
    def total_attempts(self) -> int:
        return self.times_correct + self.times_incorrect

    @property
    def accuracy(self) -> float:
        """Percentage of correct answers (0 when never answered)."""
        if self.total_attempts == 0:
            return 0.0
        return self.times_correct * 100.0 / self.total_attempts

    def is_due(self, today: date) -> bool:
        """Scheduled on or before ``today``. Unscheduled records are not due."""
        if self.next_review_date is None:
            return False
        return self.next_review_date <= today

    def days_overdue(self, today: date) -> int:
        """Days past the scheduled review date."""
        if self.next_review_date is None:
            return 0
        return max(0, (today - self.next_review_date).days)


# =============================================================================
# Content library
# =============================================================================


@dataclass
class ReviewableItem:
    """A question or flashcard in a learner's content library."""

    item_id: str
    user_id: str
    item_type: ItemType = ItemType.QUESTION
    study_set_id: int | None = None
    content: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass
class ReviewItem:
    """A reviewable item joined with the learner's progress (None for new items)."""

    item: ReviewableItem
    progress: ProgressRecord | None = None

    @property
    def item_id(self) -> str:
        return self.item.item_id

    @property
    def is_new(self) -> bool:
        return self.progress is None

    @property
    def box_level(self) -> int:
        return self.progress.box_level if self.progress else MIN_BOX

    @property
    def next_review_date(self) -> date | None:
        return self.progress.next_review_date if self.progress else None


# =============================================================================
# Answer log
# =============================================================================


@dataclass(frozen=True)
class AnswerLogEntry:
    """A single answer submission, kept for auditing."""

    user_id: str
    item_id: str
    is_correct: bool
    answered_at: datetime
