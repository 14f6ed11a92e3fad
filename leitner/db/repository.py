"""
Storage collaborator interfaces.

The scheduler only talks to storage through these two interfaces, so any
backend (relational table, document store, in-memory map) can sit behind it.

Ordering contracts every implementation must honour:
- find_progress_due / find_due_review_items: next_review_date ASC, box_level ASC, item_id ASC
- find_unanswered_items / find_items_by_user: created_at ASC, item_id ASC

Every method raises RepositoryError (never a backend-specific error) when
the backend fails.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from datetime import date, datetime

from ..core.modes import ItemTypeFilter
from ..core.records import AnswerLogEntry, ProgressRecord, ReviewableItem, ReviewItem

ProgressCompute = Callable[[ProgressRecord | None], ProgressRecord]


class ReviewRepository(ABC):
    """
    Progress and content-library storage.

    Subclasses must make update_progress_atomically atomic with respect to
    every other writer of the same (user_id, item_id) key.
    """

    # =========================================================================
    # Progress
    # =========================================================================

    @abstractmethod
    def find_progress(self, user_id: str, item_id: str) -> ProgressRecord | None:
        """Progress for one (user, item) pair, or None if never answered."""

    def upsert_progress(self, record: ProgressRecord) -> ProgressRecord:
        """
        Store ``record`` as the progress of its (user, item) pair.

        Unconditional replacement: whatever was stored before is discarded,
        apart from the storage id and creation timestamp.
        """
        return self.update_progress_atomically(
            record.user_id, record.item_id, lambda _existing: record
        )

    @abstractmethod
    def update_progress_atomically(
        self,
        user_id: str,
        item_id: str,
        compute: ProgressCompute,
    ) -> ProgressRecord:
        """
        Read-compute-write a progress record as one atomic step.

        ``compute`` receives the stored record (None when absent) and returns
        the full replacement. It may be called more than once if the backend
        detects a concurrent writer; it must be free of side effects.

        Returns:
            The stored record
        """

    @abstractmethod
    def insert_progress_if_absent(self, record: ProgressRecord) -> tuple[ProgressRecord, bool]:
        """
        Create progress only if none exists for the pair.

        Returns:
            (stored record, created flag)
        """

    @abstractmethod
    def find_progress_due(self, user_id: str, on_or_before: date) -> list[ProgressRecord]:
        """Scheduled records with next_review_date <= on_or_before."""

    @abstractmethod
    def find_progress_by_user(self, user_id: str) -> list[ProgressRecord]:
        """Every progress record of a learner."""

    @abstractmethod
    def count_by_box_level(self, user_id: str) -> dict[int, int]:
        """Histogram of box levels across a learner's progress records."""

    @abstractmethod
    def count_due(self, user_id: str, on_or_before: date) -> int:
        """Number of scheduled records with next_review_date <= on_or_before."""

    # =========================================================================
    # Content library
    # =========================================================================

    @abstractmethod
    def add_item(self, item: ReviewableItem) -> ReviewableItem:
        """Add an item to a learner's library, replacing any previous version."""

    @abstractmethod
    def soft_delete_item(self, user_id: str, item_id: str, deleted_at: datetime) -> bool:
        """Hide an item from review batches. Returns False if it did not exist."""

    @abstractmethod
    def find_items(self, user_id: str, item_ids: Sequence[str]) -> list[ReviewableItem]:
        """Live (not deleted) items among ``item_ids``, in no particular order."""

    @abstractmethod
    def find_items_by_user(self, user_id: str) -> list[ReviewableItem]:
        """Every live item in a learner's library."""

    @abstractmethod
    def find_unanswered_items(
        self,
        user_id: str,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
        limit: int | None = None,
    ) -> list[ReviewableItem]:
        """Live items the learner has no progress record for (at most ``limit``)."""

    # =========================================================================
    # Progress joined with content
    # =========================================================================

    @abstractmethod
    def find_due_review_items(
        self,
        user_id: str,
        on_or_before: date,
        limit: int,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[ReviewItem]:
        """
        Due progress joined with its live item, in due order.

        Filters apply before ``limit``; progress whose item is missing or
        deleted is skipped.
        """

    @abstractmethod
    def find_answered_item_ids(
        self,
        user_id: str,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[str]:
        """Ids of live items the learner has progress for, ordered by item id."""

    @abstractmethod
    def find_review_items(self, user_id: str, item_ids: Sequence[str]) -> list[ReviewItem]:
        """Progress joined with live items for ``item_ids``, in no particular order."""


class AnswerLog(ABC):
    """Audit trail of answer submissions. Never read by the scheduler."""

    @abstractmethod
    def record_answer(self, entry: AnswerLogEntry) -> None:
        """Append one answer."""

    @abstractmethod
    def find_answers(self, user_id: str, item_id: str | None = None) -> list[AnswerLogEntry]:
        """Answers of a learner, oldest first."""
