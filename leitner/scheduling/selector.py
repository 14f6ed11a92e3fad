"""
Review batch selection.

Modes:
- due: answered items scheduled on or before today (UTC), oldest-due first
- new: library items never answered, in creation order
- random: answered items regardless of schedule, sampled at random (free practice)

Selection is read-only. Storage failures degrade to an empty batch.
"""

from __future__ import annotations

import random

from loguru import logger

from ..core.dates import Clock, utc_now, utc_today
from ..core.exceptions import RepositoryError, ReviewValidationError
from ..core.modes import ItemTypeFilter, StudyMode
from ..core.records import ProgressRecord, ReviewItem
from ..db.repository import ReviewRepository


def due_priority(record: ProgressRecord) -> tuple:
    """Oldest due date first, then lowest box (struggling items), then item id."""
    return (record.next_review_date, record.box_level, record.item_id)


def validate_limit(limit: object) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ReviewValidationError(f"limit must be a positive integer, got {limit!r}")
    return limit


def parse_mode(mode: StudyMode | str) -> StudyMode:
    try:
        return StudyMode(mode)
    except ValueError:
        choices = ", ".join(m.value for m in StudyMode)
        raise ReviewValidationError(f"Unknown study mode {mode!r} (expected one of: {choices})") from None


def parse_item_type(item_type: ItemTypeFilter | str) -> ItemTypeFilter:
    try:
        return ItemTypeFilter(item_type)
    except ValueError:
        choices = ", ".join(t.value for t in ItemTypeFilter)
        raise ReviewValidationError(f"Unknown item type {item_type!r} (expected one of: {choices})") from None


class ReviewSelector:
    """Chooses which items a learner reviews next."""

    def __init__(
        self,
        repository: ReviewRepository,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ):
        """
        Initialize the selector.

        Args:
            repository: Progress and content storage
            clock: Source of the current time (UTC)
            rng: Random source for random mode (creates one if None)
        """
        self.repository = repository
        self.clock = clock
        self.rng = rng or random.Random()

    def select_for_review(
        self,
        user_id: str,
        mode: StudyMode | str,
        limit: int,
        item_type: ItemTypeFilter | str = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[ReviewItem]:
        """
        Select a bounded, ordered batch of items to review.

        Args:
            user_id: Learner identifier
            mode: Selection mode
            limit: Maximum items to return (positive)
            item_type: Restrict to questions or flashcards
            study_set_id: Restrict to one study set

        Returns:
            ReviewItems, empty when nothing qualifies or storage fails
        """
        limit = validate_limit(limit)
        mode = parse_mode(mode)
        item_type = parse_item_type(item_type)

        try:
            if mode is StudyMode.DUE:
                batch = self._select_due(user_id, limit, item_type, study_set_id)
            elif mode is StudyMode.NEW:
                batch = self._select_new(user_id, limit, item_type, study_set_id)
            else:
                batch = self._select_random(user_id, limit, item_type, study_set_id)
        except RepositoryError as exc:
            logger.error(f"Review selection failed for {user_id} (mode={mode.value}): {exc}")
            return []

        logger.info(f"Selected {len(batch)} {mode.value} item(s) for {user_id} (limit={limit})")
        return batch

    def _select_due(
        self,
        user_id: str,
        limit: int,
        item_type: ItemTypeFilter,
        study_set_id: int | None,
    ) -> list[ReviewItem]:
        today = utc_today(self.clock)
        due = self.repository.find_due_review_items(
            user_id, today, limit, item_type=item_type, study_set_id=study_set_id
        )
        return sorted(due, key=lambda entry: due_priority(entry.progress))

    def _select_new(
        self,
        user_id: str,
        limit: int,
        item_type: ItemTypeFilter,
        study_set_id: int | None,
    ) -> list[ReviewItem]:
        unanswered = self.repository.find_unanswered_items(
            user_id, item_type, study_set_id, limit=limit
        )
        return [ReviewItem(item=item) for item in unanswered]

    def _select_random(
        self,
        user_id: str,
        limit: int,
        item_type: ItemTypeFilter,
        study_set_id: int | None,
    ) -> list[ReviewItem]:
        answered_ids = self.repository.find_answered_item_ids(user_id, item_type, study_set_id)
        chosen = self.rng.sample(answered_ids, min(limit, len(answered_ids)))
        if not chosen:
            return []
        # Items deleted between the two reads drop out of the batch
        by_id = {entry.item_id: entry for entry in self.repository.find_review_items(user_id, chosen)}
        return [by_id[item_id] for item_id in chosen if item_id in by_id]
