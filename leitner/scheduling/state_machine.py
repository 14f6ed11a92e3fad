"""
Leitner progress state machine.

Transition rule:
- Correct answer: promote one box (capped at box 5)
- Incorrect answer: reset to box 1, whatever the current box

The next review date is the UTC date of the answer plus the interval of
the resulting box.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from loguru import logger

from ..core.box_policy import MIN_BOX, clamp_box, next_review_date
from ..core.dates import ensure_utc, utc_date
from ..core.records import ProgressRecord


class ProgressStateMachine:
    """
    Computes the next progress record from the current one and an answer.

    Stateless; a single instance can be shared freely.
    """

    @staticmethod
    def next_box_level(current_level: int, is_correct: bool) -> int:
        """
        Box level after an answer.

        Args:
            current_level: Current box level (result is clamped into 1-5)
            is_correct: Whether the answer was correct

        Returns:
            New box level (1-5)
        """
        if is_correct:
            return clamp_box(current_level + 1)
        return MIN_BOX

    def apply_answer(
        self,
        existing: ProgressRecord | None,
        user_id: str,
        item_id: str,
        is_correct: bool,
        now: datetime,
    ) -> ProgressRecord:
        """
        Compute the full replacement record after an answer.

        A never-seen item starts at box 1 before the transition, so its
        first correct answer lands in box 2 and a first miss stays in box 1.

        Args:
            existing: Stored progress, None if the item was never answered
            user_id: Learner identifier
            item_id: Reviewable item identifier
            is_correct: Whether the answer was correct
            now: Time of the answer

        Returns:
            ProgressRecord to persist (id, created_at and version carried over)
        """
        now = ensure_utc(now)
        current = existing or ProgressRecord(user_id=user_id, item_id=item_id, created_at=now)

        new_level = self.next_box_level(current.box_level, is_correct)
        updated = replace(
            current,
            user_id=user_id,
            item_id=item_id,
            box_level=new_level,
            next_review_date=next_review_date(new_level, utc_date(now)),
            times_correct=current.times_correct + (1 if is_correct else 0),
            times_incorrect=current.times_incorrect + (0 if is_correct else 1),
            last_reviewed_at=now,
        )

        logger.debug(
            f"Answer {user_id}/{item_id}: correct={is_correct}, "
            f"box {current.box_level} -> {new_level}, next_review={updated.next_review_date}"
        )
        return updated

    def initial_progress(
        self,
        user_id: str,
        item_id: str,
        is_correct: bool,
        now: datetime,
    ) -> ProgressRecord:
        """Record for the first answer to an item."""
        return self.apply_answer(None, user_id, item_id, is_correct, now)
