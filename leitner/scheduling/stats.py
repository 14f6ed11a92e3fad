"""
Read-only statistics for dashboards.

Counts are advisory: a record written moments ago may or may not be
reflected. On storage failure the aggregator returns zeros instead of
raising.
"""

from __future__ import annotations

from loguru import logger

from ..core.box_policy import MAX_BOX, MIN_BOX, clamp_box
from ..core.dates import Clock, utc_now, utc_today
from ..core.exceptions import RepositoryError
from ..db.repository import ReviewRepository
from .schemas import ReviewStats, StudyModeStats


class StatsAggregator:
    """Computes box distribution and due counts for a learner."""

    def __init__(self, repository: ReviewRepository, clock: Clock = utc_now):
        self.repository = repository
        self.clock = clock

    def get_stats(self, user_id: str) -> ReviewStats:
        """
        Get box-level distribution and due count.

        The total is the sum of the box histogram, so the per-box counts
        always add up to it.

        Args:
            user_id: Learner identifier

        Returns:
            ReviewStats (all zero if storage fails)
        """
        today = utc_today(self.clock)
        try:
            histogram = self.repository.count_by_box_level(user_id)
            due = self.repository.count_due(user_id, today)
        except RepositoryError as exc:
            logger.error(f"Error fetching review stats for {user_id}: {exc}")
            return ReviewStats.zero()

        boxes = {level: 0 for level in range(MIN_BOX, MAX_BOX + 1)}
        for level, count in histogram.items():
            boxes[clamp_box(level)] += count
        total = sum(boxes.values())

        return ReviewStats(
            questions_due_today=min(due, total),
            total_questions_in_system=total,
            questions_in_box_1=boxes[1],
            questions_in_box_2=boxes[2],
            questions_in_box_3=boxes[3],
            questions_in_box_4=boxes[4],
            questions_in_box_5=boxes[5],
        )

    def get_study_mode_stats(self, user_id: str) -> StudyModeStats:
        """Item counts per study mode, over live library items only."""
        today = utc_today(self.clock)
        try:
            live_ids = {item.item_id for item in self.repository.find_items_by_user(user_id)}
            due = self.repository.find_progress_due(user_id, today)
            unanswered = self.repository.find_unanswered_items(user_id)
        except RepositoryError as exc:
            logger.error(f"Error fetching study mode stats for {user_id}: {exc}")
            return StudyModeStats()

        return StudyModeStats(
            due_count=sum(1 for record in due if record.item_id in live_ids),
            new_count=len(unanswered),
            total_count=len(live_ids),
        )
