"""
In-memory storage.

Dictionary-backed ReviewRepository and AnswerLog for tests and local use.
A single re-entrant lock serialises writers, which makes
update_progress_atomically atomic per process.
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Sequence
from dataclasses import replace
from datetime import date, datetime
from itertools import count

from loguru import logger

from ..core.modes import ItemTypeFilter
from ..core.records import AnswerLogEntry, ProgressRecord, ReviewableItem, ReviewItem
from .repository import AnswerLog, ProgressCompute, ReviewRepository


def _item_order(item: ReviewableItem) -> tuple:
    return (item.created_at, item.item_id)


def _due_order(record: ProgressRecord) -> tuple:
    return (record.next_review_date, record.box_level, record.item_id)


def _matches(item: ReviewableItem, item_type: ItemTypeFilter, study_set_id: int | None) -> bool:
    return item_type.matches(item.item_type) and (study_set_id is None or item.study_set_id == study_set_id)


class InMemoryReviewRepository(ReviewRepository, AnswerLog):
    """Process-local storage. Returned records are copies."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._progress: dict[tuple[str, str], ProgressRecord] = {}
        self._items: dict[tuple[str, str], ReviewableItem] = {}
        self._answers: list[AnswerLogEntry] = []
        self._ids = count(1)

    # =========================================================================
    # Progress
    # =========================================================================

    def find_progress(self, user_id: str, item_id: str) -> ProgressRecord | None:
        with self._lock:
            record = self._progress.get((user_id, item_id))
            return replace(record) if record else None

    def update_progress_atomically(
        self,
        user_id: str,
        item_id: str,
        compute: ProgressCompute,
    ) -> ProgressRecord:
        with self._lock:
            existing = self._progress.get((user_id, item_id))
            updated = compute(replace(existing) if existing else None)
            return self._store(user_id, item_id, updated, existing)

    def insert_progress_if_absent(self, record: ProgressRecord) -> tuple[ProgressRecord, bool]:
        with self._lock:
            existing = self._progress.get(record.key)
            if existing is not None:
                return replace(existing), False
            return self._store(record.user_id, record.item_id, record, None), True

    def _store(
        self,
        user_id: str,
        item_id: str,
        record: ProgressRecord,
        existing: ProgressRecord | None,
    ) -> ProgressRecord:
        if existing is None:
            stored = replace(
                record,
                user_id=user_id,
                item_id=item_id,
                id=next(self._ids),
                version=1,
            )
        else:
            stored = replace(
                record,
                user_id=user_id,
                item_id=item_id,
                id=existing.id,
                created_at=existing.created_at,
                version=existing.version + 1,
            )
        self._progress[(user_id, item_id)] = stored
        logger.debug(f"Stored progress {user_id}/{item_id} v{stored.version}")
        return replace(stored)

    def find_progress_due(self, user_id: str, on_or_before: date) -> list[ProgressRecord]:
        with self._lock:
            due = [
                replace(record)
                for (owner, _), record in self._progress.items()
                if owner == user_id and record.is_due(on_or_before)
            ]
        return sorted(due, key=_due_order)

    def find_progress_by_user(self, user_id: str) -> list[ProgressRecord]:
        with self._lock:
            records = [
                replace(record)
                for (owner, _), record in self._progress.items()
                if owner == user_id
            ]
        return sorted(records, key=lambda r: (r.created_at, r.item_id))

    def count_by_box_level(self, user_id: str) -> dict[int, int]:
        with self._lock:
            return dict(
                Counter(
                    record.box_level
                    for (owner, _), record in self._progress.items()
                    if owner == user_id
                )
            )

    def count_due(self, user_id: str, on_or_before: date) -> int:
        with self._lock:
            return sum(
                1
                for (owner, _), record in self._progress.items()
                if owner == user_id and record.is_due(on_or_before)
            )

    # =========================================================================
    # Content library
    # =========================================================================

    def add_item(self, item: ReviewableItem) -> ReviewableItem:
        with self._lock:
            self._items[(item.user_id, item.item_id)] = replace(item)
        return replace(item)

    def soft_delete_item(self, user_id: str, item_id: str, deleted_at: datetime) -> bool:
        with self._lock:
            item = self._items.get((user_id, item_id))
            if item is None:
                return False
            self._items[(user_id, item_id)] = replace(item, deleted_at=deleted_at)
            return True

    def find_items(self, user_id: str, item_ids: Sequence[str]) -> list[ReviewableItem]:
        with self._lock:
            found = (self._items.get((user_id, item_id)) for item_id in dict.fromkeys(item_ids))
            return [replace(item) for item in found if item is not None and not item.is_deleted]

    def find_items_by_user(self, user_id: str) -> list[ReviewableItem]:
        with self._lock:
            items = [
                replace(item)
                for (owner, _), item in self._items.items()
                if owner == user_id and not item.is_deleted
            ]
        return sorted(items, key=_item_order)

    def find_unanswered_items(
        self,
        user_id: str,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
        limit: int | None = None,
    ) -> list[ReviewableItem]:
        with self._lock:
            answered = {item_id for (owner, item_id) in self._progress if owner == user_id}
        unanswered = [
            item
            for item in self.find_items_by_user(user_id)
            if item.item_id not in answered and _matches(item, item_type, study_set_id)
        ]
        return unanswered if limit is None else unanswered[:limit]

    # =========================================================================
    # Progress joined with content
    # =========================================================================

    def _joined(self, user_id: str, item_type: ItemTypeFilter, study_set_id: int | None) -> list[ReviewItem]:
        """Progress with a live, matching item. Caller holds the lock."""
        joined = []
        for (owner, item_id), record in self._progress.items():
            item = self._items.get((owner, item_id))
            if owner != user_id or item is None or item.is_deleted:
                continue
            if _matches(item, item_type, study_set_id):
                joined.append(ReviewItem(item=replace(item), progress=replace(record)))
        return joined

    def find_due_review_items(
        self,
        user_id: str,
        on_or_before: date,
        limit: int,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[ReviewItem]:
        with self._lock:
            due = [
                entry
                for entry in self._joined(user_id, item_type, study_set_id)
                if entry.progress.is_due(on_or_before)
            ]
        due.sort(key=lambda entry: _due_order(entry.progress))
        return due[:limit]

    def find_answered_item_ids(
        self,
        user_id: str,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[str]:
        with self._lock:
            return sorted(entry.item_id for entry in self._joined(user_id, item_type, study_set_id))

    def find_review_items(self, user_id: str, item_ids: Sequence[str]) -> list[ReviewItem]:
        wanted = set(item_ids)
        with self._lock:
            return [
                entry
                for entry in self._joined(user_id, ItemTypeFilter.ALL, None)
                if entry.item_id in wanted
            ]

    # =========================================================================
    # Answer log
    # =========================================================================

    def record_answer(self, entry: AnswerLogEntry) -> None:
        with self._lock:
            self._answers.append(entry)

    def find_answers(self, user_id: str, item_id: str | None = None) -> list[AnswerLogEntry]:
        with self._lock:
            return [
                entry
                for entry in self._answers
                if entry.user_id == user_id and (item_id is None or entry.item_id == item_id)
            ]
