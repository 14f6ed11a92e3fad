"""
SQLAlchemy-backed storage for review progress.

Works against SQLite (local, tests) and PostgreSQL (production).

Progress writes use optimistic concurrency:
- existing row: UPDATE ... WHERE id = :id AND version = :expected
- missing row: INSERT guarded by the (user_id, item_id) unique constraint
A writer that loses the race re-reads and recomputes from the winner's
state, so stored progress never merges two histories.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime
from typing import Any

from loguru import logger
from sqlalchemy import Engine, and_, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config import get_settings

from ..core.dates import ensure_utc
from ..core.exceptions import RepositoryError, WriteConflictError
from ..core.modes import ItemType, ItemTypeFilter
from ..core.records import AnswerLogEntry, ProgressRecord, ReviewableItem, ReviewItem
from .database import get_engine, init_db, make_session_factory, session_scope
from .models import AnswerLogRow, ReviewableItemRow, UserItemProgress
from .repository import AnswerLog, ProgressCompute, ReviewRepository

# Join condition between a progress row and its library item
_same_item = and_(
    UserItemProgress.user_id == ReviewableItemRow.user_id,
    UserItemProgress.item_id == ReviewableItemRow.item_id,
)


def _filter_items(stmt, item_type: ItemTypeFilter, study_set_id: int | None):
    if item_type is not ItemTypeFilter.ALL:
        stmt = stmt.where(ReviewableItemRow.item_type == item_type.value)
    if study_set_id is not None:
        stmt = stmt.where(ReviewableItemRow.study_set_id == study_set_id)
    return stmt


# =============================================================================
# Row conversion
# =============================================================================


def _utc_or_none(moment: datetime | None) -> datetime | None:
    return ensure_utc(moment) if moment is not None else None


def _progress_from_row(row: UserItemProgress) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        item_id=row.item_id,
        box_level=row.box_level,
        next_review_date=row.next_review_date,
        times_correct=row.times_correct,
        times_incorrect=row.times_incorrect,
        last_reviewed_at=_utc_or_none(row.last_reviewed_at),
        created_at=ensure_utc(row.created_at),
        id=row.id,
        version=row.version,
    )


def _progress_values(record: ProgressRecord) -> dict[str, Any]:
    """Mutable columns of a progress row. Datetimes are stored as UTC."""
    return {
        "box_level": record.box_level,
        "next_review_date": record.next_review_date,
        "times_correct": record.times_correct,
        "times_incorrect": record.times_incorrect,
        "last_reviewed_at": _utc_or_none(record.last_reviewed_at),
    }


def _item_from_row(row: ReviewableItemRow) -> ReviewableItem:
    return ReviewableItem(
        item_id=row.item_id,
        user_id=row.user_id,
        item_type=ItemType(row.item_type),
        study_set_id=row.study_set_id,
        content=dict(row.content or {}),
        created_at=ensure_utc(row.created_at),
        deleted_at=_utc_or_none(row.deleted_at),
    )


# =============================================================================
# Repository
# =============================================================================


class SqlReviewRepository(ReviewRepository, AnswerLog):
    """ReviewRepository and AnswerLog over a SQLAlchemy engine."""

    def __init__(self, engine: Engine, max_attempts: int | None = None):
        """
        Initialize the repository.

        Args:
            engine: SQLAlchemy engine
            max_attempts: Optimistic-concurrency attempts per progress write
                (defaults to settings.upsert_max_attempts)
        """
        self.engine = engine
        self.max_attempts = max_attempts or get_settings().upsert_max_attempts
        self._session_factory = make_session_factory(engine)

    @classmethod
    def from_settings(cls) -> SqlReviewRepository:
        """Repository for the configured database."""
        return cls(get_engine())

    def init_schema(self) -> None:
        """Create tables if they don't exist."""
        try:
            init_db(self.engine)
        except SQLAlchemyError as exc:
            raise RepositoryError(f"Schema initialization failed: {exc}") from exc

    @contextmanager
    def _transaction(self, action: str) -> Generator[Session, None, None]:
        try:
            with session_scope(self._session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error(f"Storage failure during {action}: {exc}")
            raise RepositoryError(f"{action} failed: {exc}") from exc

    @staticmethod
    def _progress_query(user_id: str, item_id: str):
        return select(UserItemProgress).where(
            UserItemProgress.user_id == user_id,
            UserItemProgress.item_id == item_id,
        )

    # =========================================================================
    # Progress
    # =========================================================================

    def find_progress(self, user_id: str, item_id: str) -> ProgressRecord | None:
        with self._transaction("find progress") as session:
            row = session.scalars(self._progress_query(user_id, item_id)).one_or_none()
            return _progress_from_row(row) if row else None

    def update_progress_atomically(
        self,
        user_id: str,
        item_id: str,
        compute: ProgressCompute,
    ) -> ProgressRecord:
        for attempt in range(1, self.max_attempts + 1):
            session = self._session_factory()
            try:
                row = session.scalars(self._progress_query(user_id, item_id)).one_or_none()
                existing = _progress_from_row(row) if row else None
                updated = compute(existing)

                if row is None:
                    new_row = UserItemProgress(
                        user_id=user_id,
                        item_id=item_id,
                        created_at=ensure_utc(updated.created_at),
                        version=1,
                        **_progress_values(updated),
                    )
                    session.add(new_row)
                    try:
                        session.commit()
                    except IntegrityError as exc:
                        session.rollback()
                        self._raise_unless_created_concurrently(user_id, item_id, exc)
                        logger.debug(
                            f"Progress {user_id}/{item_id} created concurrently "
                            f"(attempt {attempt}/{self.max_attempts})"
                        )
                        continue
                    return _progress_from_row(new_row)

                result = session.execute(
                    update(UserItemProgress)
                    .where(
                        UserItemProgress.id == row.id,
                        UserItemProgress.version == row.version,
                    )
                    .values(version=row.version + 1, **_progress_values(updated))
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    session.commit()
                    return replace(
                        updated,
                        user_id=user_id,
                        item_id=item_id,
                        last_reviewed_at=_utc_or_none(updated.last_reviewed_at),
                        id=row.id,
                        created_at=existing.created_at,
                        version=row.version + 1,
                    )

                session.rollback()
                logger.debug(
                    f"Progress {user_id}/{item_id} changed under us "
                    f"(attempt {attempt}/{self.max_attempts})"
                )
            except SQLAlchemyError as exc:
                session.rollback()
                logger.error(f"Storage failure updating progress {user_id}/{item_id}: {exc}")
                raise RepositoryError(f"progress update failed: {exc}") from exc
            finally:
                session.close()

        raise WriteConflictError(user_id, item_id, self.max_attempts)

    def insert_progress_if_absent(self, record: ProgressRecord) -> tuple[ProgressRecord, bool]:
        session = self._session_factory()
        try:
            row = session.scalars(
                self._progress_query(record.user_id, record.item_id)
            ).one_or_none()
            if row is not None:
                return _progress_from_row(row), False

            new_row = UserItemProgress(
                user_id=record.user_id,
                item_id=record.item_id,
                created_at=ensure_utc(record.created_at),
                version=1,
                **_progress_values(record),
            )
            session.add(new_row)
            session.commit()
            return _progress_from_row(new_row), True
        except IntegrityError as exc:
            session.rollback()
            self._raise_unless_created_concurrently(record.user_id, record.item_id, exc)
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error(f"Storage failure creating progress {record.user_id}/{record.item_id}: {exc}")
            raise RepositoryError(f"progress insert failed: {exc}") from exc
        finally:
            session.close()

        # Another request created the record between our check and insert
        return self.find_progress(record.user_id, record.item_id), False

    def _raise_unless_created_concurrently(
        self, user_id: str, item_id: str, exc: IntegrityError
    ) -> None:
        """
        Classify an IntegrityError raised by a progress INSERT.

        Only a unique-key clash with a row created by another writer is a
        race. Anything else (CHECK on box_level, NOT NULL) is a rejected write.
        """
        if self.find_progress(user_id, item_id) is None:
            logger.error(f"Progress insert rejected for {user_id}/{item_id}: {exc.orig}")
            raise RepositoryError(f"progress insert rejected: {exc.orig}") from exc

    def find_progress_due(self, user_id: str, on_or_before: date) -> list[ProgressRecord]:
        stmt = (
            select(UserItemProgress)
            .where(
                UserItemProgress.user_id == user_id,
                UserItemProgress.next_review_date.is_not(None),
                UserItemProgress.next_review_date <= on_or_before,
            )
            .order_by(
                UserItemProgress.next_review_date.asc(),
                UserItemProgress.box_level.asc(),
                UserItemProgress.item_id.asc(),
            )
        )
        with self._transaction("find due progress") as session:
            return [_progress_from_row(row) for row in session.scalars(stmt)]

    def find_progress_by_user(self, user_id: str) -> list[ProgressRecord]:
        stmt = (
            select(UserItemProgress)
            .where(UserItemProgress.user_id == user_id)
            .order_by(UserItemProgress.created_at.asc(), UserItemProgress.item_id.asc())
        )
        with self._transaction("find user progress") as session:
            return [_progress_from_row(row) for row in session.scalars(stmt)]

    def count_by_box_level(self, user_id: str) -> dict[int, int]:
        stmt = (
            select(UserItemProgress.box_level, func.count())
            .where(UserItemProgress.user_id == user_id)
            .group_by(UserItemProgress.box_level)
        )
        with self._transaction("count by box level") as session:
            return {box: count for box, count in session.execute(stmt)}

    def count_due(self, user_id: str, on_or_before: date) -> int:
        stmt = (
            select(func.count())
            .select_from(UserItemProgress)
            .where(
                UserItemProgress.user_id == user_id,
                UserItemProgress.next_review_date.is_not(None),
                UserItemProgress.next_review_date <= on_or_before,
            )
        )
        with self._transaction("count due progress") as session:
            return session.scalar(stmt) or 0

    # =========================================================================
    # Content library
    # =========================================================================

    def add_item(self, item: ReviewableItem) -> ReviewableItem:
        with self._transaction("add item") as session:
            row = session.scalars(
                select(ReviewableItemRow).where(
                    ReviewableItemRow.user_id == item.user_id,
                    ReviewableItemRow.item_id == item.item_id,
                )
            ).one_or_none()
            if row is None:
                row = ReviewableItemRow(user_id=item.user_id, item_id=item.item_id)
                session.add(row)
            row.item_type = item.item_type.value
            row.study_set_id = item.study_set_id
            row.content = dict(item.content)
            row.created_at = ensure_utc(item.created_at)
            row.deleted_at = _utc_or_none(item.deleted_at)
            session.flush()
            return _item_from_row(row)

    def soft_delete_item(self, user_id: str, item_id: str, deleted_at: datetime) -> bool:
        stmt = (
            update(ReviewableItemRow)
            .where(ReviewableItemRow.user_id == user_id, ReviewableItemRow.item_id == item_id)
            .values(deleted_at=ensure_utc(deleted_at))
            .execution_options(synchronize_session=False)
        )
        with self._transaction("delete item") as session:
            return session.execute(stmt).rowcount > 0

    def _live_items(self, user_id: str):
        return select(ReviewableItemRow).where(
            ReviewableItemRow.user_id == user_id,
            ReviewableItemRow.deleted_at.is_(None),
        )

    def find_items(self, user_id: str, item_ids: Sequence[str]) -> list[ReviewableItem]:
        if not item_ids:
            return []
        stmt = self._live_items(user_id).where(ReviewableItemRow.item_id.in_(list(item_ids)))
        with self._transaction("find items") as session:
            return [_item_from_row(row) for row in session.scalars(stmt)]

    def find_items_by_user(self, user_id: str) -> list[ReviewableItem]:
        stmt = self._live_items(user_id).order_by(
            ReviewableItemRow.created_at.asc(), ReviewableItemRow.item_id.asc()
        )
        with self._transaction("find user items") as session:
            return [_item_from_row(row) for row in session.scalars(stmt)]

    def find_unanswered_items(
        self,
        user_id: str,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
        limit: int | None = None,
    ) -> list[ReviewableItem]:
        stmt = (
            self._live_items(user_id)
            .outerjoin(UserItemProgress, _same_item)
            .where(UserItemProgress.id.is_(None))
        )
        stmt = _filter_items(stmt, item_type, study_set_id)
        stmt = stmt.order_by(ReviewableItemRow.created_at.asc(), ReviewableItemRow.item_id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._transaction("find unanswered items") as session:
            return [_item_from_row(row) for row in session.scalars(stmt)]

    # =========================================================================
    # Progress joined with content
    # =========================================================================

    @staticmethod
    def _with_live_items(stmt, user_id: str):
        return stmt.join(ReviewableItemRow, _same_item).where(
            UserItemProgress.user_id == user_id,
            ReviewableItemRow.deleted_at.is_(None),
        )

    def find_due_review_items(
        self,
        user_id: str,
        on_or_before: date,
        limit: int,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[ReviewItem]:
        stmt = self._with_live_items(select(UserItemProgress, ReviewableItemRow), user_id).where(
            UserItemProgress.next_review_date.is_not(None),
            UserItemProgress.next_review_date <= on_or_before,
        )
        stmt = (
            _filter_items(stmt, item_type, study_set_id)
            .order_by(
                UserItemProgress.next_review_date.asc(),
                UserItemProgress.box_level.asc(),
                UserItemProgress.item_id.asc(),
            )
            .limit(limit)
        )
        with self._transaction("find due review items") as session:
            return [
                ReviewItem(item=_item_from_row(item_row), progress=_progress_from_row(progress_row))
                for progress_row, item_row in session.execute(stmt)
            ]

    def find_answered_item_ids(
        self,
        user_id: str,
        item_type: ItemTypeFilter = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[str]:
        stmt = self._with_live_items(select(UserItemProgress.item_id), user_id)
        stmt = _filter_items(stmt, item_type, study_set_id).order_by(UserItemProgress.item_id.asc())
        with self._transaction("find answered item ids") as session:
            return list(session.scalars(stmt))

    def find_review_items(self, user_id: str, item_ids: Sequence[str]) -> list[ReviewItem]:
        if not item_ids:
            return []
        stmt = self._with_live_items(select(UserItemProgress, ReviewableItemRow), user_id).where(
            UserItemProgress.item_id.in_(list(item_ids))
        )
        with self._transaction("find review items") as session:
            return [
                ReviewItem(item=_item_from_row(item_row), progress=_progress_from_row(progress_row))
                for progress_row, item_row in session.execute(stmt)
            ]

    # =========================================================================
    # Answer log
    # =========================================================================

    def record_answer(self, entry: AnswerLogEntry) -> None:
        with self._transaction("record answer") as session:
            session.add(
                AnswerLogRow(
                    user_id=entry.user_id,
                    item_id=entry.item_id,
                    is_correct=entry.is_correct,
                    answered_at=ensure_utc(entry.answered_at),
                )
            )

    def find_answers(self, user_id: str, item_id: str | None = None) -> list[AnswerLogEntry]:
        stmt = select(AnswerLogRow).where(AnswerLogRow.user_id == user_id)
        if item_id is not None:
            stmt = stmt.where(AnswerLogRow.item_id == item_id)
        stmt = stmt.order_by(AnswerLogRow.answered_at.asc(), AnswerLogRow.id.asc())

        with self._transaction("find answers") as session:
            return [
                AnswerLogEntry(
                    user_id=row.user_id,
                    item_id=row.item_id,
                    is_correct=row.is_correct,
                    answered_at=ensure_utc(row.answered_at),
                )
                for row in session.scalars(stmt)
            ]
