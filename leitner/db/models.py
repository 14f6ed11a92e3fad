"""
SQLAlchemy models for review progress.

Tables:
- reviewable_items: the learner's content library (questions, flashcards)
- user_item_progress: Leitner state per (user, item)
- answer_log: audit trail of answer submissions
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..core.box_policy import MAX_BOX, MIN_BOX
from ..core.dates import utc_now


class Base(DeclarativeBase):
    """Declarative base for all tables."""


class ReviewableItemRow(Base):
    """A question or flashcard owned by a learner."""

    __tablename__ = "reviewable_items"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_reviewable_items_user_item"),
        Index("idx_reviewable_items_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_type: Mapped[str] = mapped_column(Text, nullable=False, default="question")
    study_set_id: Mapped[int | None] = mapped_column(Integer)
    content: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class UserItemProgress(Base):
    """
    Leitner progress of one learner on one item.

    ``version`` increases on every write and guards concurrent updates.
    """

    __tablename__ = "user_item_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_user_item_progress_user_item"),
        CheckConstraint(
            f"box_level BETWEEN {MIN_BOX} AND {MAX_BOX}", name="ck_user_item_progress_box_level"
        ),
        Index("idx_user_item_progress_due", "user_id", "next_review_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str] = mapped_column(Text, nullable=False)
    box_level: Mapped[int] = mapped_column(Integer, nullable=False, default=MIN_BOX)
    next_review_date: Mapped[date | None] = mapped_column(Date)
    times_correct: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    times_incorrect: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)


class AnswerLogRow(Base):
    """One answer submission."""

    __tablename__ = "answer_log"
    __table_args__ = (Index("idx_answer_log_user_item", "user_id", "item_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)
    item_id: Mapped[str] = mapped_column(Text, nullable=False)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
