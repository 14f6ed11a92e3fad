"""
Request and response models for the review operations.

Field names are snake_case in Python and camelCase on the wire
(``model_dump(by_alias=True)``).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.modes import ItemTypeFilter, StudyMode
from ..core.records import ProgressRecord, ReviewItem


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )


# ========================================
# Requests
# ========================================


class SubmitAnswerRequest(_Model):
    """Answer to one reviewable item."""

    user_id: str = Field(min_length=1)
    item_id: str = Field(min_length=1)
    is_correct: bool


class ReviewBatchRequest(_Model):
    """Request for a batch of items to review."""

    user_id: str = Field(min_length=1)
    mode: StudyMode = StudyMode.DUE
    limit: int | None = Field(default=None, gt=0, strict=True)
    item_type: ItemTypeFilter = ItemTypeFilter.ALL
    study_set_id: int | None = None


class StatsRequest(_Model):
    user_id: str = Field(min_length=1)


# ========================================
# Responses
# ========================================


class AnswerResult(_Model):
    """Progress fields derived from an answer."""

    box_level: int
    next_review_date: date
    times_correct: int
    times_incorrect: int
    last_reviewed_at: datetime

    @classmethod
    def from_record(cls, record: ProgressRecord) -> AnswerResult:
        return cls(
            box_level=record.box_level,
            next_review_date=record.next_review_date,
            times_correct=record.times_correct,
            times_incorrect=record.times_incorrect,
            last_reviewed_at=record.last_reviewed_at,
        )


class ReviewItemView(_Model):
    """One entry of a review batch. ``is_new`` marks items without progress."""

    item_id: str
    item_type: str
    study_set_id: int | None
    content: dict[str, Any]
    is_new: bool
    box_level: int
    next_review_date: date | None
    times_correct: int = 0
    times_incorrect: int = 0

    @classmethod
    def from_review_item(cls, review_item: ReviewItem) -> ReviewItemView:
        progress = review_item.progress
        return cls(
            item_id=review_item.item_id,
            item_type=review_item.item.item_type.value,
            study_set_id=review_item.item.study_set_id,
            content=review_item.item.content,
            is_new=review_item.is_new,
            box_level=review_item.box_level,
            next_review_date=review_item.next_review_date,
            times_correct=progress.times_correct if progress else 0,
            times_incorrect=progress.times_incorrect if progress else 0,
        )


class ReviewStats(_Model):
    """Dashboard summary of a learner's Leitner boxes."""

    questions_due_today: int = 0
    total_questions_in_system: int = 0
    questions_in_box_1: int = Field(default=0, alias="questionsInBox1")
    questions_in_box_2: int = Field(default=0, alias="questionsInBox2")
    questions_in_box_3: int = Field(default=0, alias="questionsInBox3")
    questions_in_box_4: int = Field(default=0, alias="questionsInBox4")
    questions_in_box_5: int = Field(default=0, alias="questionsInBox5")

    @classmethod
    def zero(cls) -> ReviewStats:
        return cls()

    def box_counts(self) -> dict[int, int]:
        return {
            1: self.questions_in_box_1,
            2: self.questions_in_box_2,
            3: self.questions_in_box_3,
            4: self.questions_in_box_4,
            5: self.questions_in_box_5,
        }


class StudyModeStats(_Model):
    """How many items each study mode would offer."""

    due_count: int = 0
    new_count: int = 0
    total_count: int = 0
