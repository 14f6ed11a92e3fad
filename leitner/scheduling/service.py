"""
Review service: the operations exposed to callers.

- submit_answer: record an answer and reschedule the item
- initialize_progress: create progress on first encounter, never update
- request_review_batch: items to study in due / new / random mode
- request_stats / request_study_mode_stats: dashboard counts

Inputs are validated here; ReviewValidationError is raised before any
storage access.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from config import Settings, get_settings

from ..core.dates import Clock, ensure_utc, utc_now
from ..core.exceptions import ItemNotFoundError, RepositoryError, ReviewValidationError
from ..core.modes import ItemTypeFilter, StudyMode
from ..core.records import AnswerLogEntry, ProgressRecord, ReviewItem
from ..db.repository import AnswerLog, ReviewRepository
from .schemas import (
    AnswerResult,
    ReviewBatchRequest,
    ReviewStats,
    StatsRequest,
    StudyModeStats,
    SubmitAnswerRequest,
)
from .selector import ReviewSelector
from .state_machine import ProgressStateMachine
from .stats import StatsAggregator

RequestT = TypeVar("RequestT", bound=BaseModel)


@dataclass
class InitializeResult:
    """Outcome of initialize_progress."""

    progress: ProgressRecord
    created: bool


def _validate(model: type[RequestT], **data: Any) -> RequestT:
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(loc) for loc in err["loc"]) for err in exc.errors())
        raise ReviewValidationError(
            f"Invalid {model.__name__}: {fields}",
            errors=exc.errors(include_url=False, include_context=False),
        ) from exc


class ReviewService:
    """
    Wires the state machine, selector and stats aggregator to storage.

    Collaborators are injected so tests can swap storage, clock and
    randomness.
    """

    def __init__(
        self,
        repository: ReviewRepository,
        answer_log: AnswerLog | None = None,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
        settings: Settings | None = None,
        state_machine: ProgressStateMachine | None = None,
    ):
        """
        Initialize the service.

        Args:
            repository: Progress and content storage
            answer_log: Optional audit trail notified after each recorded answer
            clock: Source of the current time (UTC)
            rng: Random source for random mode
            settings: Settings (uses cached settings if None)
            state_machine: Transition rules (creates default if None)
        """
        self.repository = repository
        self.answer_log = answer_log
        self.clock = clock
        self.settings = settings or get_settings()
        self.state_machine = state_machine or ProgressStateMachine()
        self.selector = ReviewSelector(repository, clock=clock, rng=rng)
        self.stats = StatsAggregator(repository, clock=clock)

    # =========================================================================
    # Answers
    # =========================================================================

    def submit_answer(self, user_id: str, item_id: str, is_correct: bool) -> AnswerResult:
        """
        Record an answer and reschedule the item.

        Storage errors propagate: the caller must know whether the answer
        was recorded.

        Returns:
            Derived progress fields after the answer
        """
        request = _validate(
            SubmitAnswerRequest, user_id=user_id, item_id=item_id, is_correct=is_correct
        )
        now = ensure_utc(self.clock())

        def compute(existing: ProgressRecord | None) -> ProgressRecord:
            return self.state_machine.apply_answer(
                existing, request.user_id, request.item_id, request.is_correct, now
            )

        record = self.repository.update_progress_atomically(
            request.user_id, request.item_id, compute
        )
        logger.info(
            f"Recorded answer {request.user_id}/{request.item_id}: correct={request.is_correct}, "
            f"box={record.box_level}, next_review={record.next_review_date}"
        )

        self._log_answer(request.user_id, request.item_id, request.is_correct, now)
        return AnswerResult.from_record(record)

    def initialize_progress(self, user_id: str, item_id: str, is_correct: bool) -> InitializeResult:
        """
        Create progress for an item answered for the first time.

        Existing progress is returned unchanged. Concurrent callers all see
        the single stored record.

        Raises:
            ItemNotFoundError: The item is not in the learner's library
        """
        request = _validate(
            SubmitAnswerRequest, user_id=user_id, item_id=item_id, is_correct=is_correct
        )
        if not self.repository.find_items(request.user_id, [request.item_id]):
            raise ItemNotFoundError(request.user_id, request.item_id)

        now = ensure_utc(self.clock())
        record = self.state_machine.initial_progress(
            request.user_id, request.item_id, request.is_correct, now
        )
        stored, created = self.repository.insert_progress_if_absent(record)

        if created:
            logger.info(
                f"Initialized progress {request.user_id}/{request.item_id} at box {stored.box_level}"
            )
            self._log_answer(request.user_id, request.item_id, request.is_correct, now)
        else:
            logger.debug(f"Progress {request.user_id}/{request.item_id} already exists")

        return InitializeResult(progress=stored, created=created)

    def _log_answer(self, user_id: str, item_id: str, is_correct: bool, answered_at: datetime) -> None:
        if self.answer_log is None:
            return
        entry = AnswerLogEntry(
            user_id=user_id, item_id=item_id, is_correct=is_correct, answered_at=answered_at
        )
        try:
            self.answer_log.record_answer(entry)
        except RepositoryError as exc:
            # Progress is already stored; the audit trail is not part of it
            logger.opt(exception=exc).warning(
                f"Answer log write failed for {user_id}/{item_id}; progress was recorded"
            )

    # =========================================================================
    # Review batches
    # =========================================================================

    def request_review_batch(
        self,
        user_id: str,
        mode: StudyMode | str = StudyMode.DUE,
        limit: int | None = None,
        item_type: ItemTypeFilter | str = ItemTypeFilter.ALL,
        study_set_id: int | None = None,
    ) -> list[ReviewItem]:
        """
        Get a batch of items to review.

        Args:
            user_id: Learner identifier
            mode: due, new or random
            limit: Batch size (default from settings, capped at settings.max_review_batch)
            item_type: all, question or flashcard
            study_set_id: Restrict to one study set

        Returns:
            Ordered ReviewItems (empty when nothing qualifies)
        """
        request = _validate(
            ReviewBatchRequest,
            user_id=user_id,
            mode=mode,
            limit=limit,
            item_type=item_type,
            study_set_id=study_set_id,
        )
        review_config = self.settings.get_review_config()
        batch_limit = min(request.limit or review_config["default_batch"], review_config["max_batch"])

        return self.selector.select_for_review(
            request.user_id,
            request.mode,
            batch_limit,
            item_type=request.item_type,
            study_set_id=request.study_set_id,
        )

    # =========================================================================
    # Stats
    # =========================================================================

    def request_stats(self, user_id: str) -> ReviewStats:
        request = _validate(StatsRequest, user_id=user_id)
        return self.stats.get_stats(request.user_id)

    def request_study_mode_stats(self, user_id: str) -> StudyModeStats:
        request = _validate(StatsRequest, user_id=user_id)
        return self.stats.get_study_mode_stats(request.user_id)
