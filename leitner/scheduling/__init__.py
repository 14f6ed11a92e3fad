"""
Leitner scheduling: answer transitions, review selection and stats.
"""

from .schemas import (
    AnswerResult,
    ReviewBatchRequest,
    ReviewItemView,
    ReviewStats,
    StatsRequest,
    StudyModeStats,
    SubmitAnswerRequest,
)
from .selector import ReviewSelector, due_priority
from .service import InitializeResult, ReviewService
from .state_machine import ProgressStateMachine
from .stats import StatsAggregator

__all__ = [
    "ProgressStateMachine",
    "ReviewSelector",
    "due_priority",
    "StatsAggregator",
    "ReviewService",
    "InitializeResult",
    # Schemas
    "SubmitAnswerRequest",
    "ReviewBatchRequest",
    "StatsRequest",
    "AnswerResult",
    "ReviewItemView",
    "ReviewStats",
    "StudyModeStats",
]
