"""
Storage collaborators for the review scheduler.
"""

from .memory import InMemoryReviewRepository
from .repository import AnswerLog, ProgressCompute, ReviewRepository
from .sql_repository import SqlReviewRepository

__all__ = [
    "ReviewRepository",
    "AnswerLog",
    "ProgressCompute",
    "InMemoryReviewRepository",
    "SqlReviewRepository",
]
