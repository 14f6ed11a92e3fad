"""
Exceptions raised by the review scheduler.

Writes fail loud: a ``RepositoryError`` on the answer path always reaches
the caller. Read paths (review selection, stats) catch ``RepositoryError``
and degrade to empty results.
"""

from __future__ import annotations

from typing import Any


class LeitnerError(Exception):
    """Base exception for the review scheduler."""


class ReviewValidationError(LeitnerError, ValueError):
    """Raised when a request is malformed (bad mode, non-positive limit, missing ids)."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class ItemNotFoundError(LeitnerError, LookupError):
    """Raised when a reviewable item does not exist in the learner's library."""

    def __init__(self, user_id: str, item_id: str):
        super().__init__(f"Reviewable item {item_id!r} not found for user {user_id!r}")
        self.user_id = user_id
        self.item_id = item_id


class RepositoryError(LeitnerError):
    """Raised when the storage collaborator fails."""


class WriteConflictError(RepositoryError):
    """Raised when concurrent writers kept winning the race for a progress record."""

    def __init__(self, user_id: str, item_id: str, attempts: int):
        super().__init__(
            f"Progress for user {user_id!r}, item {item_id!r} changed concurrently "
            f"{attempts} time(s); giving up"
        )
        self.user_id = user_id
        self.item_id = item_id
        self.attempts = attempts
