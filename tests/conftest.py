"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from leitner.core import (  # noqa: E402
    ItemType,
    ProgressRecord,
    RepositoryError,
    ReviewableItem,
)
from leitner.db import InMemoryReviewRepository  # noqa: E402
from leitner.scheduling import ReviewService  # noqa: E402

FIXED_NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (require database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FailingRepository(InMemoryReviewRepository):
    """Repository whose every operation raises RepositoryError."""

    def _fail(self, *args, **kwargs):
        raise RepositoryError("simulated storage outage")

    find_progress = _fail
    update_progress_atomically = _fail
    insert_progress_if_absent = _fail
    find_progress_due = _fail
    find_progress_by_user = _fail
    count_by_box_level = _fail
    count_due = _fail
    find_items = _fail
    find_items_by_user = _fail
    find_unanswered_items = _fail
    find_due_review_items = _fail
    find_answered_item_ids = _fail
    find_review_items = _fail
    record_answer = _fail


# ========================================
# Time
# ========================================


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


# ========================================
# Storage
# ========================================


@pytest.fixture
def repository():
    return InMemoryReviewRepository()


@pytest.fixture
def failing_repository():
    return FailingRepository()


@pytest.fixture
def make_item(repository):
    """Add an item to the in-memory library; creation order follows call order."""
    counter = iter(range(10_000))

    def _make(
        item_id,
        user_id="alice",
        item_type=ItemType.QUESTION,
        study_set_id=None,
        text=None,
    ):
        item = ReviewableItem(
            item_id=item_id,
            user_id=user_id,
            item_type=item_type,
            study_set_id=study_set_id,
            content={"text": text or f"Prompt for {item_id}"},
            created_at=FIXED_NOW - timedelta(days=30) + timedelta(minutes=next(counter)),
        )
        return repository.add_item(item)

    return _make


@pytest.fixture
def seed_progress(repository):
    """Store progress directly, bypassing the state machine."""

    def _seed(item_id, box_level=1, next_review_date=None, user_id="alice", **fields):
        record = ProgressRecord(
            user_id=user_id,
            item_id=item_id,
            box_level=box_level,
            next_review_date=next_review_date or TODAY,
            last_reviewed_at=FIXED_NOW - timedelta(days=1),
            created_at=FIXED_NOW - timedelta(days=10),
            **fields,
        )
        return repository.upsert_progress(record)

    return _seed


# ========================================
# Service
# ========================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        default_review_batch=10,
        max_review_batch=50,
    )


@pytest.fixture
def service(repository, clock, settings):
    return ReviewService(
        repository,
        answer_log=repository,
        clock=clock,
        rng=random.Random(7),
        settings=settings,
    )


@pytest.fixture
def sample_dates():
    """Dates around TODAY used by ordering tests."""
    return {
        "three_days_ago": TODAY - timedelta(days=3),
        "yesterday": TODAY - timedelta(days=1),
        "today": TODAY,
        "tomorrow": TODAY + timedelta(days=1),
        "next_week": TODAY + timedelta(days=7),
    }
