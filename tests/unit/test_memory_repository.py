"""
Unit tests for InMemoryReviewRepository.

The same ordering and atomicity contracts are checked against SQL in
tests/integration/test_sql_repository.py.
"""

from datetime import timedelta

import pytest

from leitner.core import ItemType, ItemTypeFilter, ProgressRecord


class TestProgressWrites:
    def test_insert_assigns_id_and_version(self, repository):
        stored, created = repository.insert_progress_if_absent(ProgressRecord(user_id="alice", item_id="q-1"))

        assert created is True
        assert stored.id is not None
        assert stored.version == 1

    def test_insert_if_absent_keeps_existing(self, repository):
        repository.insert_progress_if_absent(ProgressRecord(user_id="alice", item_id="q-1", box_level=3))

        stored, created = repository.insert_progress_if_absent(
            ProgressRecord(user_id="alice", item_id="q-1", box_level=1)
        )

        assert created is False
        assert stored.box_level == 3

    def test_upsert_replaces_but_keeps_identity(self, repository, seed_progress):
        first = seed_progress("q-1", box_level=2)

        second = repository.upsert_progress(ProgressRecord(user_id="alice", item_id="q-1", box_level=4))

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert second.version == first.version + 1
        assert second.box_level == 4

    def test_compute_receives_stored_state(self, repository, seed_progress):
        seed_progress("q-1", box_level=3)
        seen = []

        def compute(existing):
            seen.append(existing)
            return existing

        repository.update_progress_atomically("alice", "q-1", compute)

        assert seen[0].box_level == 3

    def test_compute_receives_none_when_absent(self, repository):
        seen = []

        def compute(existing):
            seen.append(existing)
            return ProgressRecord(user_id="alice", item_id="q-1")

        repository.update_progress_atomically("alice", "q-1", compute)

        assert seen == [None]

    def test_returned_records_are_copies(self, repository, seed_progress):
        seed_progress("q-1", box_level=2)

        record = repository.find_progress("alice", "q-1")
        record.box_level = 5

        assert repository.find_progress("alice", "q-1").box_level == 2


class TestProgressQueries:
    def test_due_ordering(self, repository, seed_progress, today):
        seed_progress("b", box_level=2, next_review_date=today)
        seed_progress("a", box_level=2, next_review_date=today)
        seed_progress("z", box_level=1, next_review_date=today)
        seed_progress("old", box_level=5, next_review_date=today - timedelta(days=9))
        seed_progress("later", next_review_date=today + timedelta(days=1))

        due = repository.find_progress_due("alice", today)

        assert [r.item_id for r in due] == ["old", "z", "a", "b"]

    def test_unscheduled_progress_is_never_due(self, repository, today):
        repository.upsert_progress(ProgressRecord(user_id="alice", item_id="q-1"))

        assert repository.find_progress_due("alice", today) == []
        assert repository.count_due("alice", today) == 0

    def test_count_by_box_level(self, repository, seed_progress):
        for item_id, level in (("a", 1), ("b", 1), ("c", 4)):
            seed_progress(item_id, box_level=level)
        seed_progress("d", box_level=2, user_id="bob")

        assert repository.count_by_box_level("alice") == {1: 2, 4: 1}


class TestLibrary:
    def test_unanswered_items_in_creation_order(self, repository, make_item, seed_progress):
        for item_id in ("c", "a", "b"):
            make_item(item_id)
        seed_progress("a")

        assert [i.item_id for i in repository.find_unanswered_items("alice")] == ["c", "b"]

    @pytest.mark.parametrize(
        "type_filter,expected",
        [
            (ItemTypeFilter.ALL, ["q", "f"]),
            (ItemTypeFilter.QUESTION, ["q"]),
            (ItemTypeFilter.FLASHCARD, ["f"]),
        ],
    )
    def test_unanswered_items_type_filter(self, repository, make_item, type_filter, expected):
        make_item("q", item_type=ItemType.QUESTION)
        make_item("f", item_type=ItemType.FLASHCARD)

        assert [i.item_id for i in repository.find_unanswered_items("alice", type_filter)] == expected

    def test_soft_delete(self, repository, make_item, now):
        make_item("q-1")

        assert repository.soft_delete_item("alice", "q-1", now) is True
        assert repository.soft_delete_item("alice", "missing", now) is False
        assert repository.find_items("alice", ["q-1"]) == []
        assert repository.find_items_by_user("alice") == []

    def test_find_items_scoped_to_user(self, repository, make_item):
        make_item("q-1", user_id="bob")

        assert repository.find_items("alice", ["q-1"]) == []
        assert [i.item_id for i in repository.find_items("bob", ["q-1", "q-1"])] == ["q-1"]

    def test_unanswered_items_limit(self, repository, make_item):
        for item_id in ("a", "b", "c"):
            make_item(item_id)

        assert [i.item_id for i in repository.find_unanswered_items("alice", limit=2)] == ["a", "b"]


class TestJoinedQueries:
    def test_due_review_items_ordered_filtered_and_limited(self, repository, make_item, seed_progress, today, now):
        make_item("q-old", study_set_id=1)
        make_item("q-mid", study_set_id=1)
        make_item("q-new", study_set_id=1)
        make_item("q-other", study_set_id=2)
        make_item("gone", study_set_id=1)
        seed_progress("q-old", next_review_date=today - timedelta(days=4))
        seed_progress("q-mid", next_review_date=today - timedelta(days=2))
        seed_progress("q-new", next_review_date=today)
        seed_progress("q-other", next_review_date=today - timedelta(days=9))
        seed_progress("gone", next_review_date=today - timedelta(days=9))
        seed_progress("orphan", next_review_date=today - timedelta(days=9))
        repository.soft_delete_item("alice", "gone", now)

        due = repository.find_due_review_items("alice", today, 2, study_set_id=1)

        assert [entry.item_id for entry in due] == ["q-old", "q-mid"]
        assert all(entry.progress is not None for entry in due)

    def test_due_review_items_skip_future(self, repository, make_item, seed_progress, today):
        make_item("q-1")
        seed_progress("q-1", next_review_date=today + timedelta(days=1))

        assert repository.find_due_review_items("alice", today, 10) == []

    def test_answered_item_ids_live_and_filtered(self, repository, make_item, seed_progress, now):
        make_item("q-1", item_type=ItemType.QUESTION)
        make_item("f-1", item_type=ItemType.FLASHCARD)
        make_item("q-2", item_type=ItemType.QUESTION)
        make_item("q-3", item_type=ItemType.QUESTION)
        for item_id in ("q-2", "f-1", "q-1"):
            seed_progress(item_id)
        repository.soft_delete_item("alice", "q-2", now)

        assert repository.find_answered_item_ids("alice") == ["f-1", "q-1"]
        assert repository.find_answered_item_ids("alice", ItemTypeFilter.QUESTION) == ["q-1"]

    def test_review_items_only_for_requested_ids(self, repository, make_item, seed_progress):
        for item_id in ("a", "b", "c"):
            make_item(item_id)
            seed_progress(item_id, box_level=3)
        make_item("unanswered")

        found = repository.find_review_items("alice", ["c", "a", "unanswered", "missing"])

        assert sorted(entry.item_id for entry in found) == ["a", "c"]
        assert {entry.box_level for entry in found} == {3}
        assert repository.find_review_items("alice", []) == []
