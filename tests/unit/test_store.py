"""Unit tests for the in-memory task store."""

import threading
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from taskflow.errors import NotFoundError
from taskflow.models import Task
from taskflow.store import TaskStore

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_task(task_id="T1", **overrides):
    fields = dict(
        id=task_id,
        title="Write API documentation",
        description="Document all REST API endpoints",
        assignee="Alex",
        due_date=NOW + timedelta(days=3),
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Task(**fields)


@pytest.fixture
def clock():
    ticks = count(1)
    return lambda: NOW + timedelta(minutes=next(ticks))


class TestTaskStoreReads:
    """Test cases for read access."""

    def test_empty_store(self):
        store = TaskStore()
        assert len(store) == 0
        assert store.snapshot() == []

    def test_get_returns_copy(self):
        store = TaskStore([make_task(tags=["api"])])
        task = store.get("T1")
        task.tags.append("mutated")
        task.title = "Changed"

        assert store.get("T1").tags == ["api"]
        assert store.get("T1").title == "Write API documentation"

    def test_get_missing_raises(self):
        store = TaskStore()
        with pytest.raises(NotFoundError) as exc:
            store.get("nope")
        assert exc.value.message == "Task 'nope' not found"

    def test_snapshot_keeps_insertion_order(self):
        store = TaskStore([make_task("B"), make_task("A"), make_task("C")])
        assert [task.id for task in store.snapshot()] == ["B", "A", "C"]
        assert store.ids() == ["B", "A", "C"]
        assert "A" in store
        assert store.exists("C")


class TestTaskStoreLoad:
    """Test cases for bulk seeding."""

    def test_load_dicts_and_assign_missing_ids(self):
        store = TaskStore(id_factory=lambda: "GEN-1")
        loaded = store.load([
            {"id": "1", "title": "First task", "description": "Some description", "assignee": "Sam"},
            {"title": "Second task", "description": "Some description", "assignee": "Sam"},
        ])

        assert [task.id for task in loaded] == ["1", "GEN-1"]
        assert len(store) == 2

    def test_load_replaces_duplicate_ids(self):
        store = TaskStore([make_task("T1")])
        store.load([make_task("T1", title="Replaced title")])
        assert len(store) == 1
        assert store.get("T1").title == "Replaced title"


class TestTaskStoreWrites:
    """Test cases for commits."""

    def test_new_id_never_repeats_loaded_ids(self):
        ids = iter(["T1", "T1", "T2"])
        store = TaskStore([make_task("T1")], id_factory=lambda: next(ids))
        assert store.new_id() == "T2"

    def test_default_ids_have_prefix(self):
        assert TaskStore().new_id().startswith("TASK-")

    def test_insert_duplicate_rejected(self):
        store = TaskStore([make_task("T1")])
        with pytest.raises(ValueError):
            store.insert(make_task("T1"))

    def test_replace_applies_mutator_and_touches(self, clock):
        store = TaskStore([make_task()], clock=clock)
        updated = store.replace("T1", lambda task: setattr(task, "status", "REVIEW"))

        assert updated.status == "REVIEW"
        assert updated.updated_at == NOW + timedelta(minutes=1)
        assert store.get("T1").status == "REVIEW"

    def test_replace_failure_commits_nothing(self):
        store = TaskStore([make_task()])

        def broken(task):
            task.title = "Half written"
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            store.replace("T1", broken)
        assert store.get("T1").title == "Write API documentation"
        assert store.get("T1").updated_at == NOW

    def test_replace_returned_record_is_detached(self):
        store = TaskStore([make_task()])
        updated = store.replace("T1", lambda task: None)
        updated.tags.append("leak")
        assert store.get("T1").tags == []

    def test_replace_missing_raises(self):
        with pytest.raises(NotFoundError):
            TaskStore().replace("T9", lambda task: None)

    def test_delete(self):
        store = TaskStore([make_task("T1"), make_task("T2")])
        removed = store.delete("T1")
        assert removed.id == "T1"
        assert store.ids() == ["T2"]
        with pytest.raises(NotFoundError):
            store.delete("T1")

    def test_snapshot_taken_before_commit_is_unchanged(self):
        store = TaskStore([make_task()])
        before = store.snapshot()
        store.replace("T1", lambda task: setattr(task, "status", "DONE"))
        assert before[0].status == "TODO"

    def test_clear_keeps_ids_reserved(self):
        ids = iter(["T1", "T2"])
        store = TaskStore([make_task("T1")], id_factory=lambda: next(ids))
        store.clear()
        assert len(store) == 0
        assert store.new_id() == "T2"

    def test_concurrent_replaces_on_same_id_are_serialized(self):
        store = TaskStore([make_task(actual_hours=0)])

        def add_hour(task):
            task.actual_hours += 1

        threads = [
            threading.Thread(target=lambda: [store.replace("T1", add_hour) for _ in range(50)])
            for _ in range(4)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.get("T1").actual_hours == 200
