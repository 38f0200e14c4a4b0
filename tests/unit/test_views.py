"""Unit tests for the read-side projections.

This module tests filtering, sorting, kanban columns, calendar buckets,
recency ordering and the per-card helpers.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from taskflow import views
from taskflow.models import Query, Task

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def task(task_id, **overrides):
    fields = dict(
        id=task_id,
        title=f"Task {task_id}",
        description="A task used by view tests",
        assignee="Sam",
        due_date=NOW + timedelta(days=1),
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return Task(**fields)


@pytest.fixture
def tasks():
    return [
        task("1", title="Design new landing page", priority="HIGH", status="IN_PROGRESS",
             category="DESIGN", tags=["ui/ux"], assignee="Sarah Johnson",
             due_date=NOW + timedelta(days=5), updated_at=NOW + timedelta(hours=2)),
        task("2", title="Implement user authentication", priority="URGENT", category="DEVELOPMENT",
             tags=["backend", "auth"], assignee="Mike Chen", due_date=NOW + timedelta(days=10)),
        task("3", title="Write API documentation", priority="MEDIUM", status="REVIEW",
             category="DEVELOPMENT", assignee="Alex Rivera", due_date=NOW + timedelta(days=8),
             updated_at=NOW + timedelta(hours=5)),
        task("4", title="Set up CI/CD pipeline", priority="LOW", status="DONE",
             category="DEVELOPMENT", assignee="David Kim", due_date=NOW + timedelta(days=15)),
        task("5", title="Marketing campaign planning", priority="MEDIUM", status="IN_PROGRESS",
             category=None, assignee="Emma Wilson", due_date=None,
             updated_at=NOW + timedelta(hours=1)),
    ]


def ids(items):
    return [item.id for item in items]


class TestFiltering:
    """Test cases for query predicates."""

    def test_empty_query_keeps_everything(self, tasks):
        assert len(views.filter_tasks(tasks, Query())) == 5

    def test_search_is_case_insensitive_over_fields(self, tasks):
        assert ids(views.filter_tasks(tasks, Query(search_term="LANDING"))) == ["1"]
        assert ids(views.filter_tasks(tasks, Query(search_term="mike"))) == ["2"]
        assert ids(views.filter_tasks(tasks, Query(search_term="auth"))) == ["2"]

    def test_priority_filter(self, tasks):
        result = views.filter_tasks(tasks, Query(priority_filter=["MEDIUM"]))
        assert ids(result) == ["3", "5"]

    def test_category_filter_excludes_uncategorized(self, tasks):
        result = views.filter_tasks(tasks, Query(category_filter=["DEVELOPMENT"]))
        assert ids(result) == ["2", "3", "4"]

    def test_filters_combine(self, tasks):
        query = Query(category_filter=["DEVELOPMENT"], status_filter=["TODO", "REVIEW"])
        assert ids(views.filter_tasks(tasks, query)) == ["2", "3"]

    def test_assignee_filter(self, tasks):
        assert ids(views.filter_tasks(tasks, Query(assignee_filter=["David Kim"]))) == ["4"]

    def test_due_before_date_compares_days_and_drops_undated(self, tasks):
        query = Query(due_before=(NOW + timedelta(days=8)).date())
        assert ids(views.filter_tasks(tasks, query)) == ["1", "3"]

    def test_due_before_datetime(self, tasks):
        query = Query(due_before=NOW + timedelta(days=6))
        assert ids(views.filter_tasks(tasks, query)) == ["1"]

    def test_every_result_matches(self, tasks):
        query = Query(search_term="a", priority_filter=["MEDIUM", "HIGH"])
        for item in views.filter_tasks(tasks, query):
            assert views.matches(item, query)


class TestSorting:
    """Test cases for ordering."""

    def test_due_date_ascending_puts_undated_last(self, tasks):
        assert ids(views.sort_tasks(tasks, "dueDate", "asc")) == ["1", "3", "2", "4", "5"]

    def test_due_date_descending_still_puts_undated_last(self, tasks):
        assert ids(views.sort_tasks(tasks, "dueDate", "desc")) == ["4", "2", "3", "1", "5"]

    def test_priority_descending_is_stable(self, tasks):
        ordered = views.sort_tasks(tasks, "priority", "desc")
        assert [item.priority for item in ordered] == ["URGENT", "HIGH", "MEDIUM", "MEDIUM", "LOW"]
        assert ids(ordered) == ["2", "1", "3", "5", "4"]

    def test_priority_ascending(self, tasks):
        ordered = views.sort_tasks(tasks, "priority", "asc")
        assert [item.priority for item in ordered] == ["LOW", "MEDIUM", "MEDIUM", "HIGH", "URGENT"]

    def test_category_sort(self, tasks):
        ordered = views.sort_tasks(tasks, "category", "asc")
        assert ids(ordered) == ["5", "1", "2", "3", "4"]

    def test_created_sort(self):
        items = [task("a", created_at=NOW + timedelta(days=2)), task("b", created_at=NOW)]
        assert ids(views.sort_tasks(items, "created", "asc")) == ["b", "a"]

    def test_input_not_mutated(self, tasks):
        before = ids(tasks)
        views.sort_tasks(tasks, "priority", "desc")
        assert ids(tasks) == before


class TestBoardAndCalendar:
    """Test cases for columns, calendar buckets and recency."""

    def test_columns_have_all_statuses(self, tasks):
        board = views.columns(tasks)
        assert list(board) == ["TODO", "IN_PROGRESS", "REVIEW", "DONE"]
        assert ids(board["IN_PROGRESS"]) == ["1", "5"]
        assert ids(board["DONE"]) == ["4"]

    def test_columns_partition_filtered_tasks(self, tasks):
        query = Query(priority_filter=["URGENT", "LOW"])
        board = views.columns(tasks, query)
        assert sum(len(items) for items in board.values()) == 2
        assert board["REVIEW"] == []

    def test_calendar_groups_by_day(self):
        items = [
            task("a", due_date=datetime(2025, 3, 12, 9, 0, tzinfo=timezone.utc)),
            task("b", due_date=datetime(2025, 3, 11, 23, 0, tzinfo=timezone.utc)),
            task("c", due_date=datetime(2025, 3, 12, 17, 0, tzinfo=timezone.utc)),
            task("d", due_date=None),
        ]
        buckets = views.calendar(items)
        assert list(buckets) == [date(2025, 3, 11), date(2025, 3, 12)]
        assert ids(buckets[date(2025, 3, 12)]) == ["a", "c"]

    def test_tasks_due_on(self, tasks):
        day = (NOW + timedelta(days=8)).date()
        assert ids(views.tasks_due_on(tasks, day)) == ["3"]

    def test_recent_orders_by_updated_at(self, tasks):
        assert ids(views.recent(tasks, 3)) == ["3", "1", "5"]

    def test_recent_ignores_filters_and_caps(self, tasks):
        assert len(views.recent(tasks)) == 5
        assert views.recent(tasks, 0) == []


class TestProjection:
    """Test cases for the combined projection."""

    def test_projection_is_idempotent(self, tasks):
        query = Query(search_term="a", sort_key="priority", sort_order="desc")
        first = views.project(tasks, query).to_dict()
        second = views.project(tasks, query).to_dict()
        assert first == second

    def test_projection_columns_match_task_list(self, tasks):
        projection = views.project(tasks, Query(status_filter=["IN_PROGRESS"]))
        assert ids(projection.tasks) == ["1", "5"]
        assert ids(projection.columns["IN_PROGRESS"]) == ["1", "5"]
        assert len(projection.recent) == 5


class TestCardHelpers:
    """Test cases for per-task helpers."""

    def test_is_overdue(self):
        late = task("a", status="IN_PROGRESS", due_date=NOW - timedelta(days=1))
        done = task("b", status="DONE", due_date=NOW - timedelta(days=1))
        assert views.is_overdue(late, NOW)
        assert not views.is_overdue(done, NOW)
        assert not views.is_overdue(task("c", due_date=None), NOW)

    def test_days_until_due_rounds_up(self):
        assert views.days_until_due(task("a", due_date=NOW + timedelta(hours=30)), NOW) == 2
        assert views.days_until_due(task("b", due_date=NOW - timedelta(hours=30)), NOW) == -1
        assert views.days_until_due(task("c", due_date=None), NOW) is None

    def test_task_progress(self):
        assert views.task_progress(task("a", status="REVIEW")) == 80
