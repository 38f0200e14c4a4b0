"""Read-side projections over a task collection.

Every function here is pure and recomputes its result from the tasks it is
given; nothing is cached between calls, so a projection is always
consistent with the snapshot it was built from.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Dict, List, Optional, Sequence

from .models import PRIORITY_ORDER, STATUSES, Query, Task, parse_datetime, utcnow

RECENT_LIMIT = 10


@dataclass(slots=True)
class Projection:
    """All derived views for one snapshot and query."""

    query: Query
    tasks: List[Task] = field(default_factory=list)
    columns: Dict[str, List[Task]] = field(default_factory=dict)
    calendar: Dict[date, List[Task]] = field(default_factory=dict)
    recent: List[Task] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "query": self.query.to_dict(),
            "tasks": [task.to_dict() for task in self.tasks],
            "columns": {status: [task.to_dict() for task in items] for status, items in self.columns.items()},
            "calendar": {day.isoformat(): [task.id for task in items] for day, items in self.calendar.items()},
            "recent": [task.to_dict() for task in self.recent],
        }


# ----------------------------------------------------------------------
# Filtering and sorting
# ----------------------------------------------------------------------

def _matches_search(task: Task, term: str) -> bool:
    needle = term.lower()
    return (
        needle in task.title.lower()
        or needle in task.description.lower()
        or needle in task.assignee.lower()
        or any(needle in tag.lower() for tag in task.tags)
    )


def _due_on_or_before(task: Task, limit) -> bool:
    if task.due_date is None:
        return False
    if isinstance(limit, datetime):
        return task.due_date <= parse_datetime(limit)
    return calendar_day(task.due_date) <= limit


def matches(task: Task, query: Query) -> bool:
    """True when the task passes every active predicate of the query."""
    if query.search_term and not _matches_search(task, query.search_term):
        return False
    if query.priority_filter and task.priority not in query.priority_filter:
        return False
    if query.category_filter and task.category not in query.category_filter:
        return False
    if query.status_filter and task.status not in query.status_filter:
        return False
    if query.assignee_filter and task.assignee not in query.assignee_filter:
        return False
    if query.due_before is not None and not _due_on_or_before(task, query.due_before):
        return False
    return True


def filter_tasks(tasks: Sequence[Task], query: Query) -> List[Task]:
    return [task for task in tasks if matches(task, query)]


def sort_tasks(tasks: Sequence[Task], sort_key: str = "dueDate", sort_order: str = "asc") -> List[Task]:
    """Stable sort by one of the query sort keys.

    Tasks without a due date always come last when sorting by due date,
    whichever the direction.
    """
    reverse = sort_order == "desc"
    if sort_key == "dueDate":
        dated = [task for task in tasks if task.due_date is not None]
        undated = [task for task in tasks if task.due_date is None]
        return sorted(dated, key=lambda t: t.due_date, reverse=reverse) + undated
    if sort_key == "priority":
        return sorted(tasks, key=lambda t: PRIORITY_ORDER.get(t.priority, 0), reverse=reverse)
    if sort_key == "category":
        return sorted(tasks, key=lambda t: t.category or "", reverse=reverse)
    if sort_key == "created":
        return sorted(tasks, key=lambda t: t.created_at, reverse=reverse)
    return list(tasks)


def filter_and_sort(tasks: Sequence[Task], query: Optional[Query] = None) -> List[Task]:
    query = query or Query()
    return sort_tasks(filter_tasks(tasks, query), query.sort_key, query.sort_order)


# ----------------------------------------------------------------------
# Board, calendar and recency
# ----------------------------------------------------------------------

def columns(tasks: Sequence[Task], query: Optional[Query] = None) -> Dict[str, List[Task]]:
    """Partition the filtered, sorted tasks into one column per status."""
    ordered = filter_and_sort(tasks, query)
    return {status: [task for task in ordered if task.status == status] for status in STATUSES}


def calendar_day(moment: datetime) -> date:
    return moment.astimezone(timezone.utc).date()


def calendar(tasks: Sequence[Task], query: Optional[Query] = None) -> Dict[date, List[Task]]:
    """Group tasks by the UTC calendar date of their due date, oldest day first."""
    buckets: Dict[date, List[Task]] = {}
    for task in filter_and_sort(tasks, query):
        if task.due_date is None:
            continue
        buckets.setdefault(calendar_day(task.due_date), []).append(task)
    return dict(sorted(buckets.items()))


def tasks_due_on(tasks: Sequence[Task], day: date) -> List[Task]:
    return [task for task in tasks if task.due_date is not None and calendar_day(task.due_date) == day]


def recent(tasks: Sequence[Task], limit: int = RECENT_LIMIT) -> List[Task]:
    """Most recently touched tasks, newest first, ignoring any query."""
    ordered = sorted(tasks, key=lambda t: t.updated_at or t.created_at, reverse=True)
    return ordered[:max(limit, 0)]


def project(tasks: Sequence[Task], query: Optional[Query] = None, recent_limit: int = RECENT_LIMIT) -> Projection:
    query = query or Query()
    ordered = filter_and_sort(tasks, query)
    return Projection(
        query=query,
        tasks=ordered,
        columns={status: [task for task in ordered if task.status == status] for status in STATUSES},
        calendar=calendar(tasks, query),
        recent=recent(tasks, recent_limit),
    )


# ----------------------------------------------------------------------
# Card helpers
# ----------------------------------------------------------------------

def task_progress(task: Task) -> int:
    return task.progress


def is_overdue(task: Task, now: Optional[datetime] = None) -> bool:
    """Past its due date and not yet DONE."""
    if task.due_date is None or task.status == "DONE":
        return False
    return task.due_date < (now or utcnow())


def days_until_due(task: Task, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until the due date, rounded up; negative once overdue."""
    if task.due_date is None:
        return None
    delta = task.due_date - (now or utcnow())
    return math.ceil(delta.total_seconds() / 86400)
