"""Statistics over a task collection."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional, Sequence

from .dependencies import can_complete
from .models import PRIORITIES, Task, TaskStats, utcnow
from .views import calendar_day

SECONDS_PER_DAY = 60 * 60 * 24


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def aggregate(tasks: Sequence[Task], now: Optional[datetime] = None) -> TaskStats:
    """Compute a statistics snapshot.

    ``tasks`` should be a snapshot (the store hands out copies), so the
    counts cannot shift while they are being computed.
    """
    now = now or utcnow()
    today = calendar_day(now)

    total = len(tasks)
    completed = sum(1 for task in tasks if task.status == "DONE")
    in_progress = sum(1 for task in tasks if task.status == "IN_PROGRESS")
    in_review = sum(1 for task in tasks if task.status == "REVIEW")
    todo = sum(1 for task in tasks if task.status == "TODO")

    overdue = sum(
        1 for task in tasks
        if task.due_date is not None and task.status != "DONE" and task.due_date < now
    )
    due_today = sum(
        1 for task in tasks
        if task.due_date is not None and calendar_day(task.due_date) == today
    )
    blocked = sum(1 for task in tasks if task.status != "DONE" and not can_complete(task, tasks))

    priority_distribution = {priority: 0 for priority in PRIORITIES}
    category_distribution = {}
    for task in tasks:
        if task.priority in priority_distribution:
            priority_distribution[task.priority] += 1
        if task.category:
            category_distribution[task.category] = category_distribution.get(task.category, 0) + 1

    cycle_days = [
        (task.updated_at - task.created_at).total_seconds() / SECONDS_PER_DAY
        for task in tasks
        if task.status == "DONE" and task.created_at and task.updated_at
    ]
    avg_completion_days = _round_half_up(sum(cycle_days) / len(cycle_days), 1) if cycle_days else 0.0

    completion_rate = int(_round_half_up(completed / total * 100)) if total else 0

    estimated_hours_remaining = sum(
        task.estimated_hours or 0 for task in tasks if task.status != "DONE"
    )
    actual_hours_spent = sum(task.actual_hours or 0 for task in tasks)

    return TaskStats(
        total=total,
        completed=completed,
        in_progress=in_progress,
        in_review=in_review,
        todo=todo,
        overdue=overdue,
        due_today=due_today,
        blocked=blocked,
        completion_rate=completion_rate,
        priority_distribution=priority_distribution,
        category_distribution=category_distribution,
        avg_completion_days=avg_completion_days,
        estimated_hours_remaining=float(estimated_hours_remaining),
        actual_hours_spent=float(actual_hours_spent),
        generated_at=now,
    )
