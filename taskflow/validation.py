"""Input validation for task drafts, patches, comments and time entries.

Validators return a ``{field: message}`` mapping; an empty mapping means
the input is acceptable. The pipeline turns a non-empty mapping into a
ValidationError before any remote call is attempted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .dependencies import would_create_cycle
from .models import PRIORITIES, STATUSES, Recurrence, Task, parse_datetime, unique

EDITABLE_FIELDS = (
    "title",
    "description",
    "assignee",
    "due_date",
    "priority",
    "status",
    "category",
    "tags",
    "estimated_hours",
    "actual_hours",
    "dependencies",
    "progress_override",
    "recurring",
)

FIELD_ALIASES = {
    "dueDate": "due_date",
    "estimatedHours": "estimated_hours",
    "actualHours": "actual_hours",
    "progress": "progress_override",
}

MIN_TITLE_LENGTH = 3
MIN_DESCRIPTION_LENGTH = 10
MIN_ASSIGNEE_LENGTH = 2
MAX_ESTIMATED_HOURS = 1000

TEXT_FIELDS = ("title", "description", "assignee")


def _text(value: Any) -> str:
    """Stripped string value; anything that is not a string counts as empty."""
    return value.strip() if isinstance(value, str) else ""


def normalize_fields(raw: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Map incoming keys to task attributes and coerce their values.

    Returns ``(values, errors)``; unknown fields and values that cannot be
    coerced are reported as errors instead of raising.
    """
    values: Dict[str, Any] = {}
    errors: Dict[str, str] = {}

    for key, value in raw.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in EDITABLE_FIELDS:
            errors[name] = f"Unknown field: {key}"
            continue

        try:
            if name == "due_date":
                values[name] = parse_datetime(value)
            elif name == "recurring":
                if value is None or isinstance(value, Recurrence):
                    values[name] = value
                else:
                    values[name] = Recurrence.from_dict(dict(value))
            elif name in ("tags", "dependencies"):
                items = [value] if isinstance(value, str) else list(value or [])
                values[name] = unique(str(item).strip() for item in items if str(item).strip())
            elif name in ("estimated_hours", "actual_hours"):
                values[name] = None if value is None or value == "" else float(value)
            elif name == "progress_override":
                values[name] = None if value is None or value == "" else int(value)
            elif name in TEXT_FIELDS:
                if value is not None and not isinstance(value, str):
                    raise TypeError(f"{name} must be a string")
                values[name] = value
            elif name == "category":
                values[name] = value or None
            else:
                values[name] = value
        except (TypeError, ValueError):
            errors[name] = f"Invalid value for {name}"

    return values, errors


def validate_task_fields(
    values: Mapping[str, Any],
    now: datetime,
    *,
    check_due_in_past: bool = True,
) -> Dict[str, str]:
    """Form rules for a complete task record (draft or draft merged with a patch)."""
    errors: Dict[str, str] = {}

    title = _text(values.get("title"))
    if len(title) < MIN_TITLE_LENGTH:
        errors["title"] = "Title must be at least 3 characters long"

    description = _text(values.get("description"))
    if len(description) < MIN_DESCRIPTION_LENGTH:
        errors["description"] = "Description must be at least 10 characters long"

    due_date: Optional[datetime] = values.get("due_date")
    if due_date is None:
        errors["due_date"] = "Due date is required"
    elif check_due_in_past and due_date < now:
        errors["due_date"] = "Due date cannot be in the past"

    assignee = _text(values.get("assignee"))
    if len(assignee) < MIN_ASSIGNEE_LENGTH:
        errors["assignee"] = "Assignee is required"

    estimated = values.get("estimated_hours")
    if estimated is not None and not 0 <= estimated <= MAX_ESTIMATED_HOURS:
        errors["estimated_hours"] = "Estimated hours must be between 0 and 1000"

    actual = values.get("actual_hours")
    if actual is not None and actual < 0:
        errors["actual_hours"] = "Actual hours cannot be negative"

    if values.get("priority", "MEDIUM") not in PRIORITIES:
        errors["priority"] = f"Priority must be one of {', '.join(PRIORITIES)}"
    if values.get("status", "TODO") not in STATUSES:
        errors["status"] = f"Status must be one of {', '.join(STATUSES)}"

    override = values.get("progress_override")
    if override is not None and not 0 <= override <= 100:
        errors["progress_override"] = "Progress must be between 0 and 100"

    recurring = values.get("recurring")
    if recurring is not None:
        issues = recurring.validate()
        if issues:
            errors["recurring"] = "; ".join(issues)

    return errors


def validate_dependencies(
    task_id: Optional[str],
    dependencies: Iterable[str],
    tasks: Iterable[Task],
) -> Dict[str, str]:
    """Reject self-references, unknown ids and edges that would form a cycle.

    ``task_id`` is None for a task that has not been created yet; such a
    task cannot be part of a cycle.
    """
    tasks = list(tasks)
    dependencies = list(dependencies)
    known = {task.id for task in tasks}

    if task_id is not None and task_id in dependencies:
        return {"dependencies": "A task cannot depend on itself"}

    unknown = [dep for dep in dependencies if dep not in known]
    if unknown:
        return {"dependencies": f"Unknown dependency ids: {', '.join(unknown)}"}

    if task_id is not None and would_create_cycle(task_id, dependencies, tasks):
        return {"dependencies": "Dependencies would create a cycle"}

    return {}


def validate_comment(text: Optional[str], author: Optional[str]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not _text(text):
        errors["text"] = "Comment text cannot be empty"
    if not _text(author):
        errors["author"] = "Comment author is required"
    return errors


def validate_hours(hours: Any) -> Dict[str, str]:
    try:
        value = float(hours)
    except (TypeError, ValueError):
        return {"hours": "Hours must be a number"}
    if value <= 0:
        return {"hours": "Logged hours must be greater than 0"}
    return {}
