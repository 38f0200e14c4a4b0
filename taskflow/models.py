"""Data models for the Taskflow engine.

This module contains the core data structures used throughout the engine:
the Task record and its comments and recurrence rule, the Query used by
the view projections, and the statistics snapshot produced by analytics.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union

from .errors import ValidationError

PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")
PRIORITY_ORDER = {"URGENT": 4, "HIGH": 3, "MEDIUM": 2, "LOW": 1}

STATUSES = ("TODO", "IN_PROGRESS", "REVIEW", "DONE")

RECURRENCE_TYPES = ("daily", "weekly", "monthly", "yearly")

SORT_KEYS = ("dueDate", "priority", "category", "created")
SORT_ORDERS = ("asc", "desc")

DateLike = Union[str, date, datetime, None]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(value: DateLike) -> Optional[datetime]:
    """Parse an ISO string, date or datetime into an aware UTC datetime.

    Naive values are taken to be UTC; a bare date means midnight UTC.
    Empty values return None. Unparseable strings raise ValueError.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Unsupported date value: {value!r}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, accepting both snake_case and camelCase records."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def unique(values: Optional[Iterable[str]]) -> List[str]:
    """Deduplicate while keeping first-seen order."""
    seen: List[str] = []
    for value in values or []:
        if value not in seen:
            seen.append(value)
    return seen


@dataclass(slots=True)
class Comment:
    """A single entry of a task's append-only discussion."""

    id: str
    text: str
    author: str
    date: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "author": self.author,
            "date": format_datetime(self.date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Comment":
        return cls(
            id=str(data["id"]),
            text=data.get("text", ""),
            author=data.get("author", ""),
            date=parse_datetime(data.get("date")) or utcnow(),
        )


@dataclass(slots=True)
class Recurrence:
    """Recurrence rule attached to a task (stored metadata only)."""

    type: str
    interval: int = 1
    end_date: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "interval": self.interval,
            "end_date": format_datetime(self.end_date),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recurrence":
        return cls(
            type=data.get("type", ""),
            interval=int(data.get("interval", 1)),
            end_date=parse_datetime(_pick(data, "end_date", "endDate")),
        )

    def validate(self) -> List[str]:
        """Validate the rule and return any issues."""
        issues = []
        if self.type not in RECURRENCE_TYPES:
            issues.append(f"Invalid recurrence type: {self.type}")
        if self.interval < 1:
            issues.append("Recurrence interval must be at least 1")
        return issues


@dataclass(slots=True)
class Task:
    """A unit of trackable work."""

    id: str
    title: str
    description: str
    assignee: str
    due_date: Optional[datetime] = None
    priority: str = "MEDIUM"
    status: str = "TODO"
    category: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    dependencies: List[str] = field(default_factory=list)
    progress_override: Optional[int] = None  # explicit slider value, only shown while IN_PROGRESS
    comments: List[Comment] = field(default_factory=list)
    recurring: Optional[Recurrence] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.tags = unique(self.tags)
        self.dependencies = unique(self.dependencies)
        if self.updated_at < self.created_at:
            self.updated_at = self.created_at

    @property
    def progress(self) -> int:
        """Progress percentage derived from status.

        DONE is 100, REVIEW 80 and TODO 0. IN_PROGRESS is at least 50 and
        follows the explicit override above that floor.
        """
        if self.status == "DONE":
            return 100
        if self.status == "REVIEW":
            return 80
        if self.status == "IN_PROGRESS":
            return max(self.progress_override or 0, 50)
        return 0

    @property
    def is_done(self) -> bool:
        return self.status == "DONE"

    def touch(self, now: Optional[datetime] = None) -> None:
        """Bump updated_at, never letting it fall behind created_at."""
        moment = now or utcnow()
        self.updated_at = moment if moment >= self.created_at else self.created_at

    def copy(self) -> "Task":
        """Independent copy; no list or nested record is shared."""
        return replace(
            self,
            tags=list(self.tags),
            dependencies=list(self.dependencies),
            comments=[replace(comment) for comment in self.comments],
            recurring=replace(self.recurring) if self.recurring else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "assignee": self.assignee,
            "due_date": format_datetime(self.due_date),
            "priority": self.priority,
            "status": self.status,
            "category": self.category,
            "tags": list(self.tags),
            "estimated_hours": self.estimated_hours,
            "actual_hours": self.actual_hours,
            "dependencies": list(self.dependencies),
            "progress": self.progress,
            "progress_override": self.progress_override,
            "comments": [comment.to_dict() for comment in self.comments],
            "recurring": self.recurring.to_dict() if self.recurring else None,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create from a Task-shaped record (snake_case or camelCase keys)."""
        created_at = parse_datetime(_pick(data, "created_at", "createdAt")) or utcnow()
        updated_at = parse_datetime(_pick(data, "updated_at", "updatedAt")) or created_at
        recurring = data.get("recurring")
        override = _pick(data, "progress_override")
        if override is None and data.get("status") == "IN_PROGRESS":
            override = data.get("progress")
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            assignee=data.get("assignee", ""),
            due_date=parse_datetime(_pick(data, "due_date", "dueDate")),
            priority=data.get("priority", "MEDIUM"),
            status=data.get("status", "TODO"),
            category=data.get("category"),
            tags=list(data.get("tags") or []),
            estimated_hours=_pick(data, "estimated_hours", "estimatedHours"),
            actual_hours=_pick(data, "actual_hours", "actualHours"),
            dependencies=[str(dep) for dep in data.get("dependencies") or []],
            progress_override=int(override) if override is not None else None,
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
            recurring=Recurrence.from_dict(recurring) if recurring else None,
            created_at=created_at,
            updated_at=updated_at,
        )


def _frozen(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


@dataclass(slots=True, frozen=True)
class Query:
    """Filter and sort parameters for the view projections.

    Empty filter sets mean "no constraint". ``due_before`` may be a date
    (compared against the due date's calendar day) or a datetime.
    """

    search_term: str = ""
    priority_filter: FrozenSet[str] = field(default_factory=frozenset)
    category_filter: FrozenSet[str] = field(default_factory=frozenset)
    status_filter: FrozenSet[str] = field(default_factory=frozenset)
    assignee_filter: FrozenSet[str] = field(default_factory=frozenset)
    due_before: Optional[Union[date, datetime]] = None
    sort_key: str = "dueDate"
    sort_order: str = "asc"

    def __post_init__(self) -> None:
        for name in ("priority_filter", "category_filter", "status_filter", "assignee_filter"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))
        object.__setattr__(self, "search_term", self.search_term or "")

        errors = {}
        if self.sort_key not in SORT_KEYS:
            errors["sort_key"] = f"Sort key must be one of {', '.join(SORT_KEYS)}"
        if self.sort_order not in SORT_ORDERS:
            errors["sort_order"] = "Sort order must be 'asc' or 'desc'"
        unknown = self.priority_filter - set(PRIORITIES)
        if unknown:
            errors["priority_filter"] = f"Unknown priorities: {', '.join(sorted(unknown))}"
        unknown = self.status_filter - set(STATUSES)
        if unknown:
            errors["status_filter"] = f"Unknown statuses: {', '.join(sorted(unknown))}"
        if errors:
            raise ValidationError(errors)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Query":
        """Build a query from loosely-typed arguments (tool calls, dicts)."""
        data = data or {}
        due_before = _pick(data, "due_before", "dueBefore")
        if isinstance(due_before, str):
            try:
                due_before = date.fromisoformat(due_before)
            except ValueError:
                try:
                    due_before = parse_datetime(due_before)
                except ValueError:
                    raise ValidationError({"due_before": f"Invalid date '{due_before}'"})
        return cls(
            search_term=_pick(data, "search_term", "searchTerm", default=""),
            priority_filter=_pick(data, "priority_filter", "priority"),
            category_filter=_pick(data, "category_filter", "category"),
            status_filter=_pick(data, "status_filter", "status"),
            assignee_filter=_pick(data, "assignee_filter", "assignee"),
            due_before=due_before,
            sort_key=_pick(data, "sort_key", "sortBy", default="dueDate"),
            sort_order=_pick(data, "sort_order", "sortOrder", default="asc"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "search_term": self.search_term,
            "priority_filter": sorted(self.priority_filter),
            "category_filter": sorted(self.category_filter),
            "status_filter": sorted(self.status_filter),
            "assignee_filter": sorted(self.assignee_filter),
            "due_before": self.due_before.isoformat() if self.due_before else None,
            "sort_key": self.sort_key,
            "sort_order": self.sort_order,
        }


@dataclass(slots=True)
class TaskStats:
    """Statistics snapshot over a task collection."""

    total: int = 0
    completed: int = 0
    in_progress: int = 0
    in_review: int = 0
    todo: int = 0
    overdue: int = 0
    due_today: int = 0
    blocked: int = 0
    completion_rate: int = 0
    priority_distribution: Dict[str, int] = field(
        default_factory=lambda: {priority: 0 for priority in PRIORITIES}
    )
    category_distribution: Dict[str, int] = field(default_factory=dict)
    avg_completion_days: float = 0.0
    estimated_hours_remaining: float = 0.0
    actual_hours_spent: float = 0.0
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "total": self.total,
            "completed": self.completed,
            "in_progress": self.in_progress,
            "in_review": self.in_review,
            "todo": self.todo,
            "overdue": self.overdue,
            "due_today": self.due_today,
            "blocked": self.blocked,
            "completion_rate": self.completion_rate,
            "priority_distribution": dict(self.priority_distribution),
            "category_distribution": dict(self.category_distribution),
            "avg_completion_days": self.avg_completion_days,
            "estimated_hours_remaining": self.estimated_hours_remaining,
            "actual_hours_spent": self.actual_hours_spent,
            "generated_at": format_datetime(self.generated_at),
        }

    def completion_ratio(self) -> float:
        """Unrounded completed/total fraction."""
        if self.total == 0:
            return 0.0
        return self.completed / self.total
