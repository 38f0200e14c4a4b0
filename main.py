"""MCP server exposing Taskflow task management tools."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from taskflow.config import Settings
from taskflow.manager import TaskManager
from taskflow.sample_data import sample_tasks
from taskflow.taskflow_logging import setup_logging

mcp = FastMCP("taskflow")

settings = Settings.from_env()
setup_logging(settings.log_level, settings.log_file)

manager = TaskManager(settings=settings)
if settings.load_sample_data:
    manager.store.load(sample_tasks())


def _draft(**fields: Any) -> Dict[str, Any]:
    return {name: value for name, value in fields.items() if value is not None}


@mcp.tool()
async def load_tasks(tasks: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Load a task collection into the session; without arguments the demo tasks are loaded."""

    return await manager.initialize(tasks if tasks is not None else sample_tasks())


@mcp.tool()
async def add_task(
    title: str,
    description: str,
    assignee: str,
    due_date: str,
    priority: str = "MEDIUM",
    status: str = "TODO",
    category: Optional[str] = None,
    tags: Optional[List[str]] = None,
    estimated_hours: Optional[float] = None,
    dependencies: Optional[List[str]] = None,
    recurring: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create a task. due_date is an ISO timestamp and must not be in the past.
    A task created directly as DONE needs all of its dependencies DONE."""

    draft = _draft(
        title=title,
        description=description,
        assignee=assignee,
        due_date=due_date,
        priority=priority,
        status=status,
        category=category,
        tags=tags,
        estimated_hours=estimated_hours,
        dependencies=dependencies,
        recurring=recurring,
    )
    return await manager.add_task(**draft)


@mcp.tool()
async def update_task(task_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Update task fields (title, description, assignee, due_date, priority, status,
    category, tags, estimated_hours, actual_hours, dependencies, progress, recurring)."""

    return await manager.update_task(task_id, **fields)


@mcp.tool()
async def move_task(task_id: str, status: str) -> Dict[str, Any]:
    """Move a task to TODO, IN_PROGRESS, REVIEW or DONE."""

    return await manager.move_task(task_id, status)


@mcp.tool()
async def delete_task(task_id: str) -> Dict[str, Any]:
    """Delete a task permanently."""

    return await manager.delete_task(task_id)


@mcp.tool()
async def add_comment(task_id: str, text: str, author: str) -> Dict[str, Any]:
    """Append a comment to a task."""

    return await manager.add_comment(task_id, text, author)


@mcp.tool()
async def log_time(task_id: str, hours: float) -> Dict[str, Any]:
    """Add worked hours to a task's actual hours."""

    return await manager.log_time(task_id, hours)


@mcp.tool()
async def bulk_action(task_ids: List[str], action: str) -> Dict[str, Any]:
    """Apply 'complete' or 'delete' to several tasks. Each task succeeds or fails on its own."""

    return await manager.bulk_action(task_ids, action)


@mcp.tool()
async def retry_operation(retry_token: str) -> Dict[str, Any]:
    """Re-run an operation that failed with a temporary error, using its retry_token."""

    return await manager.retry(retry_token)


@mcp.tool()
def get_task(task_id: str) -> Dict[str, Any]:
    """Fetch a single task with its overdue flag and days until due."""

    return manager.get_task(task_id)


@mcp.tool()
def list_tasks(
    search_term: str = "",
    priority: Optional[List[str]] = None,
    category: Optional[List[str]] = None,
    status: Optional[List[str]] = None,
    assignee: Optional[List[str]] = None,
    due_before: Optional[str] = None,
    sort_by: str = "dueDate",
    sort_order: str = "asc",
) -> Dict[str, Any]:
    """List tasks matching the filters, sorted by dueDate, priority, category or created."""

    return manager.list_tasks(
        search_term=search_term,
        priority=priority,
        category=category,
        status=status,
        assignee=assignee,
        due_before=due_before,
        sortBy=sort_by,
        sortOrder=sort_order,
    )


@mcp.tool()
def board(
    search_term: str = "",
    priority: Optional[List[str]] = None,
    category: Optional[List[str]] = None,
    assignee: Optional[List[str]] = None,
    sort_by: str = "dueDate",
    sort_order: str = "asc",
) -> Dict[str, Any]:
    """Kanban board: filtered tasks grouped into status columns."""

    return manager.board(
        search_term=search_term,
        priority=priority,
        category=category,
        assignee=assignee,
        sortBy=sort_by,
        sortOrder=sort_order,
    )


@mcp.tool()
def calendar(
    day: Optional[str] = None,
    search_term: str = "",
    priority: Optional[List[str]] = None,
    category: Optional[List[str]] = None,
    status: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Tasks grouped by due day (YYYY-MM-DD); pass day to see a single date."""

    return manager.calendar(
        day=day,
        search_term=search_term,
        priority=priority,
        category=category,
        status=status,
    )


@mcp.tool()
def recent_tasks(limit: Optional[int] = None) -> Dict[str, Any]:
    """Most recently updated tasks, newest first."""

    return manager.recent(limit)


@mcp.tool()
def task_stats() -> Dict[str, Any]:
    """Completion, overdue, priority and category analytics over all tasks."""

    return manager.stats()


@mcp.tool()
def dependency_status(task_id: str) -> Dict[str, Any]:
    """Whether a task can be completed, which dependencies block it and which tasks depend on it."""

    return manager.dependency_status(task_id)


@mcp.resource("taskflow://stats")
def resource_stats() -> str:
    """Resource view of the current task analytics."""

    stats = manager.stats()
    if stats["total"] == 0:
        return "No tasks loaded yet."
    return json.dumps(stats, indent=2)


if __name__ == "__main__":
    mcp.run(transport="stdio")
