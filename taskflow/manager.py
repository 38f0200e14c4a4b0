"""Session-level task management for Taskflow.

This module provides the object a front end talks to: it owns the task
store and mutation pipeline for one session, answers read queries from
fresh projections, and reports every mutation as a JSON-ready dictionary
with guidance on what to do next.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .analytics import aggregate
from .config import Settings
from .dependencies import blocking_dependencies, dependents
from .errors import DependencyNotSatisfied, NotFoundError, TaskflowError, TransientTransportError, ValidationError
from .models import Query
from .pipeline import BulkResult, MutationPipeline, MutationResult, RetryCallback
from .store import TaskRecord, TaskStore
from .taskflow_logging import log_operation, observability_hooks
from .transport import TransportPolicy, build_transport
from . import views

logger = logging.getLogger("taskflow.manager")

MAX_PENDING_RETRIES = 100


class TaskManager:
    """Owns the store and pipeline for one session."""

    def __init__(
        self,
        store: Optional[TaskStore] = None,
        transport: Optional[TransportPolicy] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize the manager; the transport defaults to what the settings ask for."""
        self.settings = settings or Settings()
        self.store = store or TaskStore()
        self.transport = transport or build_transport(self.settings)
        self.pipeline = MutationPipeline(self.store, self.transport, hooks=observability_hooks)
        self._retries: OrderedDict[str, RetryCallback] = OrderedDict()

    # ------------------------------------------------------------------
    # Initial load
    # ------------------------------------------------------------------

    async def initialize(self, records: Iterable[TaskRecord]) -> Dict[str, Any]:
        """Load the initial task collection through the transport."""
        records = list(records)
        try:
            with log_operation("load_tasks", record_count=len(records)):
                await self.transport.perform("load_tasks")
                loaded = self.store.load(records)
        except TransientTransportError as e:
            token = self._remember_retry(lambda: self.initialize(records))
            return {
                "error": f"Failed to load tasks: {e.message}",
                "suggestion": "Retry the initial load",
                "retry_token": token,
                "message": f"Error: {e.message}",
            }

        logger.info(f"Initialized session with {len(loaded)} tasks")
        return {
            "loaded": len(loaded),
            "task_ids": [task.id for task in loaded],
            "message": f"Loaded {len(loaded)} tasks",
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_task(self, **draft: Any) -> Dict[str, Any]:
        """Create a task."""
        result = await self.pipeline.add_task(draft)
        return self._result_dict(result, next_step="list_tasks")

    async def update_task(self, task_id: str, **patch: Any) -> Dict[str, Any]:
        """Update fields of a task."""
        result = await self.pipeline.update_task(task_id, patch)
        return self._result_dict(result, next_step="get_task")

    async def move_task(self, task_id: str, status: str) -> Dict[str, Any]:
        """Move a task to another status column."""
        result = await self.pipeline.move_status(task_id, status)
        return self._result_dict(result, next_step="board")

    async def delete_task(self, task_id: str) -> Dict[str, Any]:
        """Delete a task."""
        result = await self.pipeline.delete_task(task_id)
        return self._result_dict(result, next_step="list_tasks")

    async def add_comment(self, task_id: str, text: str, author: str) -> Dict[str, Any]:
        result = await self.pipeline.add_comment(task_id, text, author)
        return self._result_dict(result, next_step="get_task")

    async def log_time(self, task_id: str, hours: float) -> Dict[str, Any]:
        result = await self.pipeline.log_time(task_id, hours)
        return self._result_dict(result, next_step="stats")

    async def bulk_action(self, task_ids: List[str], action: str) -> Dict[str, Any]:
        """Complete or delete several tasks; each id succeeds or fails on its own."""
        result: BulkResult = await self.pipeline.bulk_action(task_ids, action)
        data = result.to_dict()
        if result.error:
            data.update({
                "error": result.error.message,
                "suggestion": "Use 'complete' or 'delete'",
                "message": f"Error: {result.error.message}",
            })
            return data

        retry_tokens = {}
        for item in result.results:
            if item.retry is not None:
                retry_tokens[item.task_id] = self._remember_retry(item.retry)
        data["retry_tokens"] = retry_tokens
        data["message"] = (
            f"Bulk {action}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return data

    async def retry(self, retry_token: str) -> Dict[str, Any]:
        """Re-run a failed operation once; a new failure hands out a new token."""
        callback = self._retries.pop(retry_token, None)
        if callback is None:
            return {
                "error": f"Unknown or already used retry token '{retry_token}'",
                "suggestion": "Repeat the original operation instead",
                "message": "Nothing to retry",
            }
        result = await callback()
        if isinstance(result, MutationResult):
            return self._result_dict(result, next_step="list_tasks")
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Dict[str, Any]:
        try:
            task = self.store.get(task_id)
        except NotFoundError as e:
            return {
                "error": e.message,
                "suggestion": "Use list_tasks to find valid task ids",
                "next_suggested_step": "list_tasks",
            }
        return {"task": task.to_dict(), "overdue": views.is_overdue(task), "days_until_due": views.days_until_due(task)}

    def list_tasks(self, **query: Any) -> Dict[str, Any]:
        """Filtered and sorted task list."""
        try:
            parsed = Query.from_dict(query)
        except TaskflowError as e:
            return self._query_error(e)
        tasks = views.filter_and_sort(self.store.snapshot(), parsed)
        return {
            "tasks": [task.to_dict() for task in tasks],
            "total_count": len(tasks),
            "filters_applied": parsed.to_dict(),
        }

    def board(self, **query: Any) -> Dict[str, Any]:
        """Kanban columns for the filtered tasks."""
        try:
            parsed = Query.from_dict(query)
        except TaskflowError as e:
            return self._query_error(e)
        columns = views.columns(self.store.snapshot(), parsed)
        return {
            "columns": {status: [task.to_dict() for task in items] for status, items in columns.items()},
            "counts": {status: len(items) for status, items in columns.items()},
        }

    def calendar(self, day: Optional[str] = None, **query: Any) -> Dict[str, Any]:
        """Tasks grouped by due day, or only those due on ``day``."""
        try:
            parsed = Query.from_dict(query)
        except TaskflowError as e:
            return self._query_error(e)
        buckets = views.calendar(self.store.snapshot(), parsed)
        if day:
            try:
                wanted = date.fromisoformat(day)
            except ValueError:
                return {"error": f"Invalid day '{day}'", "suggestion": "Use YYYY-MM-DD"}
            buckets = {wanted: buckets.get(wanted, [])}
        return {
            "days": {d.isoformat(): [task.to_dict() for task in items] for d, items in buckets.items()},
        }

    def recent(self, limit: Optional[int] = None) -> Dict[str, Any]:
        if limit is None:
            limit = self.settings.recent_limit
        tasks = views.recent(self.store.snapshot(), limit)
        return {"tasks": [task.to_dict() for task in tasks], "count": len(tasks)}

    def stats(self) -> Dict[str, Any]:
        """Analytics snapshot of the whole collection."""
        return aggregate(self.store.snapshot()).to_dict()

    def dependency_status(self, task_id: str) -> Dict[str, Any]:
        """Whether a task can be completed, what blocks it and what depends on it."""
        snapshot = self.store.snapshot()
        try:
            task = self.store.get(task_id)
        except NotFoundError as e:
            return {"error": e.message, "suggestion": "Use list_tasks to find valid task ids"}
        blocking = blocking_dependencies(task, snapshot)
        return {
            "task_id": task_id,
            "can_complete": not blocking,
            "blocking": blocking,
            "dependents": sorted(dependents(task_id, snapshot)),
        }

    # ------------------------------------------------------------------
    # Private helper methods
    # ------------------------------------------------------------------

    def _remember_retry(self, callback: RetryCallback) -> str:
        token = uuid.uuid4().hex
        self._retries[token] = callback
        while len(self._retries) > MAX_PENDING_RETRIES:
            expired, _ = self._retries.popitem(last=False)
            logger.debug(f"Dropped unused retry token {expired}")
        return token

    def _result_dict(self, result: MutationResult, next_step: str) -> Dict[str, Any]:
        data = result.to_dict()
        if result.success:
            data["next_suggested_step"] = next_step
            return data

        error = result.error
        data["details"] = data.pop("error")
        data["error"] = result.message
        if result.retry is not None:
            data["retry_token"] = self._remember_retry(result.retry)
            data["suggestion"] = "Temporary failure; call retry with the retry_token"
        elif isinstance(error, ValidationError):
            data["suggestion"] = "Fix the listed fields and submit again"
        elif isinstance(error, DependencyNotSatisfied):
            data["suggestion"] = "Complete the blocking tasks first"
        else:
            data["suggestion"] = "Use list_tasks to find valid task ids"
        return data

    def _query_error(self, error: TaskflowError) -> Dict[str, Any]:
        return {
            "error": f"Invalid query: {error.message}",
            "suggestion": "Check your filter and sort parameters",
            "details": error.to_dict(),
        }
