"""Mutation pipeline: validate, perform the remote effect, commit.

Each public operation is a coroutine that suspends only while the
transport performs its remote effect. Validation failures short-circuit
before the transport is touched. The store is written at most once per
operation, and only after the transport succeeded. Every outcome is
returned as a MutationResult and announced through observability hooks;
domain failures are never raised to the caller.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from .dependencies import blocking_dependencies, dependents
from .errors import DependencyNotSatisfied, TaskflowError, TransientTransportError, ValidationError
from .models import STATUSES, Comment, Task
from .store import TaskStore
from .taskflow_logging import (
    ObservabilityHooks,
    log_error_with_context,
    log_performance,
    log_status_change,
    log_task_created,
    log_task_deleted,
    log_task_updated,
    observability_hooks,
)
from .transport import DirectTransport, TransportPolicy
from .validation import (
    EDITABLE_FIELDS,
    normalize_fields,
    validate_comment,
    validate_dependencies,
    validate_hours,
    validate_task_fields,
)

logger = logging.getLogger("taskflow.pipeline")

BULK_ACTIONS = ("complete", "delete")

RetryCallback = Callable[[], Awaitable["MutationResult"]]


@dataclass(slots=True)
class MutationResult:
    """Outcome of one mutation."""

    operation: str
    success: bool
    task: Optional[Task] = None
    task_id: Optional[str] = None
    error: Optional[TaskflowError] = None
    message: str = ""
    retry: Optional[RetryCallback] = None

    @property
    def retryable(self) -> bool:
        return self.retry is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "success": self.success,
            "task_id": self.task_id,
            "task": self.task.to_dict() if self.task else None,
            "error": self.error.to_dict() if self.error else None,
            "message": self.message,
            "retryable": self.retryable,
        }


@dataclass(slots=True)
class BulkResult:
    """Per-id outcomes of a bulk action. Items succeed or fail independently."""

    action: str
    results: List[MutationResult] = field(default_factory=list)
    error: Optional[TaskflowError] = None

    @property
    def succeeded(self) -> List[str]:
        return [r.task_id for r in self.results if r.success]

    @property
    def failed(self) -> List[str]:
        return [r.task_id for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return self.error is None and all(r.success for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "success": self.success,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
            "error": self.error.to_dict() if self.error else None,
        }


def _task_values(task: Task) -> Dict[str, Any]:
    return {name: getattr(task, name) for name in EDITABLE_FIELDS}


def _raise_if_invalid(errors: Mapping[str, str]) -> None:
    if errors:
        raise ValidationError(dict(errors))


class MutationPipeline:
    """Runs every state-changing operation against a TaskStore."""

    def __init__(
        self,
        store: TaskStore,
        transport: Optional[TransportPolicy] = None,
        *,
        hooks: Optional[ObservabilityHooks] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.transport = transport or DirectTransport()
        self.hooks = hooks or observability_hooks
        self.clock = clock or store.clock

    # ------------------------------------------------------------------
    # Core runner
    # ------------------------------------------------------------------

    async def _execute(
        self,
        operation: str,
        task_id: Optional[str],
        *,
        validate: Callable[[], None],
        commit: Callable[[], Task],
        retry: RetryCallback,
        success_message: str,
    ) -> MutationResult:
        try:
            validate()
            await self.transport.perform(operation)
            task = commit()
        except TransientTransportError as e:
            return self._failure(operation, task_id, e, retry)
        except TaskflowError as e:
            return self._failure(operation, task_id, e, None)
        except Exception as e:
            log_error_with_context(e, {"operation": operation, "task_id": task_id})
            raise

        result = MutationResult(
            operation=operation,
            success=True,
            task=task,
            task_id=task.id,
            message=success_message,
        )
        self.hooks.log_task_event(
            "mutation_succeeded",
            task_id=task.id,
            operation=operation,
            message=success_message,
            result=result,
        )
        return result

    def _failure(
        self,
        operation: str,
        task_id: Optional[str],
        error: TaskflowError,
        retry: Optional[RetryCallback],
    ) -> MutationResult:
        message = f"Failed to {operation.replace('_', ' ')}: {error.message}"
        logger.warning(message)
        result = MutationResult(
            operation=operation,
            success=False,
            task_id=task_id,
            error=error,
            message=message,
            retry=retry,
        )
        self.hooks.log_task_event(
            "mutation_failed",
            task_id=task_id,
            operation=operation,
            message=message,
            error=error.to_dict(),
            result=result,
        )
        return result

    def _check_completion(self, task: Task) -> None:
        blocking = blocking_dependencies(task, self.store.snapshot())
        if blocking:
            raise DependencyNotSatisfied(task.id, blocking)

    def _check_dependencies(self, task_id: Optional[str], dependencies: Iterable[str]) -> None:
        # Re-run at commit time: other mutations may have landed while suspended.
        _raise_if_invalid(validate_dependencies(task_id, dependencies, self.store.snapshot()))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @log_performance("add_task")
    async def add_task(self, draft: Mapping[str, Any]) -> MutationResult:
        """Create a task from a draft; it gets a fresh id and starts at 0% progress."""
        values, errors = normalize_fields(draft)

        def validate() -> None:
            problems = dict(errors)
            problems.update(validate_task_fields(values, self.clock()))
            if "dependencies" not in problems:
                problems.update(
                    validate_dependencies(None, values.get("dependencies", []), self.store.snapshot())
                )
            _raise_if_invalid(problems)

        def commit() -> Task:
            now = self.clock()
            task = Task(id=self.store.new_id(), created_at=now, updated_at=now, **values)
            self._check_dependencies(None, task.dependencies)
            if task.status == "DONE":
                self._check_completion(task)
            stored = self.store.insert(task)
            log_task_created(stored.id, stored.title, hooks=self.hooks)
            return stored

        return await self._execute(
            "add_task",
            None,
            validate=validate,
            commit=commit,
            retry=partial(self.add_task, dict(draft)),
            success_message="Task created successfully!",
        )

    @log_performance("update_task")
    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> MutationResult:
        """Apply a field patch to an existing task.

        The patch is validated merged over the current record. The
        "not in the past" due date rule only applies when the patch
        changes the due date.
        """
        values, errors = normalize_fields(patch)

        def validate() -> None:
            current = self.store.get(task_id)
            merged = _task_values(current)
            merged.update(values)
            problems = dict(errors)
            problems.update(
                validate_task_fields(merged, self.clock(), check_due_in_past="due_date" in values)
            )
            if "dependencies" in values and "dependencies" not in problems:
                problems.update(
                    validate_dependencies(task_id, values["dependencies"], self.store.snapshot())
                )
            _raise_if_invalid(problems)
            if merged["status"] == "DONE" and current.status != "DONE":
                candidate = current.copy()
                candidate.dependencies = list(merged["dependencies"])
                self._check_completion(candidate)

        changes: Dict[str, tuple] = {}

        def mutate(task: Task) -> None:
            old_status = task.status
            for name, value in values.items():
                setattr(task, name, value)
            if "dependencies" in values:
                self._check_dependencies(task_id, task.dependencies)
            if task.status == "DONE" and old_status != "DONE":
                self._check_completion(task)
            changes["status"] = (old_status, task.status)

        def commit() -> Task:
            stored = self.store.replace(task_id, mutate)
            log_task_updated(task_id, sorted(values), hooks=self.hooks)
            old_status, new_status = changes["status"]
            if old_status != new_status:
                log_status_change(task_id, old_status, new_status, hooks=self.hooks)
            return stored

        return await self._execute(
            "update_task",
            task_id,
            validate=validate,
            commit=commit,
            retry=partial(self.update_task, task_id, dict(patch)),
            success_message="Task updated successfully!",
        )

    @log_performance("move_status")
    async def move_status(self, task_id: str, status: str) -> MutationResult:
        """Move a task to another column.

        Any status can be reached from any other, except that entering
        DONE requires every dependency to be DONE. The gate is checked
        before the remote call and again against the committed state.
        """
        def validate() -> None:
            if status not in STATUSES:
                raise ValidationError({"status": f"Status must be one of {', '.join(STATUSES)}"})
            current = self.store.get(task_id)
            if status == "DONE" and current.status != "DONE":
                self._check_completion(current)

        previous: Dict[str, str] = {}

        def mutate(task: Task) -> None:
            previous["status"] = task.status
            if status == "DONE" and task.status != "DONE":
                self._check_completion(task)
            task.status = status

        def commit() -> Task:
            stored = self.store.replace(task_id, mutate)
            if previous["status"] != status:
                log_status_change(task_id, previous["status"], status, hooks=self.hooks)
            return stored

        return await self._execute(
            "move_status",
            task_id,
            validate=validate,
            commit=commit,
            retry=partial(self.move_status, task_id, status),
            success_message="Task moved successfully!",
        )

    @log_performance("delete_task")
    async def delete_task(self, task_id: str) -> MutationResult:
        """Hard-delete a task. Tasks depending on it keep the dangling id."""
        def validate() -> None:
            self.store.get(task_id)

        def commit() -> Task:
            orphaned = dependents(task_id, self.store.snapshot())
            removed = self.store.delete(task_id)
            if orphaned:
                logger.warning(
                    f"Deleted task {task_id} is still listed as a dependency of: {', '.join(sorted(orphaned))}"
                )
            log_task_deleted(task_id, dependents=sorted(orphaned), hooks=self.hooks)
            return removed

        return await self._execute(
            "delete_task",
            task_id,
            validate=validate,
            commit=commit,
            retry=partial(self.delete_task, task_id),
            success_message="Task deleted successfully!",
        )

    @log_performance("add_comment")
    async def add_comment(self, task_id: str, text: str, author: str) -> MutationResult:
        def validate() -> None:
            _raise_if_invalid(validate_comment(text, author))
            self.store.get(task_id)

        def mutate(task: Task) -> None:
            task.comments.append(Comment(
                id=f"C-{uuid.uuid4().hex[:8].upper()}",
                text=text.strip(),
                author=author.strip(),
                date=self.clock(),
            ))

        return await self._execute(
            "add_comment",
            task_id,
            validate=validate,
            commit=lambda: self.store.replace(task_id, mutate),
            retry=partial(self.add_comment, task_id, text, author),
            success_message="Comment added",
        )

    @log_performance("log_time")
    async def log_time(self, task_id: str, hours: float) -> MutationResult:
        """Add worked hours to the task's actual hours."""
        def validate() -> None:
            _raise_if_invalid(validate_hours(hours))
            self.store.get(task_id)

        def mutate(task: Task) -> None:
            task.actual_hours = (task.actual_hours or 0) + float(hours)

        return await self._execute(
            "log_time",
            task_id,
            validate=validate,
            commit=lambda: self.store.replace(task_id, mutate),
            retry=partial(self.log_time, task_id, hours),
            success_message="Time logged successfully",
        )

    async def bulk_action(self, task_ids: Iterable[str], action: str) -> BulkResult:
        """Complete or delete several tasks, each as its own sub-operation.

        Items already applied are kept when a later item fails.
        """
        if action not in BULK_ACTIONS:
            error = ValidationError({"action": f"Bulk action must be one of {', '.join(BULK_ACTIONS)}"})
            logger.warning(error.message)
            return BulkResult(action=action, error=error)

        result = BulkResult(action=action)
        seen = set()
        for task_id in task_ids:
            if task_id in seen:
                continue
            seen.add(task_id)
            if action == "complete":
                result.results.append(await self.move_status(task_id, "DONE"))
            else:
                result.results.append(await self.delete_task(task_id))

        logger.info(
            f"Bulk {action}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return result
