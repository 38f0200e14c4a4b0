"""Error taxonomy for the task engine."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class TaskflowError(Exception):
    """Base class for every failure a task operation can report."""

    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "retryable": self.retryable,
        }


class ValidationError(TaskflowError):
    """Field-level input errors, keyed by field name."""

    def __init__(self, errors: Dict[str, str]):
        if not errors:
            raise ValueError("ValidationError requires at least one field error")
        self.errors = dict(errors)
        self.field = next(iter(self.errors))
        super().__init__("; ".join(f"{name}: {text}" for name, text in self.errors.items()))

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        data["errors"] = dict(self.errors)
        return data


class DependencyNotSatisfied(TaskflowError):
    """A task cannot move to DONE while any of its dependencies is open."""

    def __init__(self, task_id: str, blocking: Iterable[str]):
        self.task_id = task_id
        self.blocking: List[str] = list(blocking)
        super().__init__(
            f"Task '{task_id}' is blocked by unfinished dependencies: {', '.join(self.blocking)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["task_id"] = self.task_id
        data["blocking"] = list(self.blocking)
        return data


class TransientTransportError(TaskflowError):
    """The remote effect failed in a way that may succeed on retry."""

    retryable = True

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message or f"Remote call for '{operation}' failed")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["operation"] = self.operation
        return data


class NotFoundError(TaskflowError):
    """The referenced task id is not present in the store."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["task_id"] = self.task_id
        return data
