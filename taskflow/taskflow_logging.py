"""Logging and observability utilities for Taskflow.

This module provides structured logging, performance monitoring,
and observability hooks for the task engine.
"""

from __future__ import annotations

import inspect
import json
import time
import logging as std_logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from functools import wraps

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s"


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Setup structured logging for Taskflow.

    Console output is human readable; the optional log file receives one
    JSON object per record at DEBUG level.
    """
    root = std_logging.getLogger("taskflow")
    root.setLevel(log_level)
    root.handlers.clear()

    handlers: List[std_logging.Handler] = [std_logging.StreamHandler()]
    handlers[0].setLevel(log_level)
    handlers[0].setFormatter(std_logging.Formatter(fmt=CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    if log_file:
        file_handler = std_logging.FileHandler(log_file)
        file_handler.setLevel(std_logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        root.addHandler(handler)
    root.info(f"Taskflow logging initialized ({len(handlers)} handlers)")


class JsonFormatter(std_logging.Formatter):
    """One JSON object per record, merged with any ``extra_fields``."""

    def format(self, record: std_logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(getattr(record, "extra_fields", {}))
        return json.dumps(entry, default=str)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PerformanceMonitor:
    """Duration samples per metric name, kept for the life of the process."""

    def __init__(self):
        self.metrics: Dict[str, List[Dict[str, Any]]] = {}

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        metric = {"timestamp": _utcnow_iso(), "name": name, "value": value, "tags": tags or {}}
        self.metrics.setdefault(name, []).append(metric)
        std_logging.getLogger("taskflow.performance").debug(
            f"Metric recorded: {name}={value}", extra={"extra_fields": metric}
        )


# Global performance monitor instance
performance_monitor = PerformanceMonitor()


def _report(
    logger: std_logging.Logger,
    operation_name: str,
    start_time: float,
    error: Optional[Exception] = None,
    **extra_fields,
) -> Dict[str, Any]:
    """Log the end of an operation and return the fields that were logged."""
    duration = time.monotonic() - start_time
    fields = {"operation": operation_name, "duration": duration, **extra_fields}
    if error is None:
        fields["status"] = "success"
        logger.info(f"Completed operation: {operation_name} in {duration:.3f}s", extra={"extra_fields": fields})
    else:
        fields.update(status="error", error_type=type(error).__name__, error_message=str(error))
        logger.error(
            f"Failed operation: {operation_name} after {duration:.3f}s - {error}",
            extra={"extra_fields": fields},
            exc_info=True,
        )
    return fields


def _record(operation_name: str, start_time: float, error: Optional[Exception] = None) -> None:
    fields = _report(std_logging.getLogger("taskflow.performance"), operation_name, start_time, error)
    tags = {"status": fields["status"]}
    if error is not None:
        tags["error_type"] = fields["error_type"]
    performance_monitor.record_metric(f"{operation_name}_duration", fields["duration"], tags)


def log_performance(operation_name: str):
    """Decorator timing a sync function or a coroutine function.

    Exceptions are recorded and re-raised; the pipeline reports domain
    failures as results, so only unexpected errors end up here.
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.monotonic()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record(operation_name, start_time, e)
                    raise
                _record(operation_name, start_time)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record(operation_name, start_time, e)
                raise
            _record(operation_name, start_time)
            return result

        return wrapper
    return decorator


@contextmanager
def log_operation(operation_name: str, **extra_fields):
    """Log the start and end of a block; exceptions are logged and re-raised."""
    logger = std_logging.getLogger("taskflow.operations")
    start_time = time.monotonic()
    logger.debug(f"Starting operation: {operation_name}", extra={"extra_fields": {
        "operation": operation_name, "status": "started", **extra_fields
    }})
    try:
        yield
    except Exception as e:
        _report(logger, operation_name, start_time, e, **extra_fields)
        raise
    _report(logger, operation_name, start_time, **extra_fields)


class ObservabilityHooks:
    """Event hooks used to notify callers about task engine events."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = std_logging.getLogger("taskflow.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        """Register a callback for a specific event type."""
        self.hooks.setdefault(event_type, []).append(callback)
        self.logger.debug(f"Registered hook for event: {event_type}")

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Trigger all callbacks for a specific event type.

        A failing hook is logged and never interrupts the remaining hooks
        or the operation that emitted the event.
        """
        if event_type in self.hooks:
            self.logger.debug(f"Triggering {len(self.hooks[event_type])} hooks for event: {event_type}")
            for hook in list(self.hooks[event_type]):
                try:
                    hook(**data)
                except Exception as e:
                    self.logger.error(f"Hook failed for event {event_type}: {e}")

    def log_task_event(self, event_type: str, task_id: Optional[str] = None, **data) -> None:
        """Log a task event and trigger hooks."""
        event_data = {
            "timestamp": _utcnow_iso(),
            "event_type": event_type,
            "task_id": task_id,
            **data
        }

        printable = {k: v for k, v in event_data.items() if not callable(v)}
        self.logger.info(f"Task event: {event_type}", extra={"extra_fields": printable})

        hook_data = {k: v for k, v in event_data.items() if k != "event_type"}
        self.trigger_hooks(event_type, **hook_data)


# Global observability hooks instance
observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields):
    """Log an unexpected error together with the operation it interrupted."""
    operation = context.get("operation", "unknown operation")
    std_logging.getLogger("taskflow.errors").error(
        f"Error in {operation}: {error}",
        extra={"extra_fields": {
            "timestamp": _utcnow_iso(),
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context,
            **extra_fields,
        }},
        exc_info=True,
    )


def _emit(event_type: str, task_id: str, hooks: Optional[ObservabilityHooks], **data) -> None:
    (hooks or observability_hooks).log_task_event(event_type, task_id=task_id, **data)


def log_task_created(task_id: str, title: str, *, hooks: Optional[ObservabilityHooks] = None, **extra_fields):
    _emit("task_created", task_id, hooks, title=title, **extra_fields)


def log_task_updated(task_id: str, fields: List[str], *, hooks: Optional[ObservabilityHooks] = None, **extra_fields):
    _emit("task_updated", task_id, hooks, fields=fields, **extra_fields)


def log_status_change(
    task_id: str,
    old_status: str,
    new_status: str,
    *,
    hooks: Optional[ObservabilityHooks] = None,
    **extra_fields,
):
    """Log a status transition, e.g. TODO -> IN_PROGRESS."""
    _emit("task_status_changed", task_id, hooks, old_status=old_status, new_status=new_status, **extra_fields)


def log_task_deleted(task_id: str, *, hooks: Optional[ObservabilityHooks] = None, **extra_fields):
    _emit("task_deleted", task_id, hooks, **extra_fields)
