"""In-memory task store.

The store is the single source of truth for task records during a
session. Records are kept as private copies in an id-keyed mapping that is
replaced wholesale on every commit: writers are serialized by a lock, while
readers grab the current mapping without locking and therefore only ever
see fully committed state.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Union

from .errors import NotFoundError
from .models import Task, utcnow

logger = logging.getLogger("taskflow.store")

TaskRecord = Union[Task, Mapping[str, Any]]


def _generate_task_id() -> str:
    """Generate a unique task ID."""
    return f"TASK-{uuid.uuid4().hex[:8].upper()}"


class TaskStore:
    """Authoritative id -> Task mapping with atomic commits."""

    def __init__(
        self,
        records: Optional[Iterable[TaskRecord]] = None,
        *,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._records: Dict[str, Task] = {}
        self._issued: Set[str] = set()
        self._lock = threading.Lock()
        self._id_factory = id_factory or _generate_task_id
        self.clock = clock or utcnow
        if records:
            self.load(records)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._records

    def __iter__(self) -> Iterator[Task]:
        return iter(self.snapshot())

    def exists(self, task_id: str) -> bool:
        return task_id in self._records

    def ids(self) -> List[str]:
        return list(self._records)

    def get(self, task_id: str) -> Task:
        """Return a copy of the task, raising NotFoundError if absent."""
        task = self._records.get(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task.copy()

    def snapshot(self) -> List[Task]:
        """Copies of all tasks in insertion order."""
        records = self._records
        return [task.copy() for task in records.values()]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def new_id(self) -> str:
        """Return an id this store has never issued or loaded."""
        with self._lock:
            return self._reserve_id()

    def _reserve_id(self) -> str:
        task_id = self._id_factory()
        while task_id in self._issued:
            task_id = self._id_factory()
        self._issued.add(task_id)
        return task_id

    def load(self, records: Iterable[TaskRecord]) -> List[Task]:
        """Seed the store with Task objects or Task-shaped records.

        Records missing an id are given a fresh one. A later record with
        an id already present replaces the earlier one.
        """
        loaded: List[Task] = []
        with self._lock:
            updated = dict(self._records)
            for record in records:
                if isinstance(record, Task):
                    task = record.copy()
                else:
                    data = dict(record)
                    if not data.get("id"):
                        data["id"] = self._reserve_id()
                    task = Task.from_dict(data)
                self._issued.add(task.id)
                updated[task.id] = task
                loaded.append(task.copy())
            self._records = updated
        logger.info(f"Loaded {len(loaded)} tasks into store")
        return loaded

    def insert(self, task: Task) -> Task:
        """Commit a new task. Its id must have been issued by this store or be unused."""
        with self._lock:
            if task.id in self._records:
                raise ValueError(f"Task id '{task.id}' already exists")
            self._issued.add(task.id)
            updated = dict(self._records)
            updated[task.id] = task.copy()
            self._records = updated
        logger.debug(f"Inserted task {task.id}")
        return task.copy()

    def replace(self, task_id: str, mutator: Callable[[Task], None]) -> Task:
        """Apply ``mutator`` to the latest committed record and commit it atomically.

        The mutator works on a private copy; if it raises, nothing is
        committed. ``updated_at`` is bumped after the mutator runs.
        """
        with self._lock:
            current = self._records.get(task_id)
            if current is None:
                raise NotFoundError(task_id)
            working = current.copy()
            mutator(working)
            working.id = task_id
            working.touch(self.clock())
            updated = dict(self._records)
            updated[task_id] = working.copy()
            self._records = updated
        logger.debug(f"Committed update for task {task_id}")
        return working

    def delete(self, task_id: str) -> Task:
        """Hard-remove a task and return the removed record."""
        with self._lock:
            if task_id not in self._records:
                raise NotFoundError(task_id)
            updated = dict(self._records)
            removed = updated.pop(task_id)
            self._records = updated
        logger.debug(f"Deleted task {task_id}")
        return removed.copy()

    def clear(self) -> None:
        """Drop every record. Issued ids stay reserved."""
        with self._lock:
            self._records = {}
