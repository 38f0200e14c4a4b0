"""Dependency resolution over a task collection.

All functions are pure: they take a sequence of tasks (usually a store
snapshot) and never mutate it. Dependency ids that do not resolve to a
task count as unsatisfied.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Set

from .models import Task


def _index(tasks: Iterable[Task]) -> Dict[str, Task]:
    return {task.id: task for task in tasks}


def blocking_dependencies(task: Task, tasks: Sequence[Task]) -> List[str]:
    """Ids of dependencies that are missing or not DONE, in declared order."""
    by_id = _index(tasks)
    blocking = []
    for dep_id in task.dependencies:
        dep = by_id.get(dep_id)
        if dep is None or dep.status != "DONE":
            blocking.append(dep_id)
    return blocking


def can_complete(task: Task, tasks: Sequence[Task]) -> bool:
    """True when the task has no dependencies or all of them are DONE."""
    return not blocking_dependencies(task, tasks)


def dependents(task_id: str, tasks: Iterable[Task]) -> Set[str]:
    """Ids of every task that lists ``task_id`` as a dependency."""
    return {task.id for task in tasks if task_id in task.dependencies}


def dependency_graph(tasks: Iterable[Task]) -> Dict[str, List[str]]:
    return {task.id: list(task.dependencies) for task in tasks}


def would_create_cycle(task_id: str, new_dependencies: Iterable[str], tasks: Iterable[Task]) -> bool:
    """Would giving ``task_id`` these dependencies close a loop back to itself?

    Depth-first walk from each proposed dependency along existing edges
    (ignoring the task's current edges, which are being replaced).
    """
    graph = dependency_graph(tasks)
    graph[task_id] = []
    visited: Set[str] = set()
    stack = list(new_dependencies)
    while stack:
        node = stack.pop()
        if node == task_id:
            return True
        if node in visited:
            continue
        visited.add(node)
        stack.extend(graph.get(node, []))
    return False


def find_cycles(tasks: Iterable[Task]) -> List[List[str]]:
    """Return dependency cycles already present, each as a closed id path."""
    graph = dependency_graph(tasks)
    visited: Set[str] = set()
    on_stack: Set[str] = set()
    stack: List[str] = []
    cycles: List[List[str]] = []

    def dfs(node: str) -> None:
        if node in on_stack:
            idx = stack.index(node)
            cycles.append(stack[idx:] + [node])
            return
        if node in visited:
            return
        visited.add(node)
        stack.append(node)
        on_stack.add(node)
        for neighbour in graph.get(node, []):
            if neighbour in graph:
                dfs(neighbour)
        stack.pop()
        on_stack.remove(node)

    for node in graph:
        if node not in visited:
            dfs(node)
    return cycles
