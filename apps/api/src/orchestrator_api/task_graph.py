"""Dependency graph queries over a task snapshot.

Every function here is read-only: it takes a mapping of task id to task
record (as returned by ``TaskStore.snapshot()``) and never mutates it.
Iteration over the snapshot follows its insertion order, which is task
creation order, so results are reproducible for identical snapshots.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Protocol, TypeVar

from orchestrator_api.schemas import TaskStatus


class TaskLike(Protocol):
    id: str
    status: TaskStatus
    dependencies: list[str] | None


T = TypeVar("T", bound=TaskLike)


def is_available(task: TaskLike, snapshot: Mapping[str, TaskLike]) -> bool:
    if task.status != TaskStatus.PENDING:
        return False
    for dependency_id in task.dependencies or ():
        dependency = snapshot.get(dependency_id)
        if dependency is None or dependency.status != TaskStatus.COMPLETED:
            return False
    return True


def find_next_available(snapshot: Mapping[str, T]) -> T | None:
    for task in snapshot.values():
        if is_available(task, snapshot):
            return task
    return None


def find_unlocked(completed_id: str, snapshot: Mapping[str, T]) -> list[T]:
    return [
        task
        for task in snapshot.values()
        if completed_id in (task.dependencies or ()) and is_available(task, snapshot)
    ]


def find_dependents(task_id: str, snapshot: Mapping[str, TaskLike]) -> list[str]:
    return [task.id for task in snapshot.values() if task_id in (task.dependencies or ())]


def missing_dependencies(dependencies: Iterable[str], snapshot: Mapping[str, TaskLike]) -> list[str]:
    return [dependency_id for dependency_id in dependencies if dependency_id not in snapshot]


def has_cycle(candidate_id: str, proposed_deps: Iterable[str], snapshot: Mapping[str, TaskLike]) -> bool:
    """Return True if giving ``candidate_id`` these dependencies closes a loop.

    Walks depth-first from every proposed dependency along the existing
    dependency edges. Reaching ``candidate_id`` (including the direct
    ``dep == candidate_id`` case) or meeting a node already on the current
    path both count as a cycle. The candidate's own stored edges are never
    followed, so re-validating an update ignores the dependencies it is
    about to replace.
    """
    for root in proposed_deps:
        if root == candidate_id or _walk_reaches(root, candidate_id, snapshot):
            return True
    return False


def _walk_reaches(root: str, target: str, snapshot: Mapping[str, TaskLike]) -> bool:
    on_path: set[str] = {root}
    finished: set[str] = set()
    stack: list[tuple[str, Iterator[str]]] = [(root, _edges(root, snapshot))]

    while stack:
        node, edges = stack[-1]
        next_node = next(edges, None)
        if next_node is None:
            stack.pop()
            on_path.discard(node)
            finished.add(node)
            continue
        if next_node == target or next_node in on_path:
            return True
        if next_node in finished:
            continue
        on_path.add(next_node)
        stack.append((next_node, _edges(next_node, snapshot)))

    return False


def _edges(task_id: str, snapshot: Mapping[str, TaskLike]) -> Iterator[str]:
    task = snapshot.get(task_id)
    if task is None:
        return iter(())
    return iter(task.dependencies or ())
