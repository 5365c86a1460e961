from __future__ import annotations

import logging
import threading

from orchestrator_api.errors import (
    CycleDetectedError,
    DependencyNotFoundError,
    DuplicateIdError,
    HasDependentsError,
    InvalidStateError,
    NotOwnerError,
    TaskNotFoundError,
)
from orchestrator_api.schemas import (
    CompleteTaskResponse,
    DeleteTaskResponse,
    TaskCreate,
    TaskRead,
    TaskStatus,
    TaskUpdate,
)
from orchestrator_api.task_graph import (
    find_dependents,
    find_next_available,
    find_unlocked,
    has_cycle,
    missing_dependencies,
)
from orchestrator_api.task_store import TaskRecord, TaskStore

logger = logging.getLogger(__name__)


class TaskLedger:
    """Task state machine over a ``TaskStore``.

    Every operation validates against a snapshot first and only then
    mutates, so a rejected request leaves the store untouched. Successful
    mutations end with ``store.persist()``; if that raises, the in-memory
    change stays applied and the storage error reaches the caller.
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store
        self._lock = threading.RLock()

    @property
    def store(self) -> TaskStore:
        return self._store

    def create_task(self, task: TaskCreate) -> TaskRead:
        with self._lock:
            snapshot = self._store.snapshot()
            if task.id in snapshot:
                logger.debug("Rejected create of %s: duplicate id", task.id)
                raise DuplicateIdError(task.id)
            if task.dependencies:
                self._validate_dependencies(task.id, task.dependencies)

            record = TaskRecord(
                id=task.id,
                description=task.description,
                dependencies=list(task.dependencies) if task.dependencies is not None else None,
            )
            self._store.put(record)
            logger.info("Created task %s dependencies=%s", record.id, record.dependencies or [])
            self._store.persist()
            return record.to_read()

    def update_task(self, task_id: str, update: TaskUpdate) -> TaskRead:
        with self._lock:
            record = self._require(task_id)
            if record.status != TaskStatus.PENDING:
                logger.debug("Rejected update of %s: status %s", task_id, record.status.value)
                raise InvalidStateError(task_id, record.status.value, TaskStatus.PENDING.value)
            if update.dependencies is not None:
                self._validate_dependencies(task_id, update.dependencies)

            if update.description is not None:
                record.description = update.description
            if update.dependencies is not None:
                record.dependencies = list(update.dependencies)
            logger.info(
                "Updated task %s description=%s dependencies=%s",
                task_id,
                update.description is not None,
                update.dependencies,
            )
            self._store.persist()
            return record.to_read()

    def delete_task(self, task_id: str) -> DeleteTaskResponse:
        with self._lock:
            self._require(task_id)
            dependents = find_dependents(task_id, self._store.snapshot())
            if dependents:
                logger.debug("Rejected delete of %s: dependents %s", task_id, dependents)
                raise HasDependentsError(task_id, dependents)

            self._store.remove(task_id)
            logger.info("Deleted task %s", task_id)
            self._store.persist()
            return DeleteTaskResponse(task_id=task_id)

    def assign_next_task(self, instance_id: str) -> TaskRead | None:
        with self._lock:
            record = find_next_available(self._store.snapshot())
            if record is None:
                logger.debug("No tasks available for instance %s", instance_id)
                return None

            record.status = TaskStatus.IN_PROGRESS
            record.assigned_to = instance_id
            logger.info("Assigned task %s to instance %s", record.id, instance_id)
            self._store.persist()
            return record.to_read()

    def complete_task(self, task_id: str, *, instance_id: str, result: str) -> CompleteTaskResponse:
        with self._lock:
            record = self._require(task_id)
            if record.assigned_to != instance_id:
                logger.debug("Rejected completion of %s by %s: owner is %s", task_id, instance_id, record.assigned_to)
                raise NotOwnerError(task_id, instance_id)
            if record.status != TaskStatus.IN_PROGRESS:
                raise InvalidStateError(task_id, record.status.value, TaskStatus.IN_PROGRESS.value)

            record.status = TaskStatus.COMPLETED
            record.result = result
            unlocked = find_unlocked(task_id, self._store.snapshot())
            logger.info(
                "Task %s completed by instance %s, unlocked=%s",
                task_id,
                instance_id,
                [task.id for task in unlocked],
            )
            self._store.persist()
            return CompleteTaskResponse(
                completed_task=record.to_read(),
                unlocked_tasks=[task.to_read() for task in unlocked],
            )

    def list_tasks(self) -> list[TaskRead]:
        with self._lock:
            return [record.to_read() for record in self._store.snapshot().values()]

    def get_task(self, task_id: str) -> TaskRead:
        with self._lock:
            return self._require(task_id).to_read()

    def _require(self, task_id: str) -> TaskRecord:
        record = self._store.get(task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        return record

    def _validate_dependencies(self, task_id: str, dependencies: list[str]) -> None:
        snapshot = self._store.snapshot()
        missing = missing_dependencies(dependencies, snapshot)
        if missing:
            logger.debug("Rejected dependencies of %s: missing %s", task_id, missing)
            raise DependencyNotFoundError(missing)
        if has_cycle(task_id, dependencies, snapshot):
            logger.debug("Rejected dependencies of %s: cycle via %s", task_id, dependencies)
            raise CycleDetectedError(task_id, dependencies)
