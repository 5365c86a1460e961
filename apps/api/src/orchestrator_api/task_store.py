from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from orchestrator_api.errors import StorageCorruptError, StorageUnavailableError
from orchestrator_api.schemas import TaskRead, TaskStatus

logger = logging.getLogger(__name__)


@dataclass
class TaskRecord:
    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    dependencies: list[str] | None = None
    assigned_to: str | None = None
    result: str | None = None

    def to_read(self) -> TaskRead:
        return TaskRead(
            id=self.id,
            description=self.description,
            status=self.status,
            dependencies=list(self.dependencies) if self.dependencies is not None else None,
            assigned_to=self.assigned_to,
            result=self.result,
        )

    @classmethod
    def from_read(cls, task: TaskRead) -> "TaskRecord":
        return cls(
            id=task.id,
            description=task.description,
            status=task.status,
            dependencies=list(task.dependencies) if task.dependencies is not None else None,
            assigned_to=task.assigned_to,
            result=task.result,
        )


class TaskStore:
    """Canonical id -> task map plus its JSON file.

    The file holds one object keyed by task id, in creation order, with the
    same field names the wire format uses (``assignedTo``). Unset optional
    fields are omitted. ``state_file=None`` keeps everything in memory.
    """

    def __init__(self, state_file: str | Path | None = None) -> None:
        self._state_file = Path(state_file).expanduser() if state_file else None
        self._tasks: dict[str, TaskRecord] = self.load()
        logger.info("TaskStore ready file=%s total=%s", self._state_file, len(self._tasks))

    @property
    def state_file(self) -> Path | None:
        return self._state_file

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> TaskRecord | None:
        return self._tasks.get(task_id)

    def snapshot(self) -> Mapping[str, TaskRecord]:
        return MappingProxyType(dict(self._tasks))

    def put(self, record: TaskRecord) -> None:
        self._tasks[record.id] = record

    def remove(self, task_id: str) -> TaskRecord:
        return self._tasks.pop(task_id)

    def persist(self) -> None:
        self.save(self._tasks)

    def load(self) -> dict[str, TaskRecord]:
        if self._state_file is None or not self._state_file.exists():
            return {}

        try:
            raw = self._state_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageCorruptError(self._state_file, f"unreadable: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageCorruptError(self._state_file, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageCorruptError(self._state_file, "expected an object keyed by task id")

        tasks: dict[str, TaskRecord] = {}
        for key, value in data.items():
            try:
                task = TaskRead.model_validate(value)
            except ValidationError as exc:
                raise StorageCorruptError(self._state_file, f"task {key}: {exc}") from exc
            if task.id != key:
                raise StorageCorruptError(self._state_file, f"task key {key} does not match id {task.id}")
            tasks[key] = TaskRecord.from_read(task)

        logger.debug("Loaded %s tasks from %s", len(tasks), self._state_file)
        return tasks

    def save(self, tasks: Mapping[str, TaskRecord]) -> None:
        if self._state_file is None:
            return

        snapshot = {task_id: _serialize(record) for task_id, record in tasks.items()}
        tmp_file = self._state_file.with_name(f"{self._state_file.name}.tmp")
        try:
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(json.dumps(snapshot, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_file.replace(self._state_file)
        except OSError as exc:
            logger.error("Failed to save tasks to %s: %s", self._state_file, exc)
            raise StorageUnavailableError(self._state_file, str(exc)) from exc
        logger.debug("Saved %s tasks to %s", len(snapshot), self._state_file)


def _serialize(record: TaskRecord) -> dict[str, Any]:
    return record.to_read().model_dump(mode="json", by_alias=True, exclude_none=True)
