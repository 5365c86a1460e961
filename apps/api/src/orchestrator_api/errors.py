from __future__ import annotations

from pathlib import Path


class TaskGraphError(Exception):
    pass


class NotFoundError(TaskGraphError):
    pass


class ConflictError(TaskGraphError):
    pass


class InvalidRequestError(TaskGraphError):
    pass


class StorageError(TaskGraphError):
    pass


class TaskNotFoundError(NotFoundError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


class UnknownOperationError(NotFoundError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown operation '{name}'")
        self.name = name


class DuplicateIdError(ConflictError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task {task_id} already exists")
        self.task_id = task_id


class InvalidStateError(ConflictError):
    def __init__(self, task_id: str, status: str, expected: str) -> None:
        super().__init__(f"task {task_id} is {status}, expected {expected}")
        self.task_id = task_id
        self.status = status
        self.expected = expected


class NotOwnerError(ConflictError):
    def __init__(self, task_id: str, instance_id: str) -> None:
        super().__init__(f"task {task_id} is not assigned to instance {instance_id}")
        self.task_id = task_id
        self.instance_id = instance_id


class HasDependentsError(ConflictError):
    def __init__(self, task_id: str, dependents: list[str]) -> None:
        super().__init__(f"task {task_id} is required by: {', '.join(dependents)}")
        self.task_id = task_id
        self.dependents = dependents


class DependencyNotFoundError(InvalidRequestError):
    def __init__(self, missing: list[str]) -> None:
        label = "dependency task" if len(missing) == 1 else "dependency tasks"
        super().__init__(f"{label} {', '.join(missing)} not found")
        self.missing = missing


class CycleDetectedError(InvalidRequestError):
    def __init__(self, task_id: str, dependencies: list[str]) -> None:
        super().__init__(f"dependencies {dependencies} would make task {task_id} depend on itself")
        self.task_id = task_id
        self.dependencies = dependencies


class InvalidArgumentsError(InvalidRequestError):
    def __init__(self, operation: str, detail: str) -> None:
        super().__init__(f"invalid arguments for '{operation}': {detail}")
        self.operation = operation
        self.detail = detail


class StorageCorruptError(StorageError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"task file {path} is corrupt: {reason}")
        self.path = path
        self.reason = reason


class StorageUnavailableError(StorageError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"task file {path} could not be written: {reason}")
        self.path = path
        self.reason = reason
