"""Named operations over a ``TaskLedger``.

Transports (HTTP tool-call route, MCP tools) hand an operation name and a
loose argument dict to ``call_tool``. The arguments are validated into one
variant of ``OperationRequest`` before anything touches the ledger.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError

from orchestrator_api.errors import InvalidArgumentsError, UnknownOperationError
from orchestrator_api.ledger import TaskLedger
from orchestrator_api.schemas import (
    CompleteTaskOperation,
    CreateTaskOperation,
    DeleteTaskOperation,
    GetNextTaskOperation,
    GetTaskDetailsOperation,
    GetTaskStatusOperation,
    NoTaskAvailable,
    OperationRequest,
    TaskCreate,
    TaskUpdate,
    ToolDescriptor,
    UpdateTaskOperation,
)

OperationResult = BaseModel | list[BaseModel]


@dataclass(frozen=True)
class _Operation:
    model: type[BaseModel]
    description: str
    handler: Callable[[TaskLedger, Any], OperationResult]


def _create_task(ledger: TaskLedger, request: CreateTaskOperation) -> OperationResult:
    return ledger.create_task(
        TaskCreate(id=request.id, description=request.description, dependencies=request.dependencies)
    )


def _update_task(ledger: TaskLedger, request: UpdateTaskOperation) -> OperationResult:
    return ledger.update_task(
        request.task_id,
        TaskUpdate(description=request.description, dependencies=request.dependencies),
    )


def _delete_task(ledger: TaskLedger, request: DeleteTaskOperation) -> OperationResult:
    return ledger.delete_task(request.task_id)


def _get_next_task(ledger: TaskLedger, request: GetNextTaskOperation) -> OperationResult:
    task = ledger.assign_next_task(request.instance_id)
    return task if task is not None else NoTaskAvailable()


def _complete_task(ledger: TaskLedger, request: CompleteTaskOperation) -> OperationResult:
    return ledger.complete_task(request.task_id, instance_id=request.instance_id, result=request.result)


def _get_task_status(ledger: TaskLedger, request: GetTaskStatusOperation) -> OperationResult:
    return ledger.list_tasks()


def _get_task_details(ledger: TaskLedger, request: GetTaskDetailsOperation) -> OperationResult:
    return ledger.get_task(request.task_id)


_OPERATIONS: dict[str, _Operation] = {
    "create_task": _Operation(CreateTaskOperation, "Create a new task", _create_task),
    "update_task": _Operation(UpdateTaskOperation, "Update an existing pending task", _update_task),
    "delete_task": _Operation(DeleteTaskOperation, "Delete a task if it has no dependents", _delete_task),
    "get_next_task": _Operation(GetNextTaskOperation, "Get the next available task", _get_next_task),
    "complete_task": _Operation(CompleteTaskOperation, "Mark a task as completed", _complete_task),
    "get_task_status": _Operation(GetTaskStatusOperation, "Get status of all tasks", _get_task_status),
    "get_task_details": _Operation(GetTaskDetailsOperation, "Get details of a specific task", _get_task_details),
}

_REQUEST_ADAPTER: TypeAdapter[OperationRequest] = TypeAdapter(OperationRequest)

OPERATION_NAMES: tuple[str, ...] = tuple(_OPERATIONS)


def parse_operation(name: str, arguments: dict[str, Any] | None = None) -> OperationRequest:
    if name not in _OPERATIONS:
        raise UnknownOperationError(name)
    payload = {**(arguments or {}), "operation": name}
    try:
        return _REQUEST_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'][1:]) or name}: {error['msg']}"
            for error in exc.errors()
        )
        raise InvalidArgumentsError(name, detail) from exc


def execute(ledger: TaskLedger, request: OperationRequest) -> OperationResult:
    return _OPERATIONS[request.operation].handler(ledger, request)


def call_tool(ledger: TaskLedger, name: str, arguments: dict[str, Any] | None = None) -> Any:
    return dump_result(execute(ledger, parse_operation(name, arguments)))


def dump_result(result: OperationResult) -> Any:
    if isinstance(result, list):
        return [item.model_dump(mode="json", by_alias=True, exclude_none=True) for item in result]
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


def list_tools() -> list[ToolDescriptor]:
    return [
        ToolDescriptor(name=name, description=operation.description, input_schema=_input_schema(operation.model))
        for name, operation in _OPERATIONS.items()
    ]


def _input_schema(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema()
    properties = {key: value for key, value in schema.get("properties", {}).items() if key != "operation"}
    required = [key for key in schema.get("required", []) if key != "operation"]
    return {"type": "object", "properties": properties, "required": required}
