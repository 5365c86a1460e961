import pytest

from orchestrator_api.errors import (
    CycleDetectedError,
    DependencyNotFoundError,
    HasDependentsError,
    InvalidArgumentsError,
    UnknownOperationError,
)
from orchestrator_api.ledger import TaskLedger
from orchestrator_api.operations import (
    OPERATION_NAMES,
    call_tool,
    execute,
    list_tools,
    parse_operation,
)
from orchestrator_api.schemas import (
    CompleteTaskOperation,
    CreateTaskOperation,
    GetTaskStatusOperation,
    NoTaskAvailable,
)
from orchestrator_api.task_store import TaskStore


def _ledger() -> TaskLedger:
    return TaskLedger(TaskStore())


def test_parse_operation_builds_matching_variant() -> None:
    create = parse_operation("create_task", {"id": "a", "description": "first", "dependencies": ["x", "x"]})
    assert isinstance(create, CreateTaskOperation)
    assert create.dependencies == ["x"]

    complete = parse_operation("complete_task", {"task_id": "a", "instance_id": "w1", "result": "ok"})
    assert isinstance(complete, CompleteTaskOperation)

    status = parse_operation("get_task_status")
    assert isinstance(status, GetTaskStatusOperation)


def test_parse_operation_rejects_unknown_name() -> None:
    with pytest.raises(UnknownOperationError):
        parse_operation("drop_all_tasks", {})


def test_parse_operation_rejects_missing_required_field() -> None:
    with pytest.raises(InvalidArgumentsError) as exc_info:
        parse_operation("complete_task", {"task_id": "a", "instance_id": "w1"})
    assert "result" in exc_info.value.detail

    with pytest.raises(InvalidArgumentsError):
        parse_operation("get_next_task", {})

    with pytest.raises(InvalidArgumentsError):
        parse_operation("create_task", {"id": "a", "description": "x", "dependencies": "a"})


def test_parse_operation_cannot_be_redirected_by_arguments() -> None:
    request = parse_operation("get_task_status", {"operation": "delete_task", "task_id": "a"})
    assert isinstance(request, GetTaskStatusOperation)


def test_execute_get_next_task_returns_sentinel_when_empty() -> None:
    result = execute(_ledger(), parse_operation("get_next_task", {"instance_id": "w1"}))
    assert isinstance(result, NoTaskAvailable)


def test_call_tool_scenario_unlocks_dependent() -> None:
    ledger = _ledger()
    call_tool(ledger, "create_task", {"id": "A", "description": "first"})
    created = call_tool(ledger, "create_task", {"id": "B", "description": "second", "dependencies": ["A"]})
    assert created == {"id": "B", "description": "second", "status": "pending", "dependencies": ["A"]}

    assigned = call_tool(ledger, "get_next_task", {"instance_id": "w1"})
    assert assigned["id"] == "A"
    assert assigned["assignedTo"] == "w1"

    completion = call_tool(ledger, "complete_task", {"task_id": "A", "instance_id": "w1", "result": "ok"})
    assert completion["completed_task"]["result"] == "ok"
    assert [task["id"] for task in completion["unlocked_tasks"]] == ["B"]

    assert call_tool(ledger, "get_next_task", {"instance_id": "w2"})["id"] == "B"
    assert call_tool(ledger, "get_next_task", {"instance_id": "w3"}) == {"status": "no_tasks"}


def test_call_tool_update_and_delete() -> None:
    ledger = _ledger()
    call_tool(ledger, "create_task", {"id": "A", "description": "first"})
    call_tool(ledger, "create_task", {"id": "B", "description": "second", "dependencies": ["A"]})

    with pytest.raises(CycleDetectedError):
        call_tool(ledger, "update_task", {"task_id": "A", "dependencies": ["A"]})
    with pytest.raises(DependencyNotFoundError):
        call_tool(ledger, "update_task", {"task_id": "B", "dependencies": ["ghost"]})

    updated = call_tool(ledger, "update_task", {"task_id": "B", "description": "second, revised"})
    assert updated["description"] == "second, revised"

    with pytest.raises(HasDependentsError):
        call_tool(ledger, "delete_task", {"task_id": "A"})
    assert call_tool(ledger, "delete_task", {"task_id": "B"}) == {"task_id": "B", "deleted": True}
    assert call_tool(ledger, "delete_task", {"task_id": "A"}) == {"task_id": "A", "deleted": True}
    assert call_tool(ledger, "get_task_status") == []


def test_call_tool_queries_are_idempotent() -> None:
    ledger = _ledger()
    call_tool(ledger, "create_task", {"id": "A", "description": "first"})
    call_tool(ledger, "get_next_task", {"instance_id": "w1"})

    first_status = call_tool(ledger, "get_task_status")
    first_details = call_tool(ledger, "get_task_details", {"task_id": "A"})
    for _ in range(3):
        assert call_tool(ledger, "get_task_status") == first_status
        assert call_tool(ledger, "get_task_details", {"task_id": "A"}) == first_details


def test_list_tools_describes_every_operation() -> None:
    tools = {tool.name: tool for tool in list_tools()}
    assert tuple(tools) == OPERATION_NAMES
    assert set(tools) == {
        "create_task",
        "update_task",
        "delete_task",
        "get_next_task",
        "complete_task",
        "get_task_status",
        "get_task_details",
    }

    create_schema = tools["create_task"].input_schema
    assert set(create_schema["properties"]) == {"id", "description", "dependencies"}
    assert set(create_schema["required"]) == {"id", "description"}
    assert "operation" not in tools["get_task_status"].input_schema["properties"]
    assert set(tools["complete_task"].input_schema["required"]) == {"task_id", "instance_id", "result"}
