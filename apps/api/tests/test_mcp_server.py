import asyncio
import json
from typing import Any

import pytest
from fastmcp import Client
from fastmcp.exceptions import ToolError

from orchestrator_api.ledger import TaskLedger
from orchestrator_api.mcp_server import build_mcp_server
from orchestrator_api.operations import OPERATION_NAMES
from orchestrator_api.task_store import TaskStore


def _call_tools(ledger: TaskLedger, calls: list[tuple[str, dict[str, Any]]]) -> list[Any]:
    async def run() -> list[Any]:
        results: list[Any] = []
        async with Client(build_mcp_server(ledger)) as client:
            for name, arguments in calls:
                result = await client.call_tool(name, arguments)
                results.append(json.loads(result.content[0].text))
        return results

    return asyncio.run(run())


def test_mcp_server_registers_every_operation() -> None:
    mcp = build_mcp_server(TaskLedger(TaskStore()))
    tools = asyncio.run(mcp.get_tools())
    assert set(tools) == set(OPERATION_NAMES)


def test_mcp_tools_drive_the_ledger() -> None:
    ledger = TaskLedger(TaskStore())
    created, _, assigned, completion = _call_tools(
        ledger,
        [
            ("create_task", {"id": "research", "description": "Research authentication methods"}),
            (
                "create_task",
                {"id": "design", "description": "Design authentication system", "dependencies": ["research"]},
            ),
            ("get_next_task", {"instance_id": "research-instance"}),
            (
                "complete_task",
                {"task_id": "research", "instance_id": "research-instance", "result": "OAuth 2.0"},
            ),
        ],
    )

    assert created["status"] == "pending"
    assert assigned["id"] == "research"
    assert assigned["assignedTo"] == "research-instance"
    assert [task["id"] for task in completion["unlocked_tasks"]] == ["design"]
    assert ledger.get_task("research").result == "OAuth 2.0"


def test_mcp_tool_errors_are_reported_to_the_client() -> None:
    ledger = TaskLedger(TaskStore())
    with pytest.raises(ToolError, match="not found"):
        _call_tools(ledger, [("get_task_details", {"task_id": "ghost"})])


def test_mcp_task_status_on_empty_ledger_returns_empty_list() -> None:
    ledger = TaskLedger(TaskStore())
    empty, _, listed = _call_tools(
        ledger,
        [
            ("get_task_status", {}),
            ("create_task", {"id": "research", "description": "Research authentication methods"}),
            ("get_task_status", {}),
        ],
    )

    assert empty == []
    assert [task["id"] for task in listed] == ["research"]
