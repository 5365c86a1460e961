"""FastMCP server exposing the task ledger as tools over stdio."""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools.tool import ToolResult
from pydantic import Field

from orchestrator_api.errors import TaskGraphError
from orchestrator_api.ledger import TaskLedger
from orchestrator_api.operations import call_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "orchestrator-server"


def build_mcp_server(ledger: TaskLedger) -> FastMCP:
    mcp = FastMCP(SERVER_NAME)

    def _call(name: str, arguments: dict[str, Any]) -> Any:
        logger.debug("Handling tool request %s arguments=%s", name, arguments)
        try:
            return call_tool(ledger, name, arguments)
        except TaskGraphError as exc:
            logger.debug("Tool %s failed: %s", name, exc)
            raise ToolError(str(exc)) from exc

    @mcp.tool
    def create_task(
        id: Annotated[str, Field(description="Unique identifier for the task")],
        description: Annotated[str, Field(description="Description of the task")],
        dependencies: Annotated[
            list[str] | None,
            Field(description="IDs of tasks that must be completed first"),
        ] = None,
    ) -> dict[str, Any]:
        """Create a new task"""
        return _call("create_task", {"id": id, "description": description, "dependencies": dependencies})

    @mcp.tool
    def update_task(
        task_id: Annotated[str, Field(description="ID of the task to update")],
        description: Annotated[str | None, Field(description="New description for the task")] = None,
        dependencies: Annotated[
            list[str] | None,
            Field(description="New list of dependency task IDs"),
        ] = None,
    ) -> dict[str, Any]:
        """Update an existing pending task"""
        return _call(
            "update_task",
            {"task_id": task_id, "description": description, "dependencies": dependencies},
        )

    @mcp.tool
    def delete_task(
        task_id: Annotated[str, Field(description="ID of the task to delete")],
    ) -> dict[str, Any]:
        """Delete a task if it has no dependents"""
        return _call("delete_task", {"task_id": task_id})

    @mcp.tool
    def get_next_task(
        instance_id: Annotated[str, Field(description="ID of the instance requesting work")],
    ) -> dict[str, Any]:
        """Get the next available task"""
        return _call("get_next_task", {"instance_id": instance_id})

    @mcp.tool
    def complete_task(
        task_id: Annotated[str, Field(description="ID of the task to complete")],
        instance_id: Annotated[str, Field(description="ID of the instance completing the task")],
        result: Annotated[str, Field(description="Result or output from the task")],
    ) -> dict[str, Any]:
        """Mark a task as completed"""
        return _call("complete_task", {"task_id": task_id, "instance_id": instance_id, "result": result})

    @mcp.tool
    def get_task_status() -> ToolResult:
        """Get status of all tasks"""
        tasks = _call("get_task_status", {})
        # an empty list would otherwise produce no content blocks
        return ToolResult(content=json.dumps(tasks), structured_content={"result": tasks})

    @mcp.tool
    def get_task_details(
        task_id: Annotated[str, Field(description="ID of the task to get details for")],
    ) -> dict[str, Any]:
        """Get details of a specific task"""
        return _call("get_task_details", {"task_id": task_id})

    logger.info("MCP server %s ready with %s tasks", SERVER_NAME, len(ledger.store))
    return mcp
