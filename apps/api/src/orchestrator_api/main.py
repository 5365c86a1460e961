"""HTTP API over a ``TaskLedger``.

Serve with ``orchestrator-server serve`` or
``uvicorn --factory orchestrator_api.main:create_app``.
"""

from __future__ import annotations

from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from orchestrator_api.config import Settings
from orchestrator_api.errors import (
    ConflictError,
    NotFoundError,
    StorageError,
    TaskGraphError,
    InvalidRequestError,
)
from orchestrator_api.ledger import TaskLedger
from orchestrator_api.operations import call_tool, list_tools
from orchestrator_api.schemas import (
    CompleteTaskResponse,
    DeleteTaskResponse,
    NoTaskAvailable,
    TaskComplete,
    TaskCreate,
    TaskRead,
    TaskUpdate,
    ToolDescriptor,
)
from orchestrator_api.task_store import TaskStore


def create_app(ledger: TaskLedger | None = None, settings: Settings | None = None) -> FastAPI:
    cfg = settings or Settings.from_env()
    ledger = ledger or TaskLedger(TaskStore(state_file=cfg.tasks_file))

    app = FastAPI(title="orchestrator api", version="0.1.0")
    app.state.ledger = ledger

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_allow_origins,
        allow_origin_regex=cfg.cors_allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/tools", response_model=list[ToolDescriptor], response_model_by_alias=True)
    def get_tools() -> list[ToolDescriptor]:
        return list_tools()

    @app.post("/tools/{name}")
    def call_named_tool(name: str, arguments: dict[str, Any] | None = Body(default=None)) -> Any:
        try:
            return call_tool(ledger, name, arguments)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/tasks", response_model=TaskRead)
    def create_task(payload: TaskCreate) -> TaskRead:
        try:
            return ledger.create_task(payload)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc

    @app.get("/tasks", response_model=list[TaskRead])
    def list_tasks() -> list[TaskRead]:
        return ledger.list_tasks()

    @app.get("/tasks/{task_id}", response_model=TaskRead)
    def get_task(task_id: str) -> TaskRead:
        try:
            return ledger.get_task(task_id)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc

    @app.put("/tasks/{task_id}", response_model=TaskRead)
    def update_task(task_id: str, payload: TaskUpdate) -> TaskRead:
        try:
            return ledger.update_task(task_id, payload)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc

    @app.delete("/tasks/{task_id}", response_model=DeleteTaskResponse)
    def delete_task(task_id: str) -> DeleteTaskResponse:
        try:
            return ledger.delete_task(task_id)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/tasks/{task_id}/complete", response_model=CompleteTaskResponse)
    def complete_task(task_id: str, payload: TaskComplete) -> CompleteTaskResponse:
        try:
            return ledger.complete_task(task_id, instance_id=payload.instance_id, result=payload.result)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc

    @app.post("/instances/{instance_id}/next-task", response_model=TaskRead | NoTaskAvailable)
    def get_next_task(instance_id: str) -> TaskRead | NoTaskAvailable:
        try:
            task = ledger.assign_next_task(instance_id)
        except TaskGraphError as exc:
            raise _to_http_error(exc) from exc
        return task if task is not None else NoTaskAvailable()

    return app


def _to_http_error(exc: TaskGraphError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, InvalidRequestError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
