from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from orchestrator_api.schemas import (
    CompleteTaskResponse,
    DeleteTaskResponse,
    TaskRead,
)

logger = logging.getLogger(__name__)


class OrchestratorClientError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"orchestrator request failed ({status_code}): {detail}")
        self.status_code = status_code
        self.detail = detail


class OrchestratorClient:
    """HTTP client for instances pulling work from the orchestrator API.

    Pass ``http`` to reuse an existing ``httpx.Client`` (for example a
    FastAPI ``TestClient``); otherwise one is created for ``base_url``.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000",
        *,
        http: httpx.Client | None = None,
        timeout: float = 5.0,
    ) -> None:
        self._http = http or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)
        self._owns_http = http is None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "OrchestratorClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create_task(self, task_id: str, description: str, dependencies: list[str] | None = None) -> TaskRead:
        payload: dict[str, Any] = {"id": task_id, "description": description}
        if dependencies is not None:
            payload["dependencies"] = dependencies
        return TaskRead.model_validate(self._request("POST", "/tasks", json=payload))

    def update_task(
        self,
        task_id: str,
        *,
        description: str | None = None,
        dependencies: list[str] | None = None,
    ) -> TaskRead:
        payload: dict[str, Any] = {}
        if description is not None:
            payload["description"] = description
        if dependencies is not None:
            payload["dependencies"] = dependencies
        return TaskRead.model_validate(self._request("PUT", f"/tasks/{task_id}", json=payload))

    def delete_task(self, task_id: str) -> DeleteTaskResponse:
        return DeleteTaskResponse.model_validate(self._request("DELETE", f"/tasks/{task_id}"))

    def get_next_task(self, instance_id: str) -> TaskRead | None:
        data = self._request("POST", f"/instances/{instance_id}/next-task")
        if data.get("status") == "no_tasks":
            return None
        return TaskRead.model_validate(data)

    def complete_task(self, task_id: str, instance_id: str, result: str) -> CompleteTaskResponse:
        data = self._request(
            "POST",
            f"/tasks/{task_id}/complete",
            json={"instance_id": instance_id, "result": result},
        )
        return CompleteTaskResponse.model_validate(data)

    def get_task_status(self) -> list[TaskRead]:
        return [TaskRead.model_validate(item) for item in self._request("GET", "/tasks")]

    def get_task_details(self, task_id: str) -> TaskRead:
        return TaskRead.model_validate(self._request("GET", f"/tasks/{task_id}"))

    def drain(
        self,
        instance_id: str,
        handler: Callable[[TaskRead], str],
        *,
        max_tasks: int | None = None,
    ) -> list[CompleteTaskResponse]:
        """Pull, run and complete tasks until none is available.

        ``handler`` receives the assigned task and returns its result text.
        An exception from ``handler`` propagates and leaves the task
        ``in_progress`` under this instance.
        """
        completed: list[CompleteTaskResponse] = []
        while max_tasks is None or len(completed) < max_tasks:
            task = self.get_next_task(instance_id)
            if task is None:
                break
            logger.info("Instance %s working on task %s", instance_id, task.id)
            result = handler(task)
            completed.append(self.complete_task(task.id, instance_id, result))
        return completed

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._http.request(method, path, **kwargs)
        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise OrchestratorClientError(response.status_code, str(detail))
        return response.json()
