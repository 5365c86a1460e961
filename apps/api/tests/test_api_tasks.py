from pathlib import Path

from fastapi.testclient import TestClient

from orchestrator_api.ledger import TaskLedger
from orchestrator_api.main import create_app
from orchestrator_api.task_store import TaskStore


def _client(state_file: Path | None = None) -> TestClient:
    return TestClient(create_app(TaskLedger(TaskStore(state_file=state_file))))


def _create_task(client: TestClient, task_id: str, dependencies: list[str] | None = None) -> dict:
    payload: dict = {"id": task_id, "description": f"{task_id} work"}
    if dependencies is not None:
        payload["dependencies"] = dependencies
    response = client.post("/tasks", json=payload)
    assert response.status_code == 200
    return response.json()


def test_health() -> None:
    response = _client().get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_task_crud() -> None:
    client = _client()
    created = _create_task(client, "plan")
    assert created["status"] == "pending"
    assert created["assignedTo"] is None

    listed = client.get("/tasks")
    assert listed.status_code == 200
    assert [item["id"] for item in listed.json()] == ["plan"]

    fetched = client.get("/tasks/plan")
    assert fetched.status_code == 200
    assert fetched.json()["description"] == "plan work"

    updated = client.put("/tasks/plan", json={"description": "plan the release"})
    assert updated.status_code == 200
    assert updated.json()["description"] == "plan the release"

    deleted = client.delete("/tasks/plan")
    assert deleted.status_code == 200
    assert deleted.json() == {"task_id": "plan", "deleted": True}

    get_after_delete = client.get("/tasks/plan")
    assert get_after_delete.status_code == 404


def test_create_task_error_statuses() -> None:
    client = _client()
    _create_task(client, "a")

    duplicate = client.post("/tasks", json={"id": "a", "description": "again"})
    assert duplicate.status_code == 409
    assert "already exists" in duplicate.json()["detail"]

    missing_dependency = client.post("/tasks", json={"id": "b", "description": "b", "dependencies": ["ghost"]})
    assert missing_dependency.status_code == 422
    assert "ghost" in missing_dependency.json()["detail"]

    missing_field = client.post("/tasks", json={"id": "c"})
    assert missing_field.status_code == 422

    assert [item["id"] for item in client.get("/tasks").json()] == ["a"]


def test_update_task_rejects_cycle_and_non_pending() -> None:
    client = _client()
    _create_task(client, "a")
    _create_task(client, "b", ["a"])

    cycle = client.put("/tasks/a", json={"dependencies": ["b"]})
    assert cycle.status_code == 422

    self_cycle = client.put("/tasks/a", json={"dependencies": ["a"]})
    assert self_cycle.status_code == 422

    client.post("/instances/w1/next-task")
    not_pending = client.put("/tasks/a", json={"description": "too late"})
    assert not_pending.status_code == 409

    missing = client.put("/tasks/nope", json={"description": "x"})
    assert missing.status_code == 404


def test_dependency_scenario_unlocks_next_task() -> None:
    client = _client()
    _create_task(client, "A")
    _create_task(client, "B", ["A"])

    first = client.post("/instances/w1/next-task")
    assert first.status_code == 200
    assert first.json()["id"] == "A"
    assert first.json()["assignedTo"] == "w1"

    blocked = client.post("/instances/w2/next-task")
    assert blocked.status_code == 200
    assert blocked.json() == {"status": "no_tasks"}

    completed = client.post("/tasks/A/complete", json={"instance_id": "w1", "result": "ok"})
    assert completed.status_code == 200
    body = completed.json()
    assert body["completed_task"]["status"] == "completed"
    assert body["completed_task"]["result"] == "ok"
    assert [task["id"] for task in body["unlocked_tasks"]] == ["B"]

    second = client.post("/instances/w2/next-task")
    assert second.json()["id"] == "B"


def test_complete_task_rejects_wrong_instance() -> None:
    client = _client()
    _create_task(client, "A")
    client.post("/instances/w1/next-task")

    wrong_owner = client.post("/tasks/A/complete", json={"instance_id": "w2", "result": "mine now"})
    assert wrong_owner.status_code == 409

    missing = client.post("/tasks/nope/complete", json={"instance_id": "w1", "result": "x"})
    assert missing.status_code == 404

    assert client.get("/tasks/A").json()["status"] == "in_progress"


def test_delete_blocked_until_dependent_removed() -> None:
    client = _client()
    _create_task(client, "A")
    _create_task(client, "B", ["A"])

    blocked = client.delete("/tasks/A")
    assert blocked.status_code == 409

    client.post("/instances/w1/next-task")
    client.post("/tasks/A/complete", json={"instance_id": "w1", "result": "ok"})
    client.post("/instances/w1/next-task")
    client.post("/tasks/B/complete", json={"instance_id": "w1", "result": "ok"})

    assert client.delete("/tasks/B").status_code == 200
    assert client.delete("/tasks/A").status_code == 200


def test_tool_call_route_runs_named_operations() -> None:
    client = _client()
    created = client.post("/tools/create_task", json={"id": "A", "description": "first"})
    assert created.status_code == 200
    assert created.json() == {"id": "A", "description": "first", "status": "pending"}

    assigned = client.post("/tools/get_next_task", json={"instance_id": "w1"})
    assert assigned.json()["assignedTo"] == "w1"

    status = client.post("/tools/get_task_status")
    assert status.status_code == 200
    assert [item["id"] for item in status.json()] == ["A"]

    unknown = client.post("/tools/launch_rockets", json={})
    assert unknown.status_code == 404

    missing_field = client.post("/tools/complete_task", json={"task_id": "A"})
    assert missing_field.status_code == 422

    not_found = client.post("/tools/get_task_details", json={"task_id": "ghost"})
    assert not_found.status_code == 404


def test_list_tools() -> None:
    response = _client().get("/tools")
    assert response.status_code == 200
    tools = {item["name"]: item for item in response.json()}
    assert "get_next_task" in tools
    assert tools["get_next_task"]["inputSchema"]["required"] == ["instance_id"]


def test_storage_failure_surfaces_as_503(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    client = _client(blocker / "tasks.json")

    response = client.post("/tasks", json={"id": "A", "description": "first"})
    assert response.status_code == 503

    listed = client.get("/tasks")
    assert [item["id"] for item in listed.json()] == ["A"]


def test_default_app_uses_orchestrator_tasks_file(tmp_path: Path, monkeypatch) -> None:
    tasks_file = tmp_path / "state" / "tasks.json"
    monkeypatch.setenv("ORCHESTRATOR_TASKS_FILE", str(tasks_file))
    client = TestClient(create_app())

    assert client.post("/tasks", json={"id": "A", "description": "first"}).status_code == 200
    assert tasks_file.exists()

    restarted = TestClient(create_app())
    assert [item["id"] for item in restarted.get("/tasks").json()] == ["A"]
