from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

from orchestrator_api.ledger import TaskLedger
from orchestrator_api.schemas import TaskCreate, TaskRead, TaskStatus
from orchestrator_api.task_store import TaskStore


@dataclass(frozen=True)
class CoordinationConfig:
    instances: int = 3
    fan_out: int = 4
    restart_between_steps: bool = True


@dataclass
class _Trace:
    assignments: list[dict[str, Any]]
    completions: list[dict[str, Any]]
    restarts: list[dict[str, Any]]


def run_coordination_invariant_suite(config: CoordinationConfig | None = None) -> dict[str, Any]:
    cfg = config or CoordinationConfig()
    if cfg.instances < 1:
        raise ValueError("instances must be >= 1")
    if cfg.fan_out < 1:
        raise ValueError("fan_out must be >= 1")

    with TemporaryDirectory(prefix="orchestrator-coordination-") as tmp_dir:
        scenarios = [
            _run_pipeline_scenario(state_file=Path(tmp_dir) / "pipeline-tasks.json", config=cfg),
            _run_fan_out_scenario(state_file=Path(tmp_dir) / "fan-out-tasks.json", config=cfg),
        ]

    invariants_total = sum(len(scenario["invariants"]) for scenario in scenarios)
    invariants_passed = sum(
        1 for scenario in scenarios for invariant in scenario["invariants"] if invariant["passed"]
    )
    return {
        "suite": "coordination",
        "generated_at_utc": datetime.now(tz=timezone.utc).isoformat(),
        "config": {
            "instances": cfg.instances,
            "fan_out": cfg.fan_out,
            "restart_between_steps": cfg.restart_between_steps,
        },
        "summary": {
            "scenario_count": len(scenarios),
            "invariants_total": invariants_total,
            "invariants_passed": invariants_passed,
            "overall_status": "pass" if invariants_total == invariants_passed else "fail",
        },
        "scenarios": scenarios,
    }


def _run_pipeline_scenario(*, state_file: Path, config: CoordinationConfig) -> dict[str, Any]:
    ledger = TaskLedger(TaskStore(state_file=state_file))
    ledger.create_task(TaskCreate(id="research", description="Research authentication methods"))
    ledger.create_task(
        TaskCreate(id="design", description="Design authentication system", dependencies=["research"])
    )
    ledger.create_task(
        TaskCreate(id="implement", description="Implement authentication system", dependencies=["design"])
    )

    trace = _Trace(assignments=[], completions=[], restarts=[])
    for stage in ("research", "design", "implement"):
        instance_id = f"{stage}-instance"
        task = _assign(ledger, instance_id, trace)
        ledger = _maybe_restart(ledger, state_file, f"{stage}-assigned", config, trace)
        if task is not None:
            _complete(ledger, task, instance_id, f"{stage} done", trace)
            ledger = _maybe_restart(ledger, state_file, f"{stage}-completed", config, trace)

    return _scenario_report(
        name="research-design-implement",
        objective="Three instances hand a dependency chain over one stage at a time.",
        ledger=ledger,
        trace=trace,
        expected_order=["research", "design", "implement"],
    )


def _run_fan_out_scenario(*, state_file: Path, config: CoordinationConfig) -> dict[str, Any]:
    ledger = TaskLedger(TaskStore(state_file=state_file))
    build_ids = [f"build-{index + 1}" for index in range(config.fan_out)]
    ledger.create_task(TaskCreate(id="plan", description="Plan the work"))
    for build_id in build_ids:
        ledger.create_task(TaskCreate(id=build_id, description=f"Build part {build_id}", dependencies=["plan"]))
    ledger.create_task(TaskCreate(id="integrate", description="Integrate all parts", dependencies=build_ids))

    instance_ids = [f"worker-{index + 1}" for index in range(config.instances)]
    trace = _Trace(assignments=[], completions=[], restarts=[])
    round_index = 0
    while True:
        round_index += 1
        held: list[tuple[TaskRead, str]] = []
        for instance_id in instance_ids:
            task = _assign(ledger, instance_id, trace)
            if task is not None:
                held.append((task, instance_id))
        if not held:
            break
        ledger = _maybe_restart(ledger, state_file, f"round-{round_index}-assigned", config, trace)
        for task, instance_id in held:
            _complete(ledger, task, instance_id, f"{task.id} done by {instance_id}", trace)
        ledger = _maybe_restart(ledger, state_file, f"round-{round_index}-completed", config, trace)

    return _scenario_report(
        name="fan-out-fan-in",
        objective="Several instances drain a plan -> parallel builds -> integrate graph.",
        ledger=ledger,
        trace=trace,
        expected_order=None,
    )


def _assign(ledger: TaskLedger, instance_id: str, trace: _Trace) -> TaskRead | None:
    task = ledger.assign_next_task(instance_id)
    if task is None:
        return None
    statuses = {item.id: item.status for item in ledger.list_tasks()}
    trace.assignments.append(
        {
            "task_id": task.id,
            "instance_id": instance_id,
            "unfinished_dependencies": [
                dependency_id
                for dependency_id in task.dependencies or []
                if statuses.get(dependency_id) != TaskStatus.COMPLETED
            ],
        }
    )
    return task


def _complete(ledger: TaskLedger, task: TaskRead, instance_id: str, result: str, trace: _Trace) -> None:
    available_before = _available_ids(ledger.list_tasks())
    response = ledger.complete_task(task.id, instance_id=instance_id, result=result)
    available_after = _available_ids(ledger.list_tasks())
    trace.completions.append(
        {
            "task_id": task.id,
            "instance_id": instance_id,
            "completed_by_owner": response.completed_task.assigned_to == instance_id,
            "unlocked": sorted(item.id for item in response.unlocked_tasks),
            "expected_unlocked": sorted(available_after - available_before),
        }
    )


def _available_ids(tasks: list[TaskRead]) -> set[str]:
    completed = {task.id for task in tasks if task.status == TaskStatus.COMPLETED}
    return {
        task.id
        for task in tasks
        if task.status == TaskStatus.PENDING and all(dep in completed for dep in task.dependencies or [])
    }


def _maybe_restart(
    ledger: TaskLedger,
    state_file: Path,
    label: str,
    config: CoordinationConfig,
    trace: _Trace,
) -> TaskLedger:
    if not config.restart_between_steps:
        return ledger
    before = [task.model_dump() for task in ledger.list_tasks()]
    restarted = TaskLedger(TaskStore(state_file=state_file))
    after = [task.model_dump() for task in restarted.list_tasks()]
    trace.restarts.append({"label": label, "task_count": len(after), "stable": before == after})
    return restarted


def _scenario_report(
    *,
    name: str,
    objective: str,
    ledger: TaskLedger,
    trace: _Trace,
    expected_order: list[str] | None,
) -> dict[str, Any]:
    tasks = ledger.list_tasks()
    completion_counts = Counter(item["task_id"] for item in trace.completions)
    assigned_to = {item["task_id"]: item["instance_id"] for item in trace.assignments}

    early_assignments = [item for item in trace.assignments if item["unfinished_dependencies"]]
    not_completed = sorted(task.id for task in tasks if task.status != TaskStatus.COMPLETED)
    repeated = sorted(task_id for task_id, count in completion_counts.items() if count != 1)
    wrong_owner = sorted(
        task.id for task in tasks if task.assigned_to is not None and task.assigned_to != assigned_to.get(task.id)
    )
    unlock_mismatches = [item for item in trace.completions if item["unlocked"] != item["expected_unlocked"]]
    unstable_restarts = [item["label"] for item in trace.restarts if not item["stable"]]
    completion_order = [item["task_id"] for item in trace.completions]
    drained = ledger.assign_next_task("drain-check-instance") is None

    invariants = [
        _invariant(
            invariant_id="dependency-order",
            description="No task is handed out before all of its dependencies are completed.",
            expected={"early_assignments": []},
            actual={"early_assignments": early_assignments, "completion_order": completion_order},
            passed=not early_assignments
            and (expected_order is None or completion_order == expected_order),
        ),
        _invariant(
            invariant_id="exclusive-completion",
            description="Every task is completed exactly once, by the instance it was assigned to.",
            expected={"not_completed": [], "repeated": [], "wrong_owner": []},
            actual={"not_completed": not_completed, "repeated": repeated, "wrong_owner": wrong_owner},
            passed=not not_completed and not repeated and not wrong_owner,
        ),
        _invariant(
            invariant_id="exact-unlocks",
            description="Each completion reports exactly the tasks that became available because of it.",
            expected={"mismatches": []},
            actual={"mismatches": unlock_mismatches, "completions": len(trace.completions)},
            passed=not unlock_mismatches,
        ),
        _invariant(
            invariant_id="restart-recoverability",
            description="Reloading the task file between steps reproduces the same snapshot.",
            expected={"unstable_restarts": []},
            actual={"restarts": len(trace.restarts), "unstable_restarts": unstable_restarts},
            passed=not unstable_restarts,
        ),
        _invariant(
            invariant_id="drained",
            description="Once every task is completed, the next request gets no task.",
            expected={"no_tasks": True},
            actual={"no_tasks": drained},
            passed=drained,
        ),
    ]
    return {
        "name": name,
        "objective": objective,
        "status": "pass" if all(item["passed"] for item in invariants) else "fail",
        "task_count": len(tasks),
        "invariants": invariants,
        "completions": trace.completions,
        "restarts": trace.restarts,
    }


def _invariant(
    *,
    invariant_id: str,
    description: str,
    expected: dict[str, Any],
    actual: dict[str, Any],
    passed: bool,
) -> dict[str, Any]:
    return {
        "id": invariant_id,
        "description": description,
        "expected": expected,
        "actual": actual,
        "passed": passed,
    }
