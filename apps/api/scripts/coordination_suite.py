#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _default_evidence_paths() -> tuple[Path, Path]:
    timestamp = datetime.now(tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    base_dir = _repo_root() / "docs" / "evidence" / "coordination"
    return (
        base_dir / f"coordination-{timestamp}.json",
        base_dir / f"coordination-{timestamp}.md",
    )


def parse_args() -> argparse.Namespace:
    default_json, default_md = _default_evidence_paths()
    parser = argparse.ArgumentParser(description="Run the multi-instance coordination invariant suite and write evidence.")
    parser.add_argument("--output-json", type=Path, default=default_json, help="path to JSON evidence output")
    parser.add_argument("--output-md", type=Path, default=default_md, help="path to Markdown evidence output")
    parser.add_argument("--instances", type=int, default=3, help="number of worker instances in the fan-out scenario")
    parser.add_argument("--fan-out", type=int, default=4, help="number of parallel tasks in the fan-out scenario")
    parser.add_argument(
        "--no-restart",
        action="store_true",
        help="keep one ledger for the whole scenario instead of reloading the task file between steps",
    )
    return parser.parse_args()


def _render_markdown(report: dict[str, Any], json_path: Path) -> str:
    lines: list[str] = []
    summary = report["summary"]
    lines.append("# Coordination Invariant Evidence")
    lines.append("")
    lines.append(f"- Generated at (UTC): `{report['generated_at_utc']}`")
    lines.append(f"- Python: `{report['python']}`")
    lines.append(f"- JSON evidence: `{json_path}`")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.append(f"- Overall status: `{summary['overall_status']}`")
    lines.append(f"- Scenarios: `{summary['scenario_count']}`")
    lines.append(f"- Invariants passed: `{summary['invariants_passed']}/{summary['invariants_total']}`")
    lines.append("")

    for scenario in report["scenarios"]:
        lines.append(f"## Scenario: {scenario['name']}")
        lines.append("")
        lines.append(f"- Objective: {scenario['objective']}")
        lines.append(f"- Status: `{scenario['status']}`")
        lines.append(f"- Tasks: `{scenario['task_count']}`")
        lines.append(f"- Restarts: `{len(scenario['restarts'])}`")
        lines.append("")
        lines.append("### Invariants")
        lines.append("")
        for invariant in scenario["invariants"]:
            marker = "PASS" if invariant["passed"] else "FAIL"
            lines.append(f"- `{marker}` {invariant['id']}: {invariant['description']}")
        lines.append("")
        lines.append("### Completions")
        lines.append("")
        for completion in scenario["completions"]:
            unlocked = ", ".join(completion["unlocked"]) or "-"
            lines.append(f"- `{completion['task_id']}` by `{completion['instance_id']}` unlocked: {unlocked}")
        lines.append("")

    lines.append("## Config")
    lines.append("")
    for key, value in report["config"].items():
        lines.append(f"- `{key}`: `{value}`")
    lines.append("")
    return "\n".join(lines)


def main() -> int:
    args = parse_args()
    if args.instances < 1 or args.fan_out < 1:
        print("[coordination] --instances and --fan-out must be >= 1", file=sys.stderr)
        return 2

    try:
        from orchestrator_api.coordination import CoordinationConfig, run_coordination_invariant_suite
    except ModuleNotFoundError as exc:
        print(f"[coordination] missing dependency: {exc.name}", file=sys.stderr)
        print("[coordination] install the package before running the suite:", file=sys.stderr)
        print("  python3 -m venv .venv && .venv/bin/pip install -e .[dev]", file=sys.stderr)
        return 2

    report = run_coordination_invariant_suite(
        CoordinationConfig(
            instances=args.instances,
            fan_out=args.fan_out,
            restart_between_steps=not args.no_restart,
        )
    )
    report["python"] = platform.python_version()

    args.output_json.parent.mkdir(parents=True, exist_ok=True)
    args.output_md.parent.mkdir(parents=True, exist_ok=True)

    args.output_json.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n", encoding="utf-8")
    args.output_md.write_text(_render_markdown(report, args.output_json) + "\n", encoding="utf-8")

    print(f"[coordination] evidence json: {args.output_json}")
    print(f"[coordination] evidence md:   {args.output_md}")
    print(f"[coordination] summary:       {report['summary']}")
    return 0 if report["summary"]["overall_status"] == "pass" else 1


if __name__ == "__main__":
    raise SystemExit(main())
