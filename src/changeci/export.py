# export.py
# Render a Workflow as a GitHub Actions workflow file.

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict

import yaml

from .model import Job, Step, Workflow

CHECKOUT_ACTION = "actions/checkout@v2"
TOOLCHAIN_ACTION = "actions-rs/toolchain@v1"
CARGO_ACTION = "actions-rs/cargo@v1"

_JOB_ID = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def _slug(text: str) -> str:
    s = re.sub(r"[^A-Za-z0-9]+", "-", text).strip("-").lower()
    return s or "job"


def job_id(workflow: Workflow, job: Job) -> str:
    if _JOB_ID.match(job.name):
        return job.name
    return f"{_slug(workflow.name)}-{_slug(job.environment.name)}"


def step_to_action(step: Step) -> Dict[str, Any]:
    data = step.data or {}

    if step.kind == "checkout":
        return {"name": step.name, "uses": CHECKOUT_ACTION}

    if step.kind == "toolchain":
        return {
            "uses": TOOLCHAIN_ACTION,
            "name": step.name,
            "with": {"toolchain": data.get("channel") or "stable"},
        }

    if step.kind == "cargo":
        if step.cwd:
            # actions-rs/cargo has no working-directory input
            raise ValueError(f"cargo step {step.name!r} sets cwd; use --manifest-path instead")
        with_: Dict[str, Any] = {"command": data["command"]}
        if data.get("toolchain"):
            with_["toolchain"] = data["toolchain"]
        if data.get("args"):
            with_["args"] = data["args"]
        return {"uses": CARGO_ACTION, "name": step.name, "with": with_}

    if step.kind is not None:
        raise ValueError(f"Unknown step kind: {step.kind!r}")

    out = {"name": step.name, "run": step.run}
    if step.cwd:
        out["working-directory"] = step.cwd
    return out


def to_actions(workflow: Workflow) -> Dict[str, Any]:
    """GitHub Actions document (as plain dicts) for a workflow."""
    pull_request: Dict[str, Any] = {}
    if workflow.trigger.paths:
        pull_request["paths"] = list(workflow.trigger.paths)

    jobs: Dict[str, Any] = {}
    for j in workflow.jobs:
        jid = job_id(workflow, j)
        if jid in jobs:
            raise ValueError(f"Two jobs map to the same job id {jid!r}")
        body: Dict[str, Any] = {"runs-on": j.environment.runs_on}
        if j.env:
            body["env"] = dict(j.env)
        body["steps"] = [step_to_action(s) for s in j.steps]
        jobs[jid] = body

    return {
        "name": workflow.name,
        "on": {"pull_request": pull_request or None},
        "jobs": jobs,
    }


def dump_actions(workflow: Workflow) -> str:
    return yaml.safe_dump(
        to_actions(workflow),
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def write_actions(workflow: Workflow, path: str | Path) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(dump_actions(workflow), encoding="utf-8")
    return out
