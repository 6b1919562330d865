# runner.py
from __future__ import annotations

import json
import logging
import os
import runpy
import subprocess
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .dsl import wf
from .git_facts.git import GitError, rev_parse, worktree
from .model import Job, JobStatus, RunResult, Step, Workflow
from .step_workflows.rust import compile_step, tool_hint
from .ui.console import get_console

log = logging.getLogger(__name__)

SETUP_STEP = "Set up job"


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

@dataclass
class StepFailure(Exception):
    job: str
    step: str
    cmd: str
    exit_code: int
    output: str = ""
    hint: str | None = None

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


# ----------------------------------------------------------------------
# Workflow loading (local file)
# ----------------------------------------------------------------------

def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a python file path.

    The file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")
    if wf_path.suffix != ".py":
        raise ValueError(f"Workflow must be a .py file, got: {wf_path.name}")

    module_name = f"changeci_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    loaded = None
    fn = globals_dict.get("workflow")
    # `from changeci import workflow` imports the wf() helper under that name
    if callable(fn) and fn is not wf:
        loaded = fn()
    elif "WORKFLOW" in globals_dict:
        loaded = globals_dict["WORKFLOW"]

    if not isinstance(loaded, Workflow):
        raise TypeError(
            "Workflow file must define workflow() -> Workflow or WORKFLOW = wf(...). "
            "Build it with the wf helper: `from changeci import wf, job, sh`."
        )

    log.debug("loaded workflow %r with %d job(s) from %s", loaded.name, len(loaded.jobs), wf_path)
    return loaded


# ----------------------------------------------------------------------
# Trigger evaluation + fan-out
# ----------------------------------------------------------------------

def select_jobs(
    workflow: Workflow,
    changed_paths: Iterable[str],
    *,
    print_plan: bool = False,
) -> List[Job]:
    """
    One job per declared environment if the change set triggers the
    workflow, no jobs otherwise. A non-matching change set is not an error.
    """
    changed = list(changed_paths)
    rule = workflow.trigger
    console = get_console()

    if rule.unfiltered:
        fired, matched = True, []
    else:
        matched = rule.matching(changed)
        fired = bool(matched)

    log.debug("trigger %s fired=%s over %d changed path(s)", list(rule.paths), fired, len(changed))

    if print_plan:
        console.print_plan(workflow.name, list(rule.paths), matched, fired, len(changed))
        for j in workflow.jobs:
            if fired:
                console.print_plan_job(j.name, j.environment.runs_on)
            else:
                console.print_plan_job_skipped(j.name, "no changed path matches the trigger")

    return list(workflow.jobs) if fired else []


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _job_env(job: Job) -> Dict[str, str]:
    env = os.environ.copy()
    env["CI"] = "true"
    env["CHANGECI_JOB"] = job.name
    env["CHANGECI_ENVIRONMENT"] = job.environment.name
    env.update(job.env or {})
    return env


def _run_step(job: Job, step: Step, workdir: Path, env: Dict[str, str]) -> str:
    """Run one shell step; returns its combined output, raises StepFailure on non-zero exit."""
    cwd = (workdir / (step.cwd or ".")).resolve()
    if not cwd.exists():
        raise FileNotFoundError(f"[{job.name}] step '{step.name}' cwd not found: {cwd}")

    log.debug("[%s] %s: %s (cwd=%s)", job.name, step.name, step.run, cwd)
    proc = subprocess.run(
        step.run,
        shell=True,
        cwd=str(cwd),
        env=env,
        text=True,
        errors="replace",
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
    )

    if proc.returncode != 0:
        raise StepFailure(
            job=job.name,
            step=step.name,
            cmd=step.run,
            exit_code=proc.returncode,
            output=proc.stdout or "",
            hint=tool_hint(step),
        )
    return proc.stdout or ""


def _step_failure(job: Job, step: Step, exc: Exception) -> StepFailure:
    """Any non-StepFailure error inside a step is still just a failed step."""
    return StepFailure(
        job=job.name,
        step=step.name,
        cmd=step.run or (step.kind or ""),
        exit_code=getattr(exc, "returncode", 1) or 1,
        output=f"{type(exc).__name__}: {exc}\n",
        hint=tool_hint(step),
    )


def _execute(
    job: Job,
    repo_root: Path,
    head: str,
    host_platform: str,
    transcript: List[str],
    current: List[Step],
) -> None:
    console = get_console()
    env = _job_env(job)

    if not job.environment.available_on(host_platform):
        raise StepFailure(
            job=job.name,
            step=SETUP_STEP,
            cmd="",
            exit_code=1,
            output=(
                f"environment unavailable: {job.environment.runs_on} "
                f"needs a {job.environment.platform} host, this host is {host_platform}\n"
            ),
        )

    with ExitStack() as stack:
        workdir = repo_root
        for step in job.steps:
            current.append(step)
            console.print_step(job.name, step.name)
            transcript.append(f"##[step] {step.name}\n")

            if step.kind == "checkout":
                try:
                    workdir = stack.enter_context(worktree(head, repo_root))
                except (GitError, OSError) as e:
                    raise _step_failure(job, step, e) from e
                transcript.append(f"checked out {head} into {workdir}\n")
                continue

            try:
                compiled = compile_step(step)
            except ValueError as e:
                raise _step_failure(job, step, e) from e

            for shell_step in compiled:
                current.append(shell_step)
                transcript.append(f"$ {shell_step.run}\n")
                try:
                    transcript.append(_run_step(job, shell_step, workdir, env))
                except StepFailure:
                    raise
                except Exception as e:
                    raise _step_failure(job, shell_step, e) from e


def run_job(
    job: Job,
    repo_root: str | Path = ".",
    head: str = "HEAD",
    *,
    host_platform: Optional[str] = None,
) -> RunResult:
    """
    Run one job: set up, checkout, provision, test; steps in order, the first
    failing step ends the job. Never raises for a failing job: every failure
    is returned as a RunResult with status=failure.
    """
    console = get_console()
    root = Path(repo_root).resolve()
    host = host_platform or sys.platform
    transcript: List[str] = []
    started = time.monotonic()

    # steps entered so far; the last one is blamed for an unexpected error
    current: List[Step] = [Step(name=SETUP_STEP)]
    failure: StepFailure | None = None

    result = RunResult(job=job.name, environment=job.environment.name, status=JobStatus.RUNNING)
    try:
        console.print_job_start(job.name, job.environment.runs_on)
        _execute(job, root, head, host, transcript, current)
        result.status = JobStatus.SUCCESS
    except StepFailure as e:
        failure = e
    except Exception as e:
        log.debug("[%s] unexpected error in step %r", job.name, current[-1].name, exc_info=True)
        failure = _step_failure(job, current[-1], e)

    if failure is not None:
        transcript.append(failure.output)
        result.status = JobStatus.FAILURE
        result.failed_step = failure.step
        result.exit_code = failure.exit_code
        console.print_failure(
            job.name,
            step=failure.step,
            exit_code=failure.exit_code,
            output=failure.output,
            hint=failure.hint,
        )

    result.output = "".join(transcript)
    result.duration = time.monotonic() - started
    console.print_job_status(job.name, result.status.value)
    return result


def run_workflow(
    workflow: Workflow,
    changed_paths: Iterable[str],
    *,
    repo_root: str | Path = ".",
    head: str = "HEAD",
    max_workers: int | None = None,
    print_plan: bool = True,
    host_platform: Optional[str] = None,
) -> List[RunResult]:
    """
    Evaluate the trigger, then run every selected job concurrently.

    Jobs are independent: one failing never cancels or changes another.
    Results come back in workflow job order, one per selected job.
    """
    jobs = select_jobs(workflow, changed_paths, print_plan=print_plan)
    if not jobs:
        return []

    root = Path(repo_root).resolve()
    if any(s.kind == "checkout" for j in jobs for s in j.steps):
        try:
            head = rev_parse(head, cwd=root)
        except GitError as e:
            # each job's checkout step reports this as its own failure
            log.warning("could not resolve %s: %s", head, e)

    if max_workers is None:
        max_workers = len(jobs)

    by_name: Dict[str, RunResult] = {}
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        futures = {
            pool.submit(run_job, j, root, head, host_platform=host_platform): j
            for j in jobs
        }
        for fut in as_completed(futures):
            j = futures[fut]
            by_name[j.name] = fut.result()

    return [by_name[j.name] for j in jobs]


# ----------------------------------------------------------------------
# Reporting
# ----------------------------------------------------------------------

def write_report(
    path: str | Path,
    workflow: Workflow,
    changed_paths: Iterable[str],
    results: List[RunResult],
) -> Path:
    """Write the run's status-check payload as JSON."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "workflow": workflow.name,
        "changed_paths": list(changed_paths),
        "triggered": bool(results),
        "success": all(r.ok for r in results),
        "results": [r.to_dict() for r in results],
    }
    out.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    return out
