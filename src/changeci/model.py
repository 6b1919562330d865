# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .trigger import TriggerRule


@dataclass(frozen=True)
class Step:
    """
    A single step inside a CI job.

    Plain shell steps carry their command in `run`. Typed steps (`kind` set)
    carry their parameters in `data` and are compiled into shell steps
    before execution, except `checkout`, which the runner handles itself.
    """
    name: str
    run: str = ""
    cwd: str | None = None
    kind: str | None = None
    data: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class Environment:
    """One target execution platform of the job matrix."""
    name: str                      # matrix id, e.g. "linux"
    runs_on: str                   # host image label, e.g. "ubuntu-latest"
    platform: str | None = None    # required sys.platform prefix, e.g. "win32"

    def available_on(self, host_platform: str) -> bool:
        if not self.platform:
            return True
        return host_platform.startswith(self.platform)


@dataclass
class Job:
    """A CI job: an ordered list of steps bound to exactly one Environment."""
    name: str
    steps: list[Step]
    environment: Environment
    env: Dict[str, str] = field(default_factory=dict)


@dataclass
class Workflow:
    """A path-triggered set of independent jobs."""
    name: str
    trigger: TriggerRule
    jobs: List[Job] = field(default_factory=list)

    def __post_init__(self) -> None:
        names = [j.name for j in self.jobs]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Duplicate job names found: {dupes}")

    @property
    def environments(self) -> List[Environment]:
        return [j.environment for j in self.jobs]


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILURE)


@dataclass
class RunResult:
    """Terminal outcome of one Job, created when the job completes."""
    job: str
    environment: str
    status: JobStatus
    output: str = ""
    failed_step: str | None = None
    exit_code: int = 0
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "environment": self.environment,
            "status": self.status.value,
            "failed_step": self.failed_step,
            "exit_code": self.exit_code,
            "duration": round(self.duration, 3),
            "output": self.output,
        }
