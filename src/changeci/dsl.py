# src/changeci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional

from .model import Environment, Job, Step, Workflow
from .trigger import TriggerRule


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(name: str, cmd: str, *, cwd: str | None = None) -> Step:
    """Create a shell step."""
    return Step(name=name, run=cmd, cwd=cwd)


def checkout(name: str = "Checkout code") -> Step:
    """Materialize the source tree at the head commit; later steps run inside it."""
    return Step(name=name, kind="checkout")


def environment(name: str, runs_on: str, *, platform: str | None = None) -> Environment:
    return Environment(name=name, runs_on=runs_on, platform=platform)


# ---------------------------------------------------------------------
# Functional Job helper
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,  # allow: job("x", sh(...), sh(...))
    environment: Environment,
    steps_list: Optional[List[Step]] = None,
    env: Optional[Dict[str, str]] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(list(steps_list))
    steps_final.extend(list(steps))

    if not steps_final:
        raise ValueError(f"job({name!r}) must have at least one step")

    if cwd is not None:
        steps_final = [
            s if s.cwd is not None or s.kind == "checkout" else replace(s, cwd=cwd)
            for s in steps_final
        ]

    return Job(
        name=name,
        steps=steps_final,
        environment=environment,
        env={k: str(v) for k, v in (env or {}).items()},
    )


# ---------------------------------------------------------------------
# Builder API
# ---------------------------------------------------------------------

class JobBuilder:
    def __init__(self, name: str):
        self.name = name
        self._steps: list[Step] = []
        self._env: dict[str, str] = {}
        self._environment: Environment | None = None

    def on(self, env: Environment):
        self._environment = env
        return self

    def define_step(self, name: str, run: str, cwd: str | None = None):
        self._steps.append(Step(name=name, run=run, cwd=cwd))
        return self

    def add_step(self, step: Step):
        self._steps.append(step)
        return self

    def with_env(self, **env):
        # force values to str for env compatibility
        self._env.update({k: str(v) for k, v in env.items()})
        return self

    def build(self) -> Job:
        if not self._steps:
            raise ValueError(f"Job '{self.name}' has no steps")
        if self._environment is None:
            raise ValueError(f"Job '{self.name}' has no environment; call .on(...)")

        return Job(
            name=self.name,
            steps=list(self._steps),
            environment=self._environment,
            env=dict(self._env),
        )


def build(name: str) -> JobBuilder:
    """Convenience: build('test').on(env).define_step(...).build()"""
    return JobBuilder(name)


# ---------------------------------------------------------------------
# Matrix
# ---------------------------------------------------------------------

class Matrix:
    """
    Minimal matrix expander: one job per value.

    Example:
        matrix("os", [linux, windows]).jobs(
            lambda e: job(f"tests-{e.name}", sh(...), environment=e)
        )
    """
    def __init__(self, key: str, values: Iterable[Any]):
        self.key = key
        self.values = list(values)
        if not self.values:
            raise ValueError(f"matrix({key!r}) must have at least one value")

    def jobs(self, builder: Callable[[Any], Job]) -> List[Job]:
        return [builder(v) for v in self.values]


def matrix(key: str, values: Iterable[Any]) -> Matrix:
    return Matrix(key, values)


# ---------------------------------------------------------------------
# Workflow helper (single-file story)
# ---------------------------------------------------------------------

def wf(name: str, *jobs: Job | List[Job], paths: Optional[Iterable[str]] = None) -> Workflow:
    """
    Workflow definition helper. Accepts jobs and lists of jobs (matrix output).

    Users can write:
        from changeci import wf, job, sh, matrix

        def workflow():
            return wf(
                "my tests",
                matrix("os", ENVIRONMENTS).jobs(lambda e: job(...)),
                paths=["src/**.py"],
            )
    """
    flat: List[Job] = []
    for j in jobs:
        if isinstance(j, list):
            flat.extend(j)
        else:
            flat.append(j)
    return Workflow(name=name, trigger=TriggerRule.of(paths), jobs=flat)


workflow = wf  # alias (avoid naming your own function workflow if you import it)
