# step_workflows/rust.py
from __future__ import annotations

import logging
import shutil

from ..dsl import sh
from ..model import Step

log = logging.getLogger(__name__)


TOOL_HINTS = {
    "rustup": "Install rustup from https://rustup.rs or fix PATH.",
    "cargo": "Install a Rust toolchain with rustup or fix PATH.",
    "git": "Install Git or fix PATH.",
}


# ---------------------------------------------------------------------
# Typed step helpers
# ---------------------------------------------------------------------

def toolchain(
    channel: str = "stable",
    *,
    name: str = "Install rust",
    profile: str = "minimal",
) -> Step:
    """Provision a Rust toolchain of the given channel."""
    return Step(
        name=name,
        kind="toolchain",
        data={"channel": channel, "profile": profile},
    )


def cargo(
    command: str,
    args: str = "",
    *,
    name: str | None = None,
    toolchain: str | None = None,
    cwd: str | None = None,
) -> Step:
    """Run a cargo subcommand, e.g. cargo("test", "--all-targets")."""
    return Step(
        name=name or f"Run cargo {command}",
        kind="cargo",
        cwd=cwd,
        data={"command": command, "args": args, "toolchain": toolchain},
    )


# ---------------------------------------------------------------------
# Compilation to shell steps
# ---------------------------------------------------------------------

def compile_step(step: Step) -> list[Step]:
    """
    Turn a typed step into runnable shell steps.
    Runner never sees kind='toolchain' / kind='cargo' after compilation.
    """
    if step.kind is None:
        return [step]

    data = step.data or {}

    if step.kind == "toolchain":
        channel = data.get("channel") or "stable"
        profile = data.get("profile") or "minimal"
        cmd = f"rustup toolchain install {channel} --profile {profile} --no-self-update"
        return [sh(step.name, cmd, cwd=step.cwd)]

    if step.kind == "cargo":
        command = data.get("command")
        if not command:
            raise ValueError(f"cargo step {step.name!r} has no command")
        args = (data.get("args") or "").strip()
        channel = data.get("toolchain")
        prefix = f"cargo +{channel}" if channel else "cargo"
        return [sh(step.name, f"{prefix} {command} {args}".strip(), cwd=step.cwd)]

    raise ValueError(f"Unknown step kind: {step.kind!r}")


def required_tool(step: Step) -> str | None:
    """The executable a (compiled or typed) step starts with."""
    if step.kind == "toolchain":
        return "rustup"
    if step.kind == "cargo":
        return "cargo"
    if step.kind == "checkout":
        return "git"
    words = step.run.split()
    return words[0] if words else None


def tool_hint(step: Step) -> str | None:
    """A hint when the step's tool is known and missing from PATH."""
    tool = required_tool(step)
    if tool not in TOOL_HINTS:
        return None
    if shutil.which(tool) is not None:
        return None
    log.debug("tool %s not found on PATH", tool)
    return TOOL_HINTS[tool]
