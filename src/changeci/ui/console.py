"""Console output formatting utilities for changeci."""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from changeci.model import RunResult

OUTPUT_TAIL = 4000


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False, stream=None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show full captured output and stack traces
            stream: Output stream (defaults to sys.stdout at write time)
        """
        self.debug = debug
        self._stream = stream
        # jobs report from worker threads; keep multi-line blocks together
        self._lock = threading.Lock()

    @property
    def stream(self):
        return self._stream or sys.stdout

    def _emit(self, *lines: str, err: bool = False) -> None:
        out = sys.stderr if err else self.stream
        # captured step output may not fit the stream encoding (cp1252 pipes)
        encoding = getattr(out, "encoding", None) or "utf-8"
        with self._lock:
            for line in lines:
                line = line.encode(encoding, errors="replace").decode(encoding, errors="replace")
                print(line, file=out)

    def print_run_started(
        self,
        repository: str,
        workflow: str,
        changed_count: int,
    ) -> None:
        """Print run start information."""
        self._emit(
            "",
            "RUN STARTED",
            f"Repository: {repository}",
            f"Workflow: {workflow}",
            f"Changed files: {changed_count}",
            "",
        )

    def print_plan(
        self,
        workflow: str,
        patterns: list[str],
        matched: list[str],
        fired: bool,
        changed_count: int,
    ) -> None:
        """Print the trigger evaluation."""
        lines = [f"PLAN: {workflow}"]
        if not patterns:
            lines.append("  trigger: no path filter (always runs)")
        elif fired:
            lines.append(f"  trigger: fired ({len(matched)} of {changed_count} changed file(s) match)")
            for p in matched[:10]:
                lines.append(f"    {p}")
            if len(matched) > 10:
                lines.append(f"    ... and {len(matched) - 10} more")
        else:
            lines.append(f"  trigger: not fired (0 of {changed_count} changed file(s) match)")
        self._emit(*lines)

    def print_plan_job(self, name: str, runs_on: str) -> None:
        self._emit(f"  RUN: {name} ({runs_on})")

    def print_plan_job_skipped(self, name: str, reason: str) -> None:
        self._emit(f"  SKIP: {name} ({reason})")

    def print_job_start(self, name: str, runs_on: str) -> None:
        self._emit(f"JOB STARTED: {name} ({runs_on})")

    def print_step(self, job: str, step: str) -> None:
        self._emit(f"[{job}] STEP: {step}")

    def print_job_status(self, job: str, status: str) -> None:
        self._emit(f"[{job}] STATUS: {status}")

    def print_failure(
        self,
        job: str,
        *,
        step: str,
        exit_code: Optional[int] = None,
        output: str = "",
        hint: Optional[str] = None,
    ) -> None:
        """
        Print a failed step with the tail of its captured output
        (the full output in debug mode).
        """
        lines = [f"[{job}] STEP FAILED: {step}"]
        if exit_code is not None:
            lines.append(f"[{job}] Exit code: {exit_code}")
        if hint:
            lines.append(f"[{job}] Hint: {hint}")
        text = output if self.debug else output[-OUTPUT_TAIL:]
        if text.strip():
            if len(text) < len(output):
                lines.append(f"[{job}] ... (output truncated, use --debug for all of it)")
            lines.extend(f"[{job}] | {line}" for line in text.rstrip().splitlines())
        self._emit(*lines)

    def print_results(self, results: list["RunResult"]) -> None:
        """Print final results summary."""
        lines = ["", "=" * 40, "RESULTS", "=" * 40]
        if not results:
            lines.append("  no jobs ran (trigger did not fire)")
        for r in results:
            line = f"  {r.job} [{r.environment}]: {r.status.value.upper()} ({r.duration:.1f}s)"
            if r.failed_step:
                line += f" at '{r.failed_step}' (exit={r.exit_code})"
            lines.append(line)
        self._emit(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """Print structured error message on stderr."""
        lines = ["", f"ERROR: {title}", message]
        if details:
            lines.extend(f"  {d}" for d in details)
        if suggestion:
            lines.extend(["", suggestion])
        self._emit(*lines, err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_info(self, message: str) -> None:
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (initialized by the CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
