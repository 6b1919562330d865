# cli.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import List

import click

from changeci.export import dump_actions, write_actions
from changeci.git_facts.git import GitError, get_remote_url, pull_request_changes, repo_root
from changeci.log import setup_logging
from changeci.model import Workflow
from changeci.runner import load_workflow, run_workflow, select_jobs, write_report
from changeci.trigger import normalize_path
from changeci.ui.console import Console, get_console, set_console

DEFAULT_WORKFLOW = "changeci_workflow.py"


def find_workflow_files(directory: Path = Path(".")) -> list[Path]:
    """All workflow files in `directory`, the default one first."""
    workflow_files = []

    default_workflow = directory / DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in sorted(directory.glob("*_workflow.py")):
        if path != default_workflow:
            workflow_files.append(path)

    return workflow_files


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and workflow_path.suffix != ".py":
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  changeci run --workflow my_workflow.py",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if not workflow_files:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=["Looked for:", f"  {DEFAULT_WORKFLOW}", "  *_workflow.py"],
            suggestion=f"Create a workflow file:\n  {DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  changeci run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1 and workflow_files[0].name != DEFAULT_WORKFLOW:
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[str(f) for f in workflow_files],
            suggestion=f"Specify a workflow explicitly:\n  changeci run --workflow {workflow_files[0]}",
        )
        sys.exit(1)

    return workflow_files[0]


def _load(ctx: click.Context, workflow_arg: str | None) -> tuple[Path, Workflow]:
    console = get_console()
    workflow_path = discover_workflow(workflow_arg)
    console.print_debug(f"Loading workflow {workflow_path}")
    try:
        return workflow_path, load_workflow(workflow_path)
    except Exception as e:
        console.print_error(
            "Failed to load workflow",
            f"Could not load workflow from {workflow_path}",
            details=[str(e)],
        )
        if ctx.obj.get("debug", False):
            console.print_exception(e)
        sys.exit(1)


def _read_changed_files(source: str) -> List[str]:
    if source == "-":
        text = sys.stdin.read()
    else:
        text = Path(source).read_text(encoding="utf-8")
    return [line for line in text.splitlines() if line.strip()]


def resolve_change_set(changed_file, changed_files_from, base, head) -> List[str]:
    """Explicit paths win; otherwise ask git for the pull request's change set."""
    console = get_console()
    paths: List[str] = list(changed_file or ())
    if changed_files_from:
        paths.extend(_read_changed_files(changed_files_from))
    if changed_file or changed_files_from:
        console.print_debug(f"Change set: {len(paths)} explicit path(s)")
        return [normalize_path(p) for p in paths if normalize_path(p)]
    console.print_debug(f"Change set: git diff merge-base({base}, {head})..{head}")
    return pull_request_changes(base, head)


def change_set_or_exit(command: str, changed_file, changed_files_from, base, head) -> List[str]:
    """resolve_change_set, with failures reported as CLI errors."""
    console = get_console()
    try:
        return resolve_change_set(changed_file, changed_files_from, base, head)
    except GitError as e:
        console.print_error(
            "Could not determine the change set",
            str(e),
            suggestion=f"Pass the changed paths explicitly:\n  changeci {command} --changed-file path/to/file",
        )
    except (OSError, UnicodeDecodeError) as e:
        console.print_error(
            "Could not read the changed-files list",
            f"Failed to read {changed_files_from}",
            details=[str(e)],
            suggestion="The file must be UTF-8 text with one path per line.",
        )
    sys.exit(1)


def change_set_options(fn):
    """Options shared by `run` and `plan`."""
    options = [
        click.option(
            "--workflow",
            default=None,
            help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
        ),
        click.option("--base", default="origin/main", show_default=True, help="Pull request base ref"),
        click.option("--head", default="HEAD", show_default=True, help="Pull request head ref"),
        click.option(
            "--changed-file",
            multiple=True,
            help="A changed path (repeatable). Skips git diff.",
        ),
        click.option(
            "--changed-files-from",
            default=None,
            type=click.Path(exists=True, dir_okay=False, allow_dash=True),
            help="File with one changed path per line ('-' for stdin). Skips git diff.",
        ),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group(context_settings={"auto_envvar_prefix": "CHANGECI"})
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (full step output, stack traces, debug logging)",
)
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Diagnostic log level (default WARNING)",
)
@click.pass_context
def cli(ctx, debug, log_level):
    """changeci: run a workflow's jobs when a change set touches its paths."""
    set_console(Console(debug=debug))
    setup_logging("DEBUG" if debug else log_level)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@change_set_options
@click.option("--workers", default=None, type=int, help="Number of parallel jobs (default: all)")
@click.option("--report", default=None, help="Write a JSON report of the run results to this file")
@click.pass_context
def run(ctx, workflow, base, head, changed_file, changed_files_from, workers, report):
    """Run a workflow for a change set."""
    console = get_console()
    workflow_path, wf = _load(ctx, workflow)

    changed = change_set_or_exit("run", changed_file, changed_files_from, base, head)

    try:
        root = repo_root()
    except GitError:
        root = Path(".").resolve()

    try:
        repo_url = get_remote_url("origin")
        repo_name = repo_url.rstrip("/").split("/")[-1].replace(".git", "")
    except GitError:
        repo_name = root.name

    try:
        console.print_run_started(
            repository=repo_name,
            workflow=f"{wf.name} ({workflow_path.name})",
            changed_count=len(changed),
        )

        results = run_workflow(
            wf,
            changed,
            repo_root=root,
            head=head,
            max_workers=workers,
        )

        console.print_results(results)

        if report:
            out = write_report(report, wf, changed, results)
            console.print_info(f"Report written to {out}")

        if any(not r.ok for r in results):
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except OSError as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@change_set_options
@click.pass_context
def plan(ctx, workflow, base, head, changed_file, changed_files_from):
    """Show which jobs a change set would run, without running them."""
    console = get_console()
    _workflow_path, wf = _load(ctx, workflow)

    changed = change_set_or_exit("plan", changed_file, changed_files_from, base, head)

    jobs = select_jobs(wf, changed, print_plan=True)
    console.print_info(f"{len(jobs)} job(s) would run")


@cli.command()
@click.option(
    "--workflow",
    default=None,
    help=f"Workflow file path (defaults to {DEFAULT_WORKFLOW} if present)",
)
@click.option("--output", "-o", default=None, help="Write to this file instead of stdout")
@click.pass_context
def export(ctx, workflow, output):
    """Render a workflow as a GitHub Actions workflow file."""
    console = get_console()
    _workflow_path, wf = _load(ctx, workflow)

    try:
        if output:
            out = write_actions(wf, output)
            console.print_info(f"Wrote {out}")
        else:
            click.echo(dump_actions(wf), nl=False)
    except ValueError as e:
        console.print_error("Cannot export workflow", str(e))
        sys.exit(1)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
