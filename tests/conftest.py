"""Shared pytest fixtures."""

from __future__ import annotations

import io
import shutil
import subprocess
from pathlib import Path

import pytest

from changeci.ui.console import Console, set_console

ROOT = Path(__file__).resolve().parent.parent


def git(repo: Path, *args: str) -> str:
    out = subprocess.run(
        [
            "git",
            "-c", "user.name=changeci-tests",
            "-c", "user.email=tests@example.invalid",
            "-c", "commit.gpgsign=false",
            "-c", "init.defaultBranch=main",
            *args,
        ],
        cwd=repo,
        check=True,
        text=True,
        capture_output=True,
    )
    return out.stdout.strip()


def commit_files(repo: Path, files: dict[str, str], message: str) -> str:
    for rel, content in files.items():
        p = repo / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
    git(repo, "add", "-A")
    git(repo, "commit", "-q", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture(autouse=True)
def console():
    """Quiet, inspectable console for every test."""
    c = Console(stream=io.StringIO())
    set_console(c)
    yield c
    set_console(Console())


@pytest.fixture
def rprompt_workflow_path() -> Path:
    return ROOT / "changeci_workflow.py"


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A git repo on `main` with one commit, plus a `feature` branch checked out."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    r = tmp_path / "repo"
    r.mkdir()
    git(r, "init", "-q")
    commit_files(r, {"README.md": "# repo\n", "projects/rprompt/Cargo.toml": "[package]\n"}, "initial")
    git(r, "branch", "-M", "main")
    git(r, "checkout", "-q", "-b", "feature")
    return r
