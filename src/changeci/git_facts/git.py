# git.py
# Small, focused wrapper around the Git CLI.
# This module centralizes all Git interactions so the rest of the codebase
# never needs to call subprocess("git ...") directly.

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

log = logging.getLogger(__name__)

# git takes locks on shared metadata (.git/worktrees, config) when adding or
# removing worktrees, so concurrent jobs must not do it at the same time.
_WORKTREE_LOCK = threading.Lock()


class GitError(RuntimeError):
    """A git command exited non-zero (or git is not installed)."""

    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr.strip()
        msg = f"git {' '.join(args)} failed (exit={returncode})"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


def _git(args: list[str], cwd: str | Path | None = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    This is the single low-level entry point for all Git operations in this file.

    Args:
        args: List of git arguments (e.g. ["status", "--porcelain"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        GitError: if git exits non-zero or cannot be started.
    """
    log.debug("git %s (cwd=%s)", " ".join(args), cwd or ".")
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd is not None else None,
            text=True,
            capture_output=True,
        )
    except FileNotFoundError as e:
        raise GitError(args, 127, "git command not found") from e

    if proc.returncode != 0:
        raise GitError(args, proc.returncode, proc.stderr)

    # Strip trailing newlines so callers can do clean string comparisons
    return proc.stdout.strip()


def _lines(out: str) -> List[str]:
    return out.splitlines() if out else []


def repo_root(cwd: str | Path | None = None) -> Path:
    """Absolute path to the root of the current Git repository."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def rev_parse(ref: str, cwd: str | Path | None = None) -> str:
    """Resolve a ref (branch, tag, HEAD~1, ...) to a full commit SHA."""
    return _git(["rev-parse", "--verify", f"{ref}^{{commit}}"], cwd=cwd)


def head_sha(cwd: str | Path | None = None) -> str:
    """Full SHA of the current HEAD commit."""
    return rev_parse("HEAD", cwd=cwd)


def is_dirty(cwd: str | Path | None = None) -> bool:
    """True if the working tree has modified, staged or untracked files."""
    return _git(["status", "--porcelain"], cwd=cwd) != ""


def changed_files(base: str, head: str = "HEAD", cwd: str | Path | None = None) -> List[str]:
    """
    Files changed between two Git references, relative to the repo root.

    Typical usage:
        base = merge_base("origin/main")
        files = changed_files(base)
    """
    return _lines(_git(["diff", "--name-only", f"{base}..{head}"], cwd=cwd))


def tracked_files(ref: str = "HEAD", cwd: str | Path | None = None) -> List[str]:
    """Every file tracked at `ref`."""
    return _lines(_git(["ls-tree", "-r", "--name-only", ref], cwd=cwd))


def merge_base(with_ref: str = "origin/main", head: str = "HEAD", cwd: str | Path | None = None) -> str:
    """
    Commit SHA of the merge-base (common ancestor) of `head` and `with_ref`.

    The merge-base is the point where a pull request branch diverged from its
    target, i.e. the starting point for "what changed in this pull request".
    """
    return _git(["merge-base", head, with_ref], cwd=cwd)


def pull_request_changes(
    base_ref: str = "origin/main",
    head_ref: str = "HEAD",
    cwd: str | Path | None = None,
) -> List[str]:
    """
    The change set of a pull request from `head_ref` into `base_ref`.

    Falls back to the parent of `head_ref` when `base_ref` is unknown (no
    remote configured, shallow clone) and to every tracked file when
    `head_ref` has no parent (first commit).
    """
    try:
        base: Optional[str] = merge_base(base_ref, head_ref, cwd=cwd)
    except GitError as e:
        log.info("no merge-base with %s (%s); diffing against %s~1", base_ref, e.stderr, head_ref)
        base = f"{head_ref}~1"

    try:
        return changed_files(base, head_ref, cwd=cwd)
    except GitError:
        log.info("%s has no parent; treating all tracked files as changed", head_ref)
        return tracked_files(head_ref, cwd=cwd)


def get_remote_url(name: str = "origin", cwd: str | Path | None = None) -> str:
    return _git(["remote", "get-url", name], cwd=cwd)


def get_current_ref(cwd: str | Path | None = None) -> str:
    """Current branch name, or the HEAD SHA when detached."""
    ref = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=cwd)
    return head_sha(cwd=cwd) if ref == "HEAD" else ref


@contextmanager
def worktree(sha: str, root: str | Path, prefix: str = "changeci-") -> Iterator[Path]:
    """
    Check out `sha` into a fresh temporary directory and yield its path.

    The worktree is detached (no branch is created) and is always removed on
    exit, whether or not the body raised.
    """
    parent = Path(tempfile.mkdtemp(prefix=prefix))
    path = parent / "src"
    try:
        with _WORKTREE_LOCK:
            _git(["worktree", "add", "--detach", str(path), sha], cwd=root)
        log.debug("worktree for %s at %s", sha[:12], path)
        yield path
    finally:
        with _WORKTREE_LOCK:
            if path.exists():
                try:
                    _git(["worktree", "remove", "--force", str(path)], cwd=root)
                except GitError as e:
                    log.warning("could not remove worktree %s: %s", path, e)
            try:
                _git(["worktree", "prune"], cwd=root)
            except GitError as e:
                log.warning("git worktree prune failed: %s", e)
        shutil.rmtree(parent, ignore_errors=True)
