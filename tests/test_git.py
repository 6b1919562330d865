import pytest

from changeci.git_facts.git import (
    GitError,
    changed_files,
    get_current_ref,
    head_sha,
    is_dirty,
    merge_base,
    pull_request_changes,
    repo_root,
    rev_parse,
    worktree,
)

from conftest import commit_files, git


def test_pull_request_changes_since_merge_base(repo):
    commit_files(repo, {"projects/rprompt/src/lib.rs": "// lib\n"}, "feature work")
    # work landing on main after the branch point is not part of the PR
    git(repo, "checkout", "-q", "main")
    commit_files(repo, {"docs/main-only.md": "x\n"}, "main work")
    git(repo, "checkout", "-q", "feature")

    assert pull_request_changes("main", "feature", cwd=repo) == ["projects/rprompt/src/lib.rs"]


def test_pull_request_changes_falls_back_to_parent(repo):
    commit_files(repo, {"projects/rtoolbox/Cargo.toml": "[package]\n"}, "feature work")
    assert pull_request_changes("origin/main", "HEAD", cwd=repo) == ["projects/rtoolbox/Cargo.toml"]


def test_pull_request_changes_on_first_commit(tmp_path):
    r = tmp_path / "fresh"
    r.mkdir()
    try:
        git(r, "init", "-q")
    except FileNotFoundError:
        pytest.skip("git is not installed")
    commit_files(r, {"a.txt": "a\n", "b/c.rs": "c\n"}, "first")
    assert sorted(pull_request_changes("origin/main", "HEAD", cwd=r)) == ["a.txt", "b/c.rs"]


def test_basic_queries(repo):
    sha = commit_files(repo, {"x.txt": "x\n"}, "x")
    assert head_sha(cwd=repo) == sha
    assert rev_parse("feature", cwd=repo) == sha
    assert repo_root(cwd=repo).resolve() == repo.resolve()
    assert get_current_ref(cwd=repo) == "feature"
    assert merge_base("main", cwd=repo) == rev_parse("main", cwd=repo)
    assert changed_files("main", "feature", cwd=repo) == ["x.txt"]
    assert not is_dirty(cwd=repo)
    (repo / "y.txt").write_text("y", encoding="utf-8")
    assert is_dirty(cwd=repo)


def test_git_error_carries_stderr(repo):
    with pytest.raises(GitError) as info:
        rev_parse("no-such-branch", cwd=repo)
    assert info.value.returncode != 0
    assert "rev-parse" in str(info.value)


def test_worktree_is_removed_even_when_body_raises(repo):
    sha = commit_files(repo, {"projects/rprompt/src/lib.rs": "// lib\n"}, "lib")
    seen = None
    with pytest.raises(RuntimeError):
        with worktree(sha, repo) as path:
            seen = path
            assert (path / "projects/rprompt/src/lib.rs").read_text(encoding="utf-8") == "// lib\n"
            raise RuntimeError("boom")
    assert seen is not None and not seen.exists()
    assert git(repo, "worktree", "list", "--porcelain").count("worktree ") == 1


def test_worktree_of_unknown_commit_raises(repo):
    with pytest.raises(GitError):
        with worktree("0" * 40, repo):
            pass
