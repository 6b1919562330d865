# trigger.py
# Path-filter evaluation: decides whether a change set triggers a workflow.

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Iterable, List, Tuple


def normalize_path(path: str) -> str:
    """Repo-relative, forward-slash form of a changed path."""
    p = path.strip().replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p


@dataclass(frozen=True)
class TriggerRule:
    """
    A set of glob patterns matched against changed file paths.

    Patterns follow fnmatch syntax, so both `*` and `**` match across `/`:
    `projects/rprompt/**.rs` matches `projects/rprompt/src/lib.rs`.

    A pattern prefixed with `!` excludes paths matched by earlier patterns.
    The last pattern that matches a path decides whether it counts.
    """
    paths: Tuple[str, ...] = ()

    @classmethod
    def of(cls, patterns: Iterable[str] | None) -> "TriggerRule":
        return cls(tuple(patterns or ()))

    @property
    def unfiltered(self) -> bool:
        return not self.paths

    def matches_path(self, path: str) -> bool:
        p = normalize_path(path)
        if not p:
            return False

        matched = False
        for pattern in self.paths:
            if pattern.startswith("!"):
                if matched and fnmatchcase(p, pattern[1:]):
                    matched = False
            elif not matched and fnmatchcase(p, pattern):
                matched = True
        return matched

    def matching(self, paths: Iterable[str]) -> List[str]:
        """Changed paths that satisfy the rule, in input order."""
        return [p for p in paths if self.matches_path(p)]

    def fires(self, paths: Iterable[str]) -> bool:
        if self.unfiltered:
            return True
        return any(self.matches_path(p) for p in paths)
