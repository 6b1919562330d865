import pytest

from changeci.trigger import TriggerRule, normalize_path

RPROMPT = TriggerRule.of([
    "projects/rprompt/**.toml",
    "projects/rprompt/**.rs",
    "projects/rtoolbox/**.toml",
    "projects/rtoolbox/**.rs",
])


@pytest.mark.parametrize(
    "path",
    [
        "projects/rprompt/src/lib.rs",
        "projects/rprompt/Cargo.toml",
        "projects/rprompt/tests/deep/nested/prompt.rs",
        "projects/rtoolbox/src/atty.rs",
        "projects/rtoolbox/Cargo.toml",
        "./projects/rprompt/src/lib.rs",
        "projects\\rprompt\\src\\lib.rs",
    ],
)
def test_matching_paths(path):
    assert RPROMPT.matches_path(path)
    assert RPROMPT.fires([path])


@pytest.mark.parametrize(
    "path",
    [
        "README.md",
        "projects/rprompt/README.md",
        "projects/rpassword/src/lib.rs",
        "projects/rooster/Cargo.toml",
        "Projects/rprompt/src/lib.rs",
        "",
    ],
)
def test_non_matching_paths(path):
    assert not RPROMPT.matches_path(path)
    assert not RPROMPT.fires([path])


def test_fires_when_any_path_matches():
    changed = ["README.md", "docs/x.md", "projects/rtoolbox/src/atty.rs"]
    assert RPROMPT.fires(changed)
    assert RPROMPT.matching(changed) == ["projects/rtoolbox/src/atty.rs"]


def test_empty_change_set_does_not_fire():
    assert not RPROMPT.fires([])


def test_unfiltered_rule_always_fires():
    rule = TriggerRule.of(None)
    assert rule.unfiltered
    assert rule.fires([])
    assert rule.fires(["anything.txt"])


def test_negated_pattern_excludes_earlier_match():
    rule = TriggerRule.of(["src/**", "!src/**.md"])
    assert rule.fires(["src/main.rs"])
    assert not rule.fires(["src/docs/notes.md"])


def test_later_positive_pattern_reincludes():
    rule = TriggerRule.of(["src/**", "!src/generated/**", "src/generated/keep.rs"])
    assert not rule.matches_path("src/generated/other.rs")
    assert rule.matches_path("src/generated/keep.rs")


def test_normalize_path():
    assert normalize_path("./a/b.rs") == "a/b.rs"
    assert normalize_path("a\\b.rs") == "a/b.rs"
    assert normalize_path("  a/b.rs\n") == "a/b.rs"
