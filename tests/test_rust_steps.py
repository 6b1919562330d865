import pytest

from changeci.dsl import sh
from changeci.model import Step
from changeci.step_workflows import rust
from changeci.step_workflows.rust import cargo, compile_step, required_tool, tool_hint, toolchain


def test_toolchain_compiles_to_rustup_install():
    [step] = compile_step(toolchain("stable"))
    assert step.kind is None
    assert step.name == "Install rust"
    assert step.run == "rustup toolchain install stable --profile minimal --no-self-update"


def test_cargo_test_compiles_with_args():
    args = "--all-targets --all-features --manifest-path projects/rprompt/Cargo.toml"
    [step] = compile_step(cargo("test", args, name="Run cargo test"))
    assert step.name == "Run cargo test"
    assert step.run == f"cargo test {args}"


def test_cargo_with_toolchain_override():
    [step] = compile_step(cargo("build", toolchain="nightly"))
    assert step.run == "cargo +nightly build"
    assert step.name == "Run cargo build"


def test_plain_steps_pass_through():
    s = sh("x", "echo hi")
    assert compile_step(s) == [s]


def test_unknown_kind_rejected():
    with pytest.raises(ValueError, match="Unknown step kind"):
        compile_step(Step(name="x", kind="docker"))


def test_cargo_without_command_rejected():
    with pytest.raises(ValueError):
        compile_step(Step(name="x", kind="cargo", data={}))


def test_required_tool():
    assert required_tool(toolchain()) == "rustup"
    assert required_tool(cargo("test")) == "cargo"
    assert required_tool(sh("x", "cargo test")) == "cargo"
    assert required_tool(sh("x", "")) is None


def test_tool_hint_only_for_missing_known_tools(monkeypatch):
    monkeypatch.setattr(rust.shutil, "which", lambda tool: None)
    assert tool_hint(sh("x", "rustup toolchain install stable")) == rust.TOOL_HINTS["rustup"]
    assert tool_hint(sh("x", "make test")) is None

    monkeypatch.setattr(rust.shutil, "which", lambda tool: f"/usr/bin/{tool}")
    assert tool_hint(sh("x", "cargo test")) is None
