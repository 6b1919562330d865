# changeci_workflow.py
# rprompt rust tests: run the rprompt test suite on Linux and Windows whenever
# a pull request touches rprompt or rtoolbox sources.
from __future__ import annotations

from changeci import cargo, checkout, environment, job, matrix, toolchain, wf

ENVIRONMENTS = [
    environment("linux", "ubuntu-latest", platform="linux"),
    environment("windows", "windows-latest", platform="win32"),
]

# rtoolbox changes trigger the run too, but only rprompt's manifest is tested
# (rtoolbox is exercised as an rprompt dependency).
TRIGGER_PATHS = [
    "projects/rprompt/**.toml",
    "projects/rprompt/**.rs",
    "projects/rtoolbox/**.toml",
    "projects/rtoolbox/**.rs",
]

CARGO_TEST_ARGS = "--all-targets --all-features --manifest-path projects/rprompt/Cargo.toml"


def workflow():
    return wf(
        "rprompt rust tests",
        matrix("os", ENVIRONMENTS).jobs(
            lambda e: job(
                f"rust-{e.name}-tests",
                checkout(),
                toolchain("stable"),
                cargo("test", CARGO_TEST_ARGS, name="Run cargo test"),
                environment=e,
            )
        ),
        paths=TRIGGER_PATHS,
    )
