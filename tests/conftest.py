"""Shared fixtures: on-disk project trees and a scripted container runtime."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from envsynth.common.command_runner import CommandResult
from envsynth.common.models import Ecosystem, ImageMetrics, ProjectProfile


def make_result(
    return_code: Optional[int] = 0,
    stdout: str = "",
    stderr: str = "",
    timed_out: bool = False,
    tool_available: bool = True,
    command: Sequence[str] = ("bash", "run.sh", "docker"),
) -> CommandResult:
    """Build a CommandResult without running anything."""
    return CommandResult(
        command=list(command),
        return_code=return_code,
        stdout=stdout,
        stderr=stderr,
        duration=0.5,
        timed_out=timed_out,
        tool_available=tool_available,
    )


class FakeRuntime:
    """Scripted stand-in for the docker-backed runtime."""

    def __init__(
        self,
        image_results: Sequence[CommandResult] = (),
        shell_result: Optional[CommandResult] = None,
        build_result: Optional[CommandResult] = None,
    ) -> None:
        self.image_results: List[CommandResult] = list(image_results) or [make_result()]
        self.shell_result = shell_result or make_result(command=("bash", "run.sh", "sh"))
        self.build_result = build_result or make_result(command=("bash", "run.sh", "build"))
        self.image_builds = 0
        self.project_builds = 0
        self.shell_commands: List[str] = []

    def build_image(self) -> CommandResult:
        self.image_builds += 1
        return self.image_results.pop(0)

    def run_shell(self, command: str) -> CommandResult:
        self.shell_commands.append(command)
        return self.shell_result

    def build_project(self) -> CommandResult:
        self.project_builds += 1
        return self.build_result

    def image_metrics(self, image_name: str, build_time: float) -> Optional[ImageMetrics]:
        return ImageMetrics(image_name=image_name, build_time=build_time, image_size_mb=512.0, layers_count=9)


@pytest.fixture
def result_factory() -> Callable[..., CommandResult]:
    return make_result


@pytest.fixture
def runtime_factory() -> Callable[..., FakeRuntime]:
    return FakeRuntime


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Create a project tree under tmp_path from a {relative path: content} mapping."""

    def _make(files: Dict[str, str], name: str = "demo") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for relative, content in files.items():
            path = root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def rust_profile() -> ProjectProfile:
    return ProjectProfile(
        project_name="demo",
        ecosystem=Ecosystem.RUST,
        build_command="cargo build",
        test_command="cargo test",
        run_command="cargo run",
        toolchain_version="1.83.0",
        toolchains=(Ecosystem.RUST,),
        signature_file="Cargo.toml",
    )


CARGO_TOML = """\
[package]
name = "demo"
version = "0.1.0"
edition = "2021"

[dependencies]
serde = "1"
"""


@pytest.fixture
def rust_project(make_project) -> Path:
    return make_project({"Cargo.toml": CARGO_TOML, "src/main.rs": "fn main() {}\n"})
