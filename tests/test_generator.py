"""Tests for artifact generation, placeholder rendering and the Dockerfile policy."""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from envsynth.common.command_runner import CommandRunner
from envsynth.common.errors import ForbiddenDirectiveError
from envsynth.common.models import Ecosystem, PortMapping, ProjectProfile
from envsynth.config import SynthConfig
from envsynth.generator import ArtifactGenerator
from envsynth.generator.models import LAYER_ORDER, GeneratedArtifact, ImageLayer, LayerKind
from envsynth.generator.placeholders import PlaceholderRenderer
from envsynth.generator.policy import assert_policy, find_forbidden, partition_packages, strip_forbidden
from envsynth.toolchain.resolver import ToolchainSpec, resolve


def directive_lines(dockerfile: str):
    return [line for line in dockerfile.splitlines() if line.strip() and not line.startswith("#")]


def test_generation_is_idempotent(rust_profile) -> None:
    generator = ArtifactGenerator()

    first = generator.generate(rust_profile)
    second = generator.generate(rust_profile)

    assert first.files == second.files
    assert sorted(first.files) == [".gitignore", "Dockerfile", "README.md", "run.sh"]


def test_dockerfile_layers_are_ordered(rust_profile) -> None:
    result = ArtifactGenerator().generate(rust_profile)

    kinds = [LAYER_ORDER.index(layer.kind) for layer in result.artifact.image_layers]
    assert kinds == sorted(kinds)
    assert result.artifact.image_layers[0].kind == LayerKind.BASE
    assert result.artifact.image_layers[-1].kind == LayerKind.CLEANUP

    lines = directive_lines(result.files["Dockerfile"])
    assert lines[0] == "FROM debian:12.8-slim"
    assert lines[-1].startswith("RUN apt-get clean")
    assert "--default-toolchain 1.83.0" in result.files["Dockerfile"]


def test_dockerfile_never_contains_forbidden_directives(rust_profile) -> None:
    dockerfile = ArtifactGenerator().generate(rust_profile).files["Dockerfile"]

    assert find_forbidden(dockerfile) == []
    for line in directive_lines(dockerfile):
        assert line.split()[0] not in ("ENTRYPOINT", "CMD", "WORKDIR", "USER")


def test_forbidden_directives_from_toolchain_are_stripped(rust_profile) -> None:
    toolchain = ToolchainSpec(
        ecosystem=Ecosystem.RUST,
        version="1.83.0",
        install_steps=("WORKDIR /opt/rust", "RUN echo ready", 'CMD ["bash"]'),
    )

    result = ArtifactGenerator().generate(rust_profile, toolchain=toolchain)

    assert result.stripped_directives == ["WORKDIR /opt/rust", 'CMD ["bash"]']
    assert "RUN echo ready" in result.files["Dockerfile"]
    assert find_forbidden(result.files["Dockerfile"]) == []


def test_script_and_readme_reflect_profile(rust_profile) -> None:
    result = ArtifactGenerator().generate(rust_profile)
    script = result.files["run.sh"]

    assert script.startswith("#!/usr/bin/env bash\n")
    assert "set -euo pipefail" in script
    assert "IMAGE=demo-devenv" in script
    assert "BUILD_CMD='cargo build'" in script
    assert "TEST_CMD='cargo test'" in script
    assert "-w \"${WORKDIR}\"" in script
    assert "WORKDIR=/workspace" in script
    assert 'MOUNTS=(-v "${PROJECT_DIR}:${WORKDIR}")' in script
    assert "--rm" in script
    assert result.unresolved_placeholders == []
    assert "`cargo build`" in result.files["README.md"]
    assert result.files[".gitignore"] == "/project/\n/.cache/\n"


def test_cache_mounts_and_ports_are_rendered(rust_profile) -> None:
    profile = rust_profile.model_copy(
        update={
            "ports": (PortMapping(host=8080, container=8080),),
            "cache_dirs": resolve(Ecosystem.RUST).cache_dirs,
        }
    )

    result = ArtifactGenerator().generate(profile)
    script = result.files["run.sh"]

    assert 'MOUNTS+=(-v "${SCRIPT_DIR}/".cache/cargo-registry:/usr/local/cargo/registry)' in script
    assert "PORTS+=(-p 8080:8080)" in script
    assert "8080:8080" in result.files["README.md"]
    assert "`.cache/cargo-registry` -> `/usr/local/cargo/registry`" in result.files["README.md"]


def test_unknown_profile_renders_explicit_todo_markers() -> None:
    profile = ProjectProfile(project_name="mystery")

    result = ArtifactGenerator().generate(profile)

    assert set(result.unresolved_placeholders) == {
        "build_command",
        "test_command",
        "run_command",
        "toolchain_version",
        "package_manager",
        "signature_file",
    }
    assert result.unresolved_count == 6
    assert "TODO(toolchain)" in result.files["Dockerfile"]
    assert "TODO(toolchain_version)" in result.files["Dockerfile"]
    assert "BUILD_CMD='TODO(build_command)'" in result.files["run.sh"]
    assert "TODO(run_command)" in result.files["README.md"]
    for text in result.files.values():
        assert "{{" not in text
        assert "{%" not in text


def test_secondary_ecosystems_are_noted_not_provisioned(rust_profile) -> None:
    profile = rust_profile.model_copy(update={"secondary_ecosystems": frozenset({Ecosystem.NODE})})

    result = ArtifactGenerator().generate(profile)

    assert "TODO(secondary:node)" in result.files["Dockerfile"]
    assert "TODO(secondary:node)" in result.files["README.md"]
    assert "nodesource" not in result.files["Dockerfile"]


def test_repaired_profile_adds_essentials(rust_profile) -> None:
    repaired = rust_profile.with_essentials("libssl-dev")

    result = ArtifactGenerator().generate(repaired)
    essentials = result.artifact.layers_of(LayerKind.ESSENTIALS)[0]

    assert repaired.revision == rust_profile.revision + 1
    assert rust_profile.extra_essentials == frozenset()
    assert result.profile_revision == 1
    assert any("libssl-dev" in directive for directive in essentials.directives)
    assert "# added by repair: libssl-dev" in result.files["Dockerfile"]


def test_project_packages_skip_essentials_and_invalid_names(rust_profile) -> None:
    profile = rust_profile.model_copy(update={"os_packages": frozenset({"curl", "libpq-dev", "Bad Name"})})

    result = ArtifactGenerator().generate(profile)
    project_layer = result.artifact.layers_of(LayerKind.PROJECT)[0]

    assert project_layer.directives == ("RUN apt-get install -y --no-install-recommends \\\n    libpq-dev",)
    assert result.dropped_packages == ["Bad Name"]


def test_config_controls_names() -> None:
    config = SynthConfig(project_dir="src-tree", script_name="dev.sh", base_image="ubuntu:24.04")
    profile = ProjectProfile(project_name="svc", ecosystem=Ecosystem.MAKE, build_command="make", toolchains=(Ecosystem.MAKE,))

    result = ArtifactGenerator(config).generate(profile)

    assert sorted(result.files) == [".gitignore", "Dockerfile", "README.md", "dev.sh"]
    assert result.files[".gitignore"].startswith("/src-tree/\n")
    assert "FROM ubuntu:24.04" in result.files["Dockerfile"]


def test_artifact_rejects_out_of_order_layers_and_unknown_commands() -> None:
    base = ImageLayer(kind=LayerKind.BASE, title="base", directives=("FROM scratch",))
    cleanup = ImageLayer(kind=LayerKind.CLEANUP, title="cleanup")

    with pytest.raises(ValueError):
        GeneratedArtifact(image_layers=(cleanup, base), script_commands=())
    with pytest.raises(ValueError):
        GeneratedArtifact(image_layers=(base, cleanup), script_commands=(("deploy", "kubectl apply"),))


def test_placeholder_renderer_marks_unresolved_values() -> None:
    renderer = PlaceholderRenderer()
    source = "{{ a }}|{{ b }}|{{ c }}|{{ d }}"

    rendered = renderer.render(source, {"a": "x", "b": None, "c": "TODO", "d": "  "})

    assert renderer.declared(source) == {"a", "b", "c", "d"}
    assert rendered.text == "x|TODO(b)|TODO(c)|TODO(d)"
    assert rendered.unresolved == ["b", "c", "d"]


def test_placeholder_renderer_quotes_for_shell() -> None:
    rendered = PlaceholderRenderer().render("CMD={{ cmd | shquote }}", {"cmd": "make && make test"})

    assert rendered.text == "CMD='make && make test'"
    assert rendered.unresolved == []


def test_find_forbidden_skips_comments_and_continuations() -> None:
    dockerfile = (
        "FROM debian:12.8-slim\n"
        "# CMD in a comment is fine\n"
        "RUN echo one \\\n"
        "    WORKDIR-like text in a continuation\n"
        'CMD ["bash"]\n'
        "user nobody\n"
    )

    assert find_forbidden(dockerfile) == ["CMD", "USER"]
    with pytest.raises(ForbiddenDirectiveError) as excinfo:
        assert_policy(dockerfile)
    assert excinfo.value.directives == ("CMD", "USER")


def test_strip_forbidden_and_package_partition() -> None:
    kept, stripped = strip_forbidden(["RUN true", "ENTRYPOINT /bin/sh", "ENV A=1"])

    assert kept == ["RUN true", "ENV A=1"]
    assert stripped == ["ENTRYPOINT /bin/sh"]
    assert partition_packages(["git", "curl", "git", "rm -rf /"]) == (["curl", "git"], ["rm -rf /"])


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash is not installed")
def test_shell_check_publishes_no_ports(tmp_path: Path, rust_profile) -> None:
    profile = rust_profile.model_copy(update={"ports": (PortMapping(host=3000, container=3000),)})
    result = ArtifactGenerator().generate(profile)
    (tmp_path / "run.sh").write_text(result.files["run.sh"], encoding="utf-8")
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    fake_docker = bin_dir / "docker"
    fake_docker.write_text('#!/bin/sh\nprintf "%s\\n" "$@"\n', encoding="utf-8")
    fake_docker.chmod(0o755)
    env = {"PATH": f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"}
    runner = CommandRunner()

    check = runner.run(["bash", "run.sh", "sh", "test -e Cargo.toml"], cwd=tmp_path, env=env)
    served = runner.run(["bash", "run.sh", "run"], cwd=tmp_path, env=env)

    assert check.succeeded(), check.output
    assert "-p" not in check.stdout.splitlines()
    assert "3000:3000" not in check.stdout
    assert "; test -e Cargo.toml" in check.stdout
    assert served.succeeded(), served.output
    assert "3000:3000" in served.stdout.splitlines()
