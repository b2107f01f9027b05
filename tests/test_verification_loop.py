"""Tests for the bounded verification-and-repair loop."""

from __future__ import annotations

from typing import List

import pytest

from envsynth.common.errors import InvalidTransitionError
from envsynth.common.models import TODO, ProjectProfile
from envsynth.generator import ArtifactGenerator
from envsynth.verifier import LoopState, RepairAction, VerificationLoop
from envsynth.verifier.models import FailureClass, LoopRun
from envsynth.verifier.steps import shell_check_command

MISSING_PACKAGE = "E: Unable to locate package libfoo-dev\n"
NETWORK = "E: Failed to fetch http://deb.debian.org/debian/pool/main/c/curl.deb  Connection timed out\n"


class Harness:
    """Wires a scripted runtime to a loop that regenerates with the real generator."""

    def __init__(self, runtime) -> None:
        self.runtime = runtime
        self.generator = ArtifactGenerator()
        self.regenerated: List[ProjectProfile] = []
        self.sleeps: List[float] = []

    def regenerate(self, profile: ProjectProfile):
        self.regenerated.append(profile)
        return self.generator.generate(profile)

    def run(self, profile: ProjectProfile, **kwargs):
        loop = VerificationLoop(self.runtime, self.regenerate, sleep=self.sleeps.append, **kwargs)
        return loop.run(profile, self.generator.generate(profile))


def test_successful_run_reaches_done(rust_profile, runtime_factory) -> None:
    runtime = runtime_factory()
    harness = Harness(runtime)

    result = harness.run(rust_profile)

    assert result.success
    assert result.exit_code == 0
    assert result.history == (
        LoopState.UNBUILT,
        LoopState.IMAGE_BUILDING,
        LoopState.IMAGE_BUILT,
        LoopState.SHELL_VERIFYING,
        LoopState.SHELL_VERIFIED,
        LoopState.BUILD_VERIFYING,
        LoopState.DONE,
    )
    assert runtime.image_builds == 1
    assert runtime.project_builds == 1
    assert result.image_metrics.layers_count == 9
    assert result.failing_attempt is None


def test_missing_package_is_added_and_retried(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(image_results=[result_factory(100, stderr=MISSING_PACKAGE), result_factory(0)])
    harness = Harness(runtime)

    result = harness.run(rust_profile)

    assert result.final_state == LoopState.DONE
    assert result.repairs == 1
    assert runtime.image_builds == 2
    assert [p.extra_essentials for p in harness.regenerated] == [frozenset({"libfoo-dev"})]
    assert result.profile.revision == 1
    assert "libfoo-dev" in result.generation.files["Dockerfile"]
    assert result.attempts[0].classified_action == RepairAction.ADD_PACKAGE
    assert result.attempts[0].failure_class == FailureClass.MISSING_PACKAGE


def test_same_missing_package_twice_halts(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(
        image_results=[result_factory(100, stderr=MISSING_PACKAGE), result_factory(100, stderr=MISSING_PACKAGE)]
    )
    harness = Harness(runtime)

    result = harness.run(rust_profile)

    assert result.final_state == LoopState.FAILED
    assert result.exit_code == 100
    assert runtime.image_builds == 2
    assert len(harness.regenerated) == 1
    assert runtime.shell_commands == []
    assert result.failing_attempt.classified_action == RepairAction.HALT
    assert MISSING_PACKAGE.strip() in result.failing_attempt.captured_output
    assert "still missing" in result.halt_reason


def test_network_failure_backs_off_exponentially(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(
        image_results=[result_factory(100, stderr=NETWORK), result_factory(100, stderr=NETWORK), result_factory(0)]
    )
    harness = Harness(runtime)

    result = harness.run(rust_profile)

    assert result.success
    assert harness.sleeps == [2.0, 4.0]
    assert harness.regenerated == []
    assert result.repairs == 2


def test_repair_bound_is_shared_and_enforced(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(image_results=[result_factory(100, stderr=NETWORK) for _ in range(10)])
    harness = Harness(runtime)

    result = harness.run(rust_profile)

    assert result.final_state == LoopState.FAILED
    assert result.exit_code == 100
    assert result.repairs == 5
    assert runtime.image_builds == 6
    assert harness.sleeps == [2.0, 4.0, 8.0, 16.0, 32.0]
    assert "exhausted" in result.halt_reason


def test_custom_bound_and_backoff(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(image_results=[result_factory(100, stderr=NETWORK) for _ in range(3)])
    harness = Harness(runtime)

    result = harness.run(rust_profile, max_repair_attempts=2, backoff_base_seconds=0.5)

    assert result.final_state == LoopState.FAILED
    assert harness.sleeps == [0.5, 1.0]
    assert runtime.image_builds == 3


def test_unknown_image_failure_stops_immediately(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(image_results=[result_factory(2, stderr="error: something unexpected\n")])
    harness = Harness(runtime)

    result = harness.run(rust_profile)

    assert result.final_state == LoopState.FAILED
    assert result.exit_code == 2
    assert result.repairs == 0
    assert harness.sleeps == []
    assert harness.regenerated == []
    assert result.history[-2:] == (LoopState.IMAGE_FAILED, LoopState.FAILED)


def test_image_build_timeout_is_not_retried(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(image_results=[result_factory(None, stdout=NETWORK, timed_out=True)])

    result = Harness(runtime).run(rust_profile)

    assert result.final_state == LoopState.FAILED
    assert result.exit_code == 124
    assert runtime.image_builds == 1


def test_shell_failure_is_fatal(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(shell_result=result_factory(1, stderr="test: failed\n", command=("bash", "run.sh", "sh")))

    result = Harness(runtime).run(rust_profile)

    assert result.final_state == LoopState.FAILED
    assert result.exit_code == 1
    assert runtime.project_builds == 0
    assert result.failing_attempt.state == LoopState.SHELL_VERIFYING
    assert runtime.shell_commands == ['test "$(pwd)" = /workspace && test -e Cargo.toml']


def test_project_build_failure_is_surfaced(rust_profile, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(
        build_result=result_factory(101, stderr="error[E0425]: cannot find value `x`\n", command=("bash", "run.sh", "build"))
    )

    result = Harness(runtime).run(rust_profile)

    assert result.final_state == LoopState.BUILD_FAILED
    assert result.exit_code == 101
    assert result.repairs == 0
    assert runtime.image_builds == 1
    failing = result.failing_attempt
    assert failing.state == LoopState.BUILD_VERIFYING
    assert failing.command == "bash run.sh build"
    assert "E0425" in failing.captured_output


def test_todo_build_command_is_skipped(rust_profile, runtime_factory) -> None:
    profile = rust_profile.model_copy(update={"build_command": TODO})
    runtime = runtime_factory()

    result = Harness(runtime).run(profile)

    assert result.final_state == LoopState.DONE
    assert result.exit_code == 0
    assert result.build_skipped
    assert runtime.project_builds == 0
    assert result.attempts[-1].classified_action == RepairAction.SKIP
    assert LoopState.BUILD_VERIFYING not in result.history


def test_invalid_transition_raises(rust_profile) -> None:
    run = LoopRun(profile=rust_profile, generation=ArtifactGenerator().generate(rust_profile))

    with pytest.raises(InvalidTransitionError):
        run.transition(LoopState.DONE)

    run.transition(LoopState.IMAGE_BUILDING)
    with pytest.raises(InvalidTransitionError):
        run.transition(LoopState.SHELL_VERIFYING)
    assert run.state == LoopState.IMAGE_BUILDING


def test_shell_check_without_signature_file() -> None:
    profile = ProjectProfile(project_name="mystery")

    assert shell_check_command(profile, "/workspace") == 'test "$(pwd)" = /workspace && test -n "$(ls -A .)"'
