from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass
from typing import Callable, Protocol

from ..common.command_runner import CommandResult
from ..common.models import ProjectProfile, is_todo
from ..generator.models import GenerationResult
from ..runtime.docker import EnvironmentRuntime
from .classifier import classify_result
from .models import FailureClass, LoopRun, LoopState, RepairAction, VerificationAttempt

Regenerate = Callable[[ProjectProfile], GenerationResult]


@dataclass(slots=True)
class LoopContext:
    """Static collaborators shared across verification steps."""

    runtime: EnvironmentRuntime
    regenerate: Regenerate
    workdir: str
    max_repair_attempts: int
    backoff_base_seconds: float
    sleep: Callable[[float], None]
    logger: logging.Logger


@dataclass(slots=True)
class StepResult:
    continue_pipeline: bool = True


class VerificationStep(Protocol):
    """Protocol implemented by all verification steps."""

    name: str

    def run(self, run: LoopRun, context: LoopContext) -> StepResult:
        ...


def _attempt(
    state: LoopState,
    result: CommandResult,
    action: RepairAction = RepairAction.NONE,
    failure_class=None,
    detail=None,
) -> VerificationAttempt:
    return VerificationAttempt(
        state=state,
        command=result.display(),
        exit_code=0 if result.succeeded() else result.exit_code,
        captured_output=result.output,
        classified_action=action,
        failure_class=failure_class,
        detail=detail,
        duration=result.duration,
    )


class ImageBuildStep:
    """Build the image, repairing environment-level failures within a shared bound."""

    name = "image_build"

    def run(self, run: LoopRun, context: LoopContext) -> StepResult:
        missing_seen = set()
        network_retries = 0
        run.transition(LoopState.IMAGE_BUILDING)

        while True:
            result = context.runtime.build_image()
            if result.succeeded():
                run.record(_attempt(LoopState.IMAGE_BUILDING, result))
                run.transition(LoopState.IMAGE_BUILT)
                run.image_metrics = context.runtime.image_metrics(run.generation.image_name, result.duration)
                return StepResult()

            run.transition(LoopState.IMAGE_FAILED)
            classification = classify_result(result)
            failure = classification.failure_class

            if failure == FailureClass.UNKNOWN:
                reason = "image build failed with an unrecognized error"
            elif run.repairs >= context.max_repair_attempts:
                reason = f"repair bound of {context.max_repair_attempts} attempts exhausted"
            elif failure == FailureClass.MISSING_PACKAGE and classification.package in missing_seen:
                reason = f"package {classification.package} is still missing after being added"
            else:
                reason = None

            if reason is not None:
                run.record(
                    _attempt(
                        LoopState.IMAGE_BUILDING,
                        result,
                        RepairAction.HALT,
                        failure,
                        classification.evidence or classification.package,
                    )
                )
                context.logger.error("Halting verification: %s", reason)
                run.halt_reason = reason
                run.exit_code = result.exit_code
                run.transition(LoopState.FAILED)
                return StepResult(continue_pipeline=False)

            run.repairs += 1
            if failure == FailureClass.MISSING_PACKAGE:
                package = classification.package
                run.record(_attempt(LoopState.IMAGE_BUILDING, result, RepairAction.ADD_PACKAGE, failure, package))
                missing_seen.add(package)
                context.logger.warning(
                    "Image build is missing package %s; regenerating with it in the essentials layer (repair %d/%d)",
                    package,
                    run.repairs,
                    context.max_repair_attempts,
                )
                run.profile = run.profile.with_essentials(package)
                run.generation = context.regenerate(run.profile)
            else:
                delay = context.backoff_base_seconds * (2 ** network_retries)
                network_retries += 1
                run.record(
                    _attempt(
                        LoopState.IMAGE_BUILDING,
                        result,
                        RepairAction.RETRY_WITH_BACKOFF,
                        failure,
                        classification.evidence,
                    )
                )
                context.logger.warning(
                    "Network failure during image build; retrying in %.1fs (repair %d/%d)",
                    delay,
                    run.repairs,
                    context.max_repair_attempts,
                )
                context.sleep(delay)

            run.transition(LoopState.IMAGE_BUILDING)


def shell_check_command(profile: ProjectProfile, workdir: str) -> str:
    """Command proving the project is mounted at the container working path."""
    checks = [f'test "$(pwd)" = {shlex.quote(workdir)}']
    if profile.signature_file:
        checks.append(f"test -e {shlex.quote(profile.signature_file)}")
    else:
        checks.append('test -n "$(ls -A .)"')
    return " && ".join(checks)


class ShellCheckStep:
    """Smoke test in an ephemeral container. Failure is a wrapper defect and fatal."""

    name = "shell_check"

    def run(self, run: LoopRun, context: LoopContext) -> StepResult:
        run.transition(LoopState.SHELL_VERIFYING)
        result = context.runtime.run_shell(shell_check_command(run.profile, context.workdir))
        if result.succeeded():
            run.record(_attempt(LoopState.SHELL_VERIFYING, result))
            run.transition(LoopState.SHELL_VERIFIED)
            return StepResult()

        run.record(_attempt(LoopState.SHELL_VERIFYING, result, RepairAction.HALT, detail="project not visible at workdir"))
        run.halt_reason = f"project is not mounted at {context.workdir} inside the container"
        run.exit_code = result.exit_code
        run.transition(LoopState.FAILED)
        return StepResult(continue_pipeline=False)


class ProjectBuildStep:
    """Run the project's declared build. Failures are surfaced, never repaired."""

    name = "project_build"

    def run(self, run: LoopRun, context: LoopContext) -> StepResult:
        if is_todo(run.profile.build_command):
            context.logger.warning("Build command is unresolved; skipping project build verification")
            run.build_skipped = True
            run.record(
                VerificationAttempt(
                    state=LoopState.SHELL_VERIFIED,
                    command="build",
                    exit_code=0,
                    captured_output="",
                    classified_action=RepairAction.SKIP,
                    detail="build command is TODO",
                )
            )
            run.transition(LoopState.DONE)
            return StepResult(continue_pipeline=False)

        run.transition(LoopState.BUILD_VERIFYING)
        result = context.runtime.build_project()
        if result.succeeded():
            run.record(_attempt(LoopState.BUILD_VERIFYING, result))
            run.transition(LoopState.DONE)
            return StepResult(continue_pipeline=False)

        run.record(_attempt(LoopState.BUILD_VERIFYING, result, RepairAction.HALT, detail="project build failed"))
        run.halt_reason = "project build failed; this is an application-level failure and is not repaired"
        run.exit_code = result.exit_code
        run.transition(LoopState.BUILD_FAILED)
        return StepResult(continue_pipeline=False)
