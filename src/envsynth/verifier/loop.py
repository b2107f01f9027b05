"""Bounded verification-and-repair loop."""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from ..common.models import ProjectProfile
from ..generator.models import GenerationResult
from ..runtime.docker import EnvironmentRuntime
from .models import TERMINAL_STATES, LoopResult, LoopRun, LoopState
from .steps import ImageBuildStep, LoopContext, ProjectBuildStep, Regenerate, ShellCheckStep, VerificationStep

MAX_REPAIR_ATTEMPTS = 5
BACKOFF_BASE_SECONDS = 2.0


class VerificationLoop:
    """Drive image build, shell smoke test and project build through the state machine.

    Environment-level image build failures (missing package, network) are
    repaired up to ``max_repair_attempts`` times in total. Everything else stops
    the loop and is reported with its raw output and exit code.
    """

    def __init__(
        self,
        runtime: EnvironmentRuntime,
        regenerate: Regenerate,
        *,
        workdir: str = "/workspace",
        max_repair_attempts: int = MAX_REPAIR_ATTEMPTS,
        backoff_base_seconds: float = BACKOFF_BASE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        steps: Optional[Sequence[VerificationStep]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.context = LoopContext(
            runtime=runtime,
            regenerate=regenerate,
            workdir=workdir,
            max_repair_attempts=max_repair_attempts,
            backoff_base_seconds=backoff_base_seconds,
            sleep=sleep,
            logger=logger or logging.getLogger(__name__),
        )
        self.steps = list(steps) if steps is not None else [ImageBuildStep(), ShellCheckStep(), ProjectBuildStep()]

    def run(self, profile: ProjectProfile, generation: GenerationResult) -> LoopResult:
        run = LoopRun(profile=profile, generation=generation)
        logger = self.context.logger

        for step in self.steps:
            logger.debug("Running verification step: %s (state=%s)", step.name, run.state.value)
            result = step.run(run, self.context)
            if not result.continue_pipeline:
                logger.debug("Stopping verification after step %s", step.name)
                break

        if run.state not in TERMINAL_STATES:
            raise RuntimeError(f"Verification steps ended in non-terminal state {run.state.value}")

        exit_code = 0 if run.state == LoopState.DONE else (run.exit_code if run.exit_code is not None else 1)
        logger.info("Verification finished in state %s (exit code %d)", run.state.value, exit_code)

        return LoopResult(
            final_state=run.state,
            exit_code=exit_code,
            profile=run.profile,
            generation=run.generation,
            attempts=tuple(run.attempts),
            history=tuple(run.history),
            repairs=run.repairs,
            image_metrics=run.image_metrics,
            build_skipped=run.build_skipped,
            halt_reason=run.halt_reason,
        )
