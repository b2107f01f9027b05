"""Verification-and-repair loop for generated environments."""

from .classifier import COMMAND_PACKAGES, Classification, classify_output, classify_result
from .loop import BACKOFF_BASE_SECONDS, MAX_REPAIR_ATTEMPTS, VerificationLoop
from .models import (
    TERMINAL_STATES,
    TRANSITIONS,
    FailureClass,
    LoopResult,
    LoopRun,
    LoopState,
    RepairAction,
    VerificationAttempt,
)
from .steps import ImageBuildStep, LoopContext, ProjectBuildStep, ShellCheckStep, StepResult, shell_check_command

__all__ = [
    "COMMAND_PACKAGES",
    "Classification",
    "classify_output",
    "classify_result",
    "BACKOFF_BASE_SECONDS",
    "MAX_REPAIR_ATTEMPTS",
    "VerificationLoop",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "FailureClass",
    "LoopResult",
    "LoopRun",
    "LoopState",
    "RepairAction",
    "VerificationAttempt",
    "ImageBuildStep",
    "LoopContext",
    "ProjectBuildStep",
    "ShellCheckStep",
    "StepResult",
    "shell_check_command",
]
