"""State machine, attempt log and result models of the verification loop."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from ..common.errors import InvalidTransitionError
from ..common.models import ImageMetrics, ProjectProfile
from ..generator.models import GenerationResult


class LoopState(str, Enum):
    UNBUILT = "unbuilt"
    IMAGE_BUILDING = "image_building"
    IMAGE_BUILT = "image_built"
    IMAGE_FAILED = "image_failed"
    SHELL_VERIFYING = "shell_verifying"
    SHELL_VERIFIED = "shell_verified"
    FAILED = "failed"
    BUILD_VERIFYING = "build_verifying"
    DONE = "done"
    BUILD_FAILED = "build_failed"


TERMINAL_STATES: FrozenSet[LoopState] = frozenset({LoopState.DONE, LoopState.FAILED, LoopState.BUILD_FAILED})

TRANSITIONS: Dict[LoopState, FrozenSet[LoopState]] = {
    LoopState.UNBUILT: frozenset({LoopState.IMAGE_BUILDING}),
    LoopState.IMAGE_BUILDING: frozenset({LoopState.IMAGE_BUILT, LoopState.IMAGE_FAILED}),
    LoopState.IMAGE_FAILED: frozenset({LoopState.IMAGE_BUILDING, LoopState.FAILED}),
    LoopState.IMAGE_BUILT: frozenset({LoopState.SHELL_VERIFYING}),
    LoopState.SHELL_VERIFYING: frozenset({LoopState.SHELL_VERIFIED, LoopState.FAILED}),
    LoopState.SHELL_VERIFIED: frozenset({LoopState.BUILD_VERIFYING, LoopState.DONE}),
    LoopState.BUILD_VERIFYING: frozenset({LoopState.DONE, LoopState.BUILD_FAILED}),
}


class FailureClass(str, Enum):
    """Image build failure categories."""

    MISSING_PACKAGE = "missing_package"
    NETWORK_TRANSIENT = "network_transient"
    UNKNOWN = "unknown"


class RepairAction(str, Enum):
    """What the loop decided after an attempt."""

    NONE = "none"
    ADD_PACKAGE = "add_package"
    RETRY_WITH_BACKOFF = "retry_with_backoff"
    HALT = "halt"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class VerificationAttempt:
    """One executed (or skipped) command. Never mutated after creation."""

    state: LoopState
    command: str
    exit_code: int
    captured_output: str
    classified_action: RepairAction = RepairAction.NONE
    failure_class: Optional[FailureClass] = None
    detail: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "command": self.command,
            "exit_code": self.exit_code,
            "captured_output": self.captured_output,
            "classified_action": self.classified_action.value,
            "failure_class": self.failure_class.value if self.failure_class else None,
            "detail": self.detail,
            "duration": round(self.duration, 3),
        }


@dataclass(slots=True)
class LoopRun:
    """Mutable state that flows through the verification steps."""

    profile: ProjectProfile
    generation: GenerationResult
    state: LoopState = LoopState.UNBUILT
    attempts: List[VerificationAttempt] = field(default_factory=list)
    history: List[LoopState] = field(default_factory=lambda: [LoopState.UNBUILT])
    repairs: int = 0
    exit_code: Optional[int] = None
    image_metrics: Optional[ImageMetrics] = None
    build_skipped: bool = False
    halt_reason: Optional[str] = None

    def transition(self, target: LoopState, detail: Optional[str] = None) -> None:
        """Move to target.

        Raises:
            InvalidTransitionError: If target is not reachable from the current state.
        """
        if target not in TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransitionError(self.state.value, target.value, detail)
        self.state = target
        self.history.append(target)

    def record(self, attempt: VerificationAttempt) -> None:
        self.attempts.append(attempt)

    @property
    def last_attempt(self) -> Optional[VerificationAttempt]:
        return self.attempts[-1] if self.attempts else None


@dataclass(frozen=True, slots=True)
class LoopResult:
    """Final outcome of a verification run."""

    final_state: LoopState
    exit_code: int
    profile: ProjectProfile
    generation: GenerationResult
    attempts: tuple
    history: tuple
    repairs: int = 0
    image_metrics: Optional[ImageMetrics] = None
    build_skipped: bool = False
    halt_reason: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.final_state == LoopState.DONE

    @property
    def failing_attempt(self) -> Optional[VerificationAttempt]:
        """The attempt whose command caused a terminal failure, if any."""
        if self.success:
            return None
        for attempt in reversed(self.attempts):
            if attempt.exit_code != 0:
                return attempt
        return None
