"""Exception hierarchy shared by the analyzer, generator, store and verifier."""
from __future__ import annotations

from typing import Iterable, Optional


class EnvsynthError(Exception):
    """Base class for every error raised by envsynth."""


class ConfigError(EnvsynthError):
    """Configuration file could not be read or failed validation."""


class ProjectSourceError(EnvsynthError):
    """The project source could not be cloned or copied into the wrapper."""


class WrapperExistsError(EnvsynthError):
    """The wrapper directory already holds content and will not be overwritten."""


class ArtifactWriteError(EnvsynthError):
    """A generated artifact or scaffold file could not be written or committed."""


class ForbiddenDirectiveError(EnvsynthError):
    """Generated image description contains a directive the artifact policy forbids."""

    def __init__(self, directives: Iterable[str]) -> None:
        self.directives = tuple(directives)
        super().__init__(
            "Generated Dockerfile contains forbidden directives: " + ", ".join(self.directives)
        )


class InvalidTransitionError(EnvsynthError):
    """The verification loop attempted a state change its state machine does not allow."""

    def __init__(self, current: str, target: str, detail: Optional[str] = None) -> None:
        self.current = current
        self.target = target
        message = f"Illegal verification transition {current} -> {target}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
