"""Shared data models used across analyzer, generator, store and verifier."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Explicit "unknown, needs human follow-up" marker. Never replaced by a guess.
TODO = "TODO"


def is_todo(value: Optional[str]) -> bool:
    """Return True when a value is the TODO sentinel (or was never resolved)."""
    return value is None or value == TODO


def todo_marker(name: str) -> str:
    """Marker string written into artifacts for an unresolved placeholder."""
    return f"TODO({name})"


# Debian package names, optionally with an architecture qualifier or version pin.
_OS_PACKAGE_RE = re.compile(r"^[a-z0-9][a-z0-9+.\-]+(?::[a-z0-9]+)?(?:=[A-Za-z0-9.+:~\-]+)?$")


def is_valid_os_package(name: str) -> bool:
    return bool(_OS_PACKAGE_RE.match(name))


class Ecosystem(str, Enum):
    """Language/build-tool families the analyzer can detect."""

    RUST = "rust"
    GO = "go"
    NODE = "node"
    PYTHON = "python"
    MAVEN = "maven"
    GRADLE = "gradle"
    DOTNET = "dotnet"
    CMAKE = "cmake"
    MESON = "meson"
    MAKE = "make"
    RUBY = "ruby"
    PHP = "php"
    UNKNOWN = "unknown"


class CacheMount(BaseModel):
    """Host cache directory (relative to the wrapper root) bound into the container."""

    model_config = ConfigDict(frozen=True)

    host_path: str = Field(description="Path relative to the wrapper root, e.g. '.cache/cargo-registry'")
    container_path: str = Field(description="Absolute path inside the container")

    def as_pair(self) -> str:
        return f"{self.host_path}:{self.container_path}"


class PortMapping(BaseModel):
    """Published port, host side first."""

    model_config = ConfigDict(frozen=True)

    host: int
    container: int

    def as_pair(self) -> str:
        return f"{self.host}:{self.container}"


class ProjectProfile(BaseModel):
    """Structured result of analysis describing a project's build characteristics.

    Profiles are immutable. Repairs that need a data-model change produce a new
    revision through :meth:`with_essentials` instead of editing in place.
    """

    model_config = ConfigDict(frozen=True)

    project_name: str
    ecosystem: Ecosystem = Ecosystem.UNKNOWN
    package_manager: Optional[str] = None
    package_manager_version: Optional[str] = None
    build_command: str = TODO
    test_command: str = TODO
    run_command: str = TODO
    toolchain_version: Optional[str] = None
    os_packages: FrozenSet[str] = Field(default_factory=frozenset)
    extra_essentials: FrozenSet[str] = Field(default_factory=frozenset)
    cache_dirs: Tuple[CacheMount, ...] = ()
    ports: Tuple[PortMapping, ...] = ()
    secondary_ecosystems: FrozenSet[Ecosystem] = Field(default_factory=frozenset)
    toolchains: Tuple[Ecosystem, ...] = ()
    web_framework: Optional[str] = None
    project_subdir: str = "."
    signature_file: Optional[str] = None
    ambiguities: Tuple[str, ...] = ()
    doc_commands: Tuple[str, ...] = ()
    revision: int = 0

    @property
    def is_unknown(self) -> bool:
        return self.ecosystem == Ecosystem.UNKNOWN

    def unresolved_commands(self) -> Tuple[str, ...]:
        """Names of command fields still holding the TODO sentinel."""
        names = []
        for name in ("build_command", "test_command", "run_command"):
            if is_todo(getattr(self, name)):
                names.append(name)
        return tuple(names)

    def with_essentials(self, *packages: str) -> "ProjectProfile":
        """Return a new revision with packages added to the common-essentials layer."""
        merged = frozenset(self.extra_essentials) | frozenset(packages)
        return self.model_copy(update={"extra_essentials": merged, "revision": self.revision + 1})

    def sorted_secondary(self) -> Tuple[Ecosystem, ...]:
        return tuple(sorted(self.secondary_ecosystems, key=lambda eco: eco.value))


@dataclass(slots=True)
class ImageMetrics:
    """Metrics collected from the built development image."""

    image_name: str
    build_time: float  # seconds
    image_size_mb: Optional[float] = None
    layers_count: Optional[int] = None
