"""Models describing generated image layers and rendered wrapper files."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

SCRIPT_COMMAND_KEYS: Tuple[str, ...] = ("docker", "build", "run", "test", "sh")
ENV_SETUP_KEY = "env_setup"


class LayerKind(str, Enum):
    """Image layer categories, in the only order they may appear."""

    BASE = "base"
    UPDATE = "update"
    ESSENTIALS = "essentials"
    TOOLCHAIN = "toolchain"
    PROJECT = "project"
    CLEANUP = "cleanup"


LAYER_ORDER: Tuple[LayerKind, ...] = tuple(LayerKind)


@dataclass(frozen=True, slots=True)
class ImageLayer:
    """One logical section of the generated Dockerfile."""

    kind: LayerKind
    title: str
    directives: Tuple[str, ...] = ()
    comments: Tuple[str, ...] = ()

    def render(self) -> str:
        lines = [f"# --- {self.title} ---"]
        lines.extend(f"# {comment}" for comment in self.comments)
        lines.extend(self.directives)
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class GeneratedArtifact:
    """Ordered image layers plus the driver script's command table.

    Recreated wholesale on every generation; never patched in place.
    """

    image_layers: Tuple[ImageLayer, ...]
    script_commands: Tuple[Tuple[str, str], ...]

    def __post_init__(self) -> None:
        allowed = set(SCRIPT_COMMAND_KEYS) | {ENV_SETUP_KEY}
        unknown = [key for key, _ in self.script_commands if key not in allowed]
        if unknown:
            raise ValueError(f"Unsupported driver script commands: {', '.join(unknown)}")
        kinds = [LAYER_ORDER.index(layer.kind) for layer in self.image_layers]
        if kinds != sorted(kinds):
            raise ValueError("Image layers are out of order")

    @property
    def commands(self) -> Dict[str, str]:
        return dict(self.script_commands)

    def layers_of(self, kind: LayerKind) -> List[ImageLayer]:
        return [layer for layer in self.image_layers if layer.kind == kind]


@dataclass
class GenerationResult:
    """Outcome of one generation run."""

    artifact: GeneratedArtifact
    files: Dict[str, str]
    image_name: str
    unresolved_placeholders: List[str] = field(default_factory=list)
    stripped_directives: List[str] = field(default_factory=list)
    dropped_packages: List[str] = field(default_factory=list)
    profile_revision: int = 0

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved_placeholders)

    def file(self, name: str) -> Optional[str]:
        return self.files.get(name)

    def summary(self) -> Mapping[str, object]:
        return {
            "image_name": self.image_name,
            "files": sorted(self.files),
            "unresolved_placeholders": list(self.unresolved_placeholders),
            "stripped_directives": list(self.stripped_directives),
            "dropped_packages": list(self.dropped_packages),
            "profile_revision": self.profile_revision,
        }
