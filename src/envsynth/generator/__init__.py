"""Template/generation engine for wrapper artifacts."""

from .generator import ArtifactGenerator, apt_install
from .models import (
    ENV_SETUP_KEY,
    SCRIPT_COMMAND_KEYS,
    GeneratedArtifact,
    GenerationResult,
    ImageLayer,
    LayerKind,
)
from .placeholders import PlaceholderRenderer, RenderedTemplate
from .policy import FORBIDDEN_DIRECTIVES, assert_policy, find_forbidden, strip_forbidden

__all__ = [
    "ArtifactGenerator",
    "apt_install",
    "ENV_SETUP_KEY",
    "SCRIPT_COMMAND_KEYS",
    "GeneratedArtifact",
    "GenerationResult",
    "ImageLayer",
    "LayerKind",
    "PlaceholderRenderer",
    "RenderedTemplate",
    "FORBIDDEN_DIRECTIVES",
    "assert_policy",
    "find_forbidden",
    "strip_forbidden",
]
