"""Container runtime helpers for the generated development environment."""

from .docker import DevEnvironmentRuntime, EnvironmentRuntime

__all__ = [
    "DevEnvironmentRuntime",
    "EnvironmentRuntime",
]
