"""Configuration settings for environment synthesis."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator

from .common.errors import ConfigError


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


class SynthConfig(BaseModel):
    """Configuration settings for the environment synthesizer."""

    # Image settings
    base_image: str = Field(
        default_factory=lambda: os.environ.get("ENVSYNTH_BASE_IMAGE", "debian:12.8-slim"),
        description="Pinned base image of the generated Dockerfile.",
    )
    image_suffix: str = "-devenv"
    common_essentials: Tuple[str, ...] = (
        "build-essential",
        "ca-certificates",
        "curl",
        "git",
        "gnupg",
        "pkg-config",
        "unzip",
        "xz-utils",
    )

    # Wrapper layout
    container_workdir: str = "/workspace"
    project_dir: str = Field(default_factory=lambda: os.environ.get("ENVSYNTH_PROJECT_DIR", "project"))
    script_name: str = "run.sh"
    dockerfile_name: str = "Dockerfile"

    # Analysis settings
    scan_max_depth: int = Field(default=3, ge=0)
    aux_byte_budget: int = Field(default=64 * 1024, gt=0)

    # Verification settings
    max_repair_attempts: int = Field(default_factory=lambda: _env_int("ENVSYNTH_MAX_REPAIRS", 5), ge=0)
    backoff_base_seconds: float = Field(default_factory=lambda: _env_float("ENVSYNTH_BACKOFF_BASE", 2.0), ge=0)

    # Timeout settings (seconds)
    image_build_timeout: int = Field(default_factory=lambda: _env_int("ENVSYNTH_IMAGE_TIMEOUT", 3600))
    shell_check_timeout: int = 300
    project_build_timeout: int = Field(default_factory=lambda: _env_int("ENVSYNTH_BUILD_TIMEOUT", 3600))

    # Wrapper history
    git_author_name: str = Field(default_factory=lambda: os.environ.get("ENVSYNTH_GIT_NAME", "envsynth"))
    git_author_email: str = Field(default_factory=lambda: os.environ.get("ENVSYNTH_GIT_EMAIL", "envsynth@localhost"))
    scaffold_commit_message: str = "Initialize development environment wrapper"
    artifacts_commit_message: str = "Add generated development environment"

    @field_validator("project_dir")
    @classmethod
    def _validate_project_dir(cls, value: str) -> str:
        value = value.strip().strip("/")
        if not value or "/" in value or value in (".", "..", ".cache", ".git"):
            raise ValueError("project_dir must be a single, non-reserved directory name.")
        return value

    @field_validator("container_workdir")
    @classmethod
    def _validate_workdir(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("container_workdir must be an absolute path.")
        return value.rstrip("/") or "/"

    def image_name(self, project_name: str) -> str:
        """Local image name for a project (no registry, no tag)."""
        return f"{project_name}{self.image_suffix}"

    def hostname(self, project_name: str) -> str:
        """Container-visible hostname (at most 63 characters)."""
        return f"{project_name}-dev"[:63].strip("-")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def load_config(path: Optional[Path] = None, **overrides: Any) -> SynthConfig:
    """Load configuration from an optional YAML or JSON file plus keyword overrides.

    Args:
        path: Configuration file; ``.yaml``/``.yml`` or ``.json``.
        **overrides: Field values taking precedence over the file. ``None`` values are ignored.

    Returns:
        Validated SynthConfig.

    Raises:
        ConfigError: If the file cannot be read or parsed, or validation fails.
    """
    data: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

        try:
            if path.suffix.lower() == ".json":
                loaded = json.loads(text)
            else:
                loaded = yaml.safe_load(text)
        except (yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot parse config file {path}: {exc}") from exc

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping, got {type(loaded).__name__}.")
        data.update(loaded)

    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return SynthConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
