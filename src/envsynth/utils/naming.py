"""Utility functions for deriving names from project sources."""

import re


def extract_project_name(source: str) -> str:
    """Extract and normalize a project name from a repository URL or local path.

    Args:
        source: Repository URL (e.g., 'https://github.com/user/repo.git') or a
            filesystem path to the project root.

    Returns:
        Project name normalized for use in image names, container hostnames and
        directory names. Ensures lowercase characters, replaces dots with hyphens,
        and collapses invalid characters into single hyphens.
    """
    token = source.rstrip("/\\").replace("\\", "/").split("/")[-1]
    if token.endswith(".git"):
        token = token[:-4]
    if ":" in token:
        # scp-like git remotes: git@host:repo
        token = token.split(":")[-1]

    normalized = token.replace(".", "-").replace("_", "-").lower()
    normalized = re.sub(r"[^a-z0-9-]+", "-", normalized)
    normalized = re.sub(r"-{2,}", "-", normalized).strip("-")

    return normalized or "project"


def is_remote_source(source: str) -> bool:
    """Return True when the source looks like a git remote rather than a local path."""
    return bool(re.match(r"^(?:https?|ssh|git|file)://", source)) or bool(
        re.match(r"^[\w.-]+@[\w.-]+:", source)
    )
