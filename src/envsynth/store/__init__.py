"""Artifact store: wrapper layout, project placement, artifacts and history."""

from .workspace import WrapperWorkspace
from .workspace_models import (
    CACHE_DIR_NAME,
    CacheDirsResult,
    CommitResult,
    FileWriteResult,
    PlacementResult,
    WrapperLayout,
)

__all__ = [
    "WrapperWorkspace",
    "CACHE_DIR_NAME",
    "CacheDirsResult",
    "CommitResult",
    "FileWriteResult",
    "PlacementResult",
    "WrapperLayout",
]
