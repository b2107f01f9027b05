"""Models for the wrapper directory layout and typed store operation results."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

CACHE_DIR_NAME = ".cache"


@dataclass(frozen=True)
class WrapperLayout:
    """
    Fixed layout of a wrapper directory.

    <root>/
        <project_dir>/   nested project, ignored by the wrapper's git history
        .cache/          dependency caches, ignored as well
        Dockerfile
        run.sh           executable
        README.md
        .gitignore
    """
    root: Path
    project_dir: str = "project"
    script_name: str = "run.sh"
    dockerfile_name: str = "Dockerfile"

    @property
    def project_path(self) -> Path:
        return self.root / self.project_dir

    @property
    def cache_path(self) -> Path:
        return self.root / CACHE_DIR_NAME

    @property
    def script_path(self) -> Path:
        return self.root / self.script_name

    @property
    def dockerfile_path(self) -> Path:
        return self.root / self.dockerfile_name

    @property
    def scaffold_files(self) -> List[str]:
        return [".gitignore", "README.md"]

    @property
    def artifact_files(self) -> List[str]:
        return [self.dockerfile_name, self.script_name]


@dataclass
class PlacementResult:
    """Result of placing the project inside the wrapper."""
    success: bool
    project_path: Optional[Path] = None
    method: Optional[str] = None  # "clone" | "copy"
    error: Optional[str] = None


@dataclass
class FileWriteResult:
    """Result of file write operation."""
    success: bool
    action: Optional[str] = None  # "created" | "modified" | "unchanged"
    path: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class CommitResult:
    """Result of a wrapper commit."""
    success: bool
    sha: Optional[str] = None
    message: Optional[str] = None
    files: List[str] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class CacheDirsResult:
    """Result of preparing cache directories."""
    success: bool
    created: List[Path] = field(default_factory=list)
    existing: List[Path] = field(default_factory=list)
    error: Optional[str] = None
