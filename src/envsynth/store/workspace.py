"""Wrapper directory management: layout, project placement, artifacts and history."""
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Sequence

from git import Actor, Repo
from git.exc import GitError

from ..common.errors import WrapperExistsError
from ..common.models import CacheMount
from ..utils.naming import is_remote_source
from .workspace_models import (
    CACHE_DIR_NAME,
    CacheDirsResult,
    CommitResult,
    FileWriteResult,
    PlacementResult,
    WrapperLayout,
)


class WrapperWorkspace:
    """
    Sole writer of a wrapper directory.

    Each workspace instance:
    - Refuses to take over a non-empty directory
    - Places the project (clone or copy) without touching the source
    - Replaces artifacts as whole files (temp file + rename)
    - Creates cache directories on demand and never deletes them
    - Records the wrapper's own history in exactly two commits

    Usage:
        layout = WrapperLayout(root=Path("wrapper"))
        with WrapperWorkspace(layout) as workspace:
            workspace.prepare()
            workspace.place_project("https://github.com/user/repo.git")
            workspace.write_files(generation.files)
    """

    def __init__(
        self,
        layout: WrapperLayout,
        author_name: str = "envsynth",
        author_email: str = "envsynth@localhost",
    ):
        """
        Initialize a workspace for a wrapper layout.

        Args:
            layout: Wrapper directory layout
            author_name: Author and committer name of the wrapper commits
            author_email: Author and committer email of the wrapper commits
        """
        self.layout = layout
        self.actor = Actor(author_name, author_email)
        self.logger = logging.getLogger(__name__)
        self._repo: Optional[Repo] = None

    def __enter__(self) -> "WrapperWorkspace":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._repo is not None:
            self._repo.close()
            self._repo = None

    @property
    def root(self) -> Path:
        return self.layout.root

    def get_full_path(self, relative_path: str) -> Path:
        """
        Absolute path of a file inside the wrapper.

        Raises:
            ValueError: If the path escapes the wrapper root
        """
        root = self.root.resolve()
        full_path = (root / relative_path).resolve()
        if full_path != root and root not in full_path.parents:
            raise ValueError(f"Path {relative_path} escapes the wrapper directory.")
        return full_path

    def prepare(self) -> None:
        """
        Create the wrapper root.

        Raises:
            WrapperExistsError: If the directory exists and is not empty
        """
        if self.root.exists():
            if not self.root.is_dir() or any(self.root.iterdir()):
                raise WrapperExistsError(f"Wrapper directory {self.root} already exists and is not empty.")
        self.root.mkdir(parents=True, exist_ok=True)
        self.logger.debug(f"Prepared wrapper directory: {self.root}")

    def place_project(self, source: str) -> PlacementResult:
        """
        Clone a git URL or copy a local tree into the project subdirectory.

        Args:
            source: Git remote URL or path to a local project directory

        Returns:
            PlacementResult with the nested project path
        """
        target = self.layout.project_path
        if target.exists():
            return PlacementResult(success=False, error=f"Project directory {target} already exists.")

        if is_remote_source(source):
            try:
                self.logger.info(f"Cloning {source} into {target}")
                Repo.clone_from(source, str(target)).close()
            except GitError as e:
                self.logger.error(f"Failed to clone repository: {e}")
                shutil.rmtree(target, ignore_errors=True)
                return PlacementResult(success=False, method="clone", error=str(e))
            return PlacementResult(success=True, project_path=target, method="clone")

        source_path = Path(source).expanduser().resolve()
        if not source_path.is_dir():
            return PlacementResult(success=False, method="copy", error=f"Project source {source} is not a directory.")
        wrapper_root = self.root.resolve()
        if wrapper_root == source_path or source_path in wrapper_root.parents:
            return PlacementResult(
                success=False,
                method="copy",
                error=f"Wrapper directory {self.root} must not be inside the project {source}.",
            )

        try:
            self.logger.info(f"Copying {source_path} into {target}")
            shutil.copytree(source_path, target, symlinks=True)
        except (OSError, shutil.Error) as e:
            self.logger.error(f"Failed to copy project: {e}")
            return PlacementResult(success=False, method="copy", error=str(e))
        return PlacementResult(success=True, project_path=target, method="copy")

    def write_file(self, file_path: str, content: str, executable: bool = False) -> FileWriteResult:
        """
        Replace a wrapper file as a whole.

        The content is written to a temporary file in the same directory and
        renamed over the target, so readers never see a partial file.

        Args:
            file_path: Path relative to the wrapper root
            content: Full new content
            executable: Set mode 0755 instead of 0644

        Returns:
            FileWriteResult with the action taken
        """
        try:
            full_path = self.get_full_path(file_path)
        except ValueError as e:
            return FileWriteResult(success=False, error=str(e))

        mode = 0o755 if executable else 0o644
        if full_path.is_file() and full_path.read_text(encoding="utf-8") == content:
            os.chmod(full_path, mode)
            return FileWriteResult(success=True, action="unchanged", path=full_path)

        action = "modified" if full_path.exists() else "created"
        tmp_name = None
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=full_path.parent, prefix=f".{full_path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                handle.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, full_path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return FileWriteResult(success=False, path=full_path, error=f"Error writing to file {file_path}: {e}")

        self.logger.debug(f"{action.capitalize()} file: {full_path}")
        return FileWriteResult(success=True, action=action, path=full_path)

    def write_files(self, files: Mapping[str, str]) -> List[FileWriteResult]:
        """Write every file; the driver script gets the executable bit."""
        return [
            self.write_file(name, content, executable=(name == self.layout.script_name))
            for name, content in sorted(files.items())
        ]

    def ensure_cache_dirs(self, mounts: Sequence[CacheMount]) -> CacheDirsResult:
        """Create the cache root and every declared host cache directory that is missing."""
        result = CacheDirsResult(success=True)
        cache_root = self.layout.cache_path.resolve()
        try:
            for path in [self.layout.cache_path] + [self.get_full_path(m.host_path) for m in mounts]:
                resolved = path.resolve()
                if resolved != cache_root and cache_root not in resolved.parents:
                    raise ValueError(f"Cache directory {path} is outside {CACHE_DIR_NAME}/.")
                if resolved.is_dir():
                    result.existing.append(resolved)
                else:
                    resolved.mkdir(parents=True, exist_ok=True)
                    result.created.append(resolved)
        except (OSError, ValueError) as e:
            result.success = False
            result.error = str(e)
        return result

    @property
    def repo(self) -> Repo:
        """The wrapper's own repository, initialized on first access."""
        if self._repo is None:
            if (self.root / ".git").exists():
                self._repo = Repo(str(self.root))
            else:
                self.logger.debug(f"Initializing wrapper repository in {self.root}")
                self._repo = Repo.init(str(self.root))
        return self._repo

    def commit(self, files: Iterable[str], message: str) -> CommitResult:
        """
        Stage exactly the given files and commit them.

        Args:
            files: Paths relative to the wrapper root
            message: Commit message

        Returns:
            CommitResult with the new commit sha
        """
        files = list(files)
        try:
            repo = self.repo
            repo.index.add(files)
            commit = repo.index.commit(message, author=self.actor, committer=self.actor)
        except (GitError, OSError, ValueError) as e:
            self.logger.error(f"Failed to commit wrapper files: {e}")
            return CommitResult(success=False, message=message, files=files, error=str(e))

        self.logger.info(f"Committed {', '.join(files)}: {message} ({commit.hexsha[:10]})")
        return CommitResult(success=True, sha=commit.hexsha, message=message, files=files)

    def commit_scaffold(self, message: str) -> CommitResult:
        return self.commit(self.layout.scaffold_files, message)

    def commit_artifacts(self, message: str) -> CommitResult:
        return self.commit(self.layout.artifact_files, message)

    def commit_messages(self) -> List[str]:
        """Wrapper commit messages, oldest first."""
        if not (self.root / ".git").exists():
            return []
        try:
            return [c.message.strip() for c in reversed(list(self.repo.iter_commits()))]
        except ValueError:
            # No commits yet
            return []
