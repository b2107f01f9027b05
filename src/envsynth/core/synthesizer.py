import logging
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Mapping, Optional

from dotenv import load_dotenv

from ..analyzer.analyzer import ProjectAnalyzer
from ..common.errors import ArtifactWriteError, EnvsynthError, ProjectSourceError
from ..common.models import ProjectProfile
from ..config import SynthConfig
from ..generator.generator import ArtifactGenerator
from ..generator.models import GenerationResult
from ..runtime.docker import DevEnvironmentRuntime, EnvironmentRuntime
from ..store.workspace import WrapperWorkspace
from ..store.workspace_models import CommitResult, WrapperLayout
from ..utils.naming import extract_project_name
from ..verifier.loop import VerificationLoop
from .models import SynthesisReport, SynthesisStatus

RuntimeFactory = Callable[[WrapperLayout], EnvironmentRuntime]


class EnvironmentSynthesizer:
    """Main class for synthesizing containerized development environments."""

    def __init__(
        self,
        config: Optional[SynthConfig] = None,
        analyzer: Optional[ProjectAnalyzer] = None,
        generator: Optional[ArtifactGenerator] = None,
        runtime_factory: Optional[RuntimeFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        # Load environment variables
        load_dotenv()

        self.logger = logging.getLogger(__name__)
        self.config = config or SynthConfig()
        self.analyzer = analyzer or ProjectAnalyzer(
            max_depth=self.config.scan_max_depth,
            aux_byte_budget=self.config.aux_byte_budget,
        )
        self.generator = generator or ArtifactGenerator(self.config)
        self.runtime_factory = runtime_factory or self._default_runtime
        self.sleep = sleep

    def _default_runtime(self, layout: WrapperLayout) -> EnvironmentRuntime:
        return DevEnvironmentRuntime(
            layout,
            image_build_timeout=self.config.image_build_timeout,
            shell_timeout=self.config.shell_check_timeout,
            project_build_timeout=self.config.project_build_timeout,
        )

    def layout_for(self, wrapper_dir: Path) -> WrapperLayout:
        return WrapperLayout(
            root=Path(wrapper_dir),
            project_dir=self.config.project_dir,
            script_name=self.config.script_name,
            dockerfile_name=self.config.dockerfile_name,
        )

    def analyze(self, project_path: Path, project_name: Optional[str] = None) -> ProjectProfile:
        """Analyze a local project tree."""
        project_path = Path(project_path)
        if not project_path.is_dir():
            raise ProjectSourceError(f"Project path {project_path} is not a directory.")
        return self.analyzer.analyze(project_path, project_name=project_name)

    def generate(self, project_path: Path, output_dir: Path) -> GenerationResult:
        """
        Render artifacts for a local project into a directory, without git or docker.

        Args:
            project_path: Local project tree to analyze
            output_dir: Directory receiving Dockerfile, run.sh, README.md and .gitignore

        Returns:
            GenerationResult of the rendered files
        """
        profile = self.analyze(project_path)
        generation = self.generator.generate(profile)
        workspace = WrapperWorkspace(self.layout_for(output_dir))
        self._write(workspace, generation.files)
        self.logger.info(f"Wrote {len(generation.files)} files to {output_dir}")
        return generation

    def synthesize(self, source: str, wrapper_dir: Path, verify: bool = True) -> SynthesisReport:
        """
        Run the full pipeline: place, analyze, generate, commit, verify, commit.

        Args:
            source: Git URL or local project path; never modified
            wrapper_dir: Wrapper directory to create (must be empty or absent)
            verify: Run the verification-and-repair loop

        Returns:
            SynthesisReport; ``exit_code`` is 0 on success or the failing command's code

        Raises:
            EnvsynthError: If the wrapper cannot be prepared or written
        """
        report = SynthesisReport(
            source=source,
            wrapper_dir=str(wrapper_dir),
            synthesis_id=str(uuid.uuid4()),
            status=SynthesisStatus.IN_PROGRESS,
        )
        self.logger.info(f"Starting synthesis for {source} into {wrapper_dir} (id {report.synthesis_id})")

        layout = self.layout_for(wrapper_dir)
        try:
            with WrapperWorkspace(
                layout,
                author_name=self.config.git_author_name,
                author_email=self.config.git_author_email,
            ) as workspace:
                workspace.prepare()

                placement = workspace.place_project(source)
                if not placement.success:
                    raise ProjectSourceError(f"Could not place project from {source}: {placement.error}")

                profile = self.analyzer.analyze(layout.project_path, project_name=extract_project_name(source))
                generation = self.generator.generate(profile)
                report.profile, report.generation = profile, generation

                self._write(workspace, self._subset(generation.files, layout.scaffold_files))
                report.commits.append(self._check_commit(workspace.commit_scaffold(self.config.scaffold_commit_message)))

                self._write(workspace, self._subset(generation.files, layout.artifact_files))
                cache_result = workspace.ensure_cache_dirs(profile.cache_dirs)
                if not cache_result.success:
                    raise ArtifactWriteError(f"Could not create cache directories: {cache_result.error}")

                if verify:
                    loop = VerificationLoop(
                        self.runtime_factory(layout),
                        lambda revised: self._regenerate(workspace, revised),
                        workdir=self.config.container_workdir,
                        max_repair_attempts=self.config.max_repair_attempts,
                        backoff_base_seconds=self.config.backoff_base_seconds,
                        sleep=self.sleep,
                    )
                    loop_result = loop.run(profile, generation)
                    report.loop_result = loop_result
                    report.profile, report.generation = loop_result.profile, loop_result.generation
                    report.exit_code = loop_result.exit_code

                report.commits.append(
                    self._check_commit(workspace.commit_artifacts(self.config.artifacts_commit_message))
                )
        except EnvsynthError as e:
            report.status = SynthesisStatus.FAILED
            report.error_message = str(e)
            report.end_time = datetime.now()
            raise

        if not verify:
            report.status = SynthesisStatus.UNVERIFIED
        elif report.exit_code == 0:
            report.status = SynthesisStatus.COMPLETED
        else:
            report.status = SynthesisStatus.FAILED
        report.end_time = datetime.now()

        self.logger.info(
            f"Synthesis finished: status={report.status.value}, exit code={report.exit_code}, "
            f"unresolved placeholders={len(report.unresolved_placeholders)}"
        )
        return report

    def _regenerate(self, workspace: WrapperWorkspace, profile: ProjectProfile) -> GenerationResult:
        """Regenerate every artifact from a new profile revision and replace the artifact files."""
        self.logger.info(f"Regenerating artifacts for profile revision {profile.revision}")
        generation = self.generator.generate(profile)
        self._write(workspace, self._subset(generation.files, workspace.layout.artifact_files))
        return generation

    def _write(self, workspace: WrapperWorkspace, files: Mapping[str, str]) -> None:
        for result in workspace.write_files(files):
            if not result.success:
                raise ArtifactWriteError(result.error or f"Could not write {result.path}")
            self.logger.debug(f"{result.action}: {result.path}")

    @staticmethod
    def _subset(files: Mapping[str, str], names: Iterable[str]) -> Mapping[str, str]:
        return {name: files[name] for name in names}

    @staticmethod
    def _check_commit(result: CommitResult) -> CommitResult:
        if not result.success:
            raise EnvsynthError(f"Commit '{result.message}' failed: {result.error}")
        return result
