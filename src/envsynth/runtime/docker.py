"""Docker operations driven through the generated driver script."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from ..common.command_runner import CommandResult, CommandRunner
from ..common.models import ImageMetrics
from ..store.workspace_models import WrapperLayout


class EnvironmentRuntime(Protocol):
    """Container operations the verification loop depends on."""

    def build_image(self) -> CommandResult:
        ...

    def run_shell(self, command: str) -> CommandResult:
        ...

    def build_project(self) -> CommandResult:
        ...

    def image_metrics(self, image_name: str, build_time: float) -> Optional[ImageMetrics]:
        ...


class DevEnvironmentRuntime:
    """Build the development image and run ephemeral containers via ``run.sh``.

    Every operation goes through the generated script so that verification
    exercises exactly what a developer will run. Calls are strictly serial.
    """

    def __init__(
        self,
        layout: WrapperLayout,
        command_runner: Optional[CommandRunner] = None,
        image_build_timeout: Optional[float] = 3600,
        shell_timeout: Optional[float] = 300,
        project_build_timeout: Optional[float] = 3600,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.layout = layout
        self.command_runner = command_runner or CommandRunner()
        self.image_build_timeout = image_build_timeout
        self.shell_timeout = shell_timeout
        self.project_build_timeout = project_build_timeout
        self.logger = logger or logging.getLogger(__name__)

    def _script(self, *args: str) -> List[str]:
        return ["bash", str(self.layout.script_path), *args]

    def build_image(self) -> CommandResult:
        """Run ``run.sh docker``."""
        self.logger.info("Building development image from %s", self.layout.dockerfile_path)
        result = self.command_runner.run(self._script("docker"), cwd=self.layout.root, timeout=self.image_build_timeout)
        self._log_result("Image build", result)
        return result

    def run_shell(self, command: str) -> CommandResult:
        """Run ``run.sh sh <command>`` in an ephemeral container that publishes no ports."""
        self.logger.info("Running shell check in container: %s", command)
        result = self.command_runner.run(self._script("sh", command), cwd=self.layout.root, timeout=self.shell_timeout)
        self._log_result("Shell check", result)
        return result

    def build_project(self) -> CommandResult:
        """Run ``run.sh build``; the project's own build, surfaced as-is."""
        self.logger.info("Running project build in container")
        result = self.command_runner.run(
            self._script("build"), cwd=self.layout.root, timeout=self.project_build_timeout
        )
        self._log_result("Project build", result)
        return result

    def image_metrics(self, image_name: str, build_time: float) -> Optional[ImageMetrics]:
        """Inspect a built image for its size and layer count."""
        size_result = self.command_runner.run(
            ["docker", "image", "inspect", image_name, "--format", "{{.Size}}"],
            timeout=10,
        )
        layers_result = self.command_runner.run(
            ["docker", "image", "inspect", image_name, "--format", "{{len .RootFS.Layers}}"],
            timeout=10,
        )

        if size_result.succeeded() and layers_result.succeeded():
            try:
                image_size_mb = int(size_result.stdout.strip()) / (1024 * 1024)
                metrics = ImageMetrics(
                    image_name=image_name,
                    build_time=build_time,
                    image_size_mb=round(image_size_mb, 2),
                    layers_count=int(layers_result.stdout.strip()),
                )
                self.logger.info(
                    "Image metrics: %.2f MB, %s layers, built in %.1fs",
                    metrics.image_size_mb,
                    metrics.layers_count,
                    metrics.build_time,
                )
                return metrics
            except ValueError:
                self.logger.warning("Could not parse docker inspect output for %s", image_name)
        else:
            self.logger.warning("Could not inspect image metrics for %s", image_name)

        return None

    def _log_result(self, label: str, result: CommandResult) -> None:
        if result.succeeded():
            self.logger.info("%s succeeded in %.1fs", label, result.duration)
        elif result.timed_out:
            self.logger.error("%s timed out after %.1fs", label, result.duration)
        elif not result.tool_available:
            self.logger.error("%s could not start: %s", label, result.stderr.strip())
        else:
            self.logger.error("%s failed with exit code %s", label, result.exit_code)
