import logging
from typing import Any, Dict, List, Optional, Sequence

from ..common.models import Ecosystem, ProjectProfile, is_todo
from ..config import SynthConfig
from ..toolchain.resolver import ToolchainSpec, resolve, resolve_for
from .models import ENV_SETUP_KEY, GeneratedArtifact, GenerationResult, ImageLayer, LayerKind
from .placeholders import PlaceholderRenderer
from .policy import assert_policy, partition_packages, strip_forbidden
from .templates import DOCKERFILE_TEMPLATE, GITIGNORE_TEMPLATE, README_TEMPLATE, RUN_SCRIPT_TEMPLATE

README_NAME = "README.md"
GITIGNORE_NAME = ".gitignore"


def apt_install(packages: Sequence[str]) -> str:
    """Single RUN directive installing packages, one per continuation line."""
    lines = ["RUN apt-get install -y --no-install-recommends"]
    lines.extend(f"    {package}" for package in packages)
    return " \\\n".join(lines)


class ArtifactGenerator:
    """Render the Dockerfile, driver script, README and ignore rules for a profile.

    Output depends only on the profile, the toolchain spec and the config:
    identical inputs produce byte-identical files.
    """

    def __init__(self, config: Optional[SynthConfig] = None, renderer: Optional[PlaceholderRenderer] = None):
        self.logger = logging.getLogger(__name__)
        self.config = config or SynthConfig()
        self.renderer = renderer or PlaceholderRenderer()

    def generate(self, profile: ProjectProfile, toolchain: Optional[ToolchainSpec] = None) -> GenerationResult:
        """
        Generate all wrapper files for the given profile.

        Args:
            profile: Analyzed project profile (any revision)
            toolchain: Resolver output; resolved from the profile when omitted

        Returns:
            GenerationResult with rendered files, unresolved placeholder names and
            the directives that were stripped by policy

        Raises:
            ForbiddenDirectiveError: If a forbidden directive survives into the Dockerfile
        """
        toolchain = toolchain or resolve_for(profile)
        stripped: List[str] = []
        dropped: List[str] = []

        layers = self.build_layers(profile, toolchain, stripped, dropped)
        env_setup = "; ".join(toolchain.env_setup) or "true"
        image_name = self.config.image_name(profile.project_name)

        artifact = GeneratedArtifact(
            image_layers=tuple(layers),
            script_commands=(
                ("docker", f"docker build -t {image_name} - < {self.config.dockerfile_name}"),
                ("build", profile.build_command),
                ("run", profile.run_command),
                ("test", profile.test_command),
                ("sh", "bash"),
                (ENV_SETUP_KEY, env_setup),
            ),
        )

        values = self._template_values(profile, toolchain, artifact, image_name)
        files: Dict[str, str] = {}
        unresolved = set()
        for name, template in (
            (self.config.dockerfile_name, DOCKERFILE_TEMPLATE),
            (self.config.script_name, RUN_SCRIPT_TEMPLATE),
            (README_NAME, README_TEMPLATE),
            (GITIGNORE_NAME, GITIGNORE_TEMPLATE),
        ):
            rendered = self.renderer.render(template, values)
            files[name] = rendered.text
            unresolved.update(rendered.unresolved)

        assert_policy(files[self.config.dockerfile_name])

        if unresolved:
            self.logger.info("Generated artifacts with unresolved placeholders: %s", ", ".join(sorted(unresolved)))

        return GenerationResult(
            artifact=artifact,
            files=files,
            image_name=image_name,
            unresolved_placeholders=sorted(unresolved),
            stripped_directives=stripped,
            dropped_packages=dropped,
            profile_revision=profile.revision,
        )

    def build_layers(
        self,
        profile: ProjectProfile,
        toolchain: ToolchainSpec,
        stripped: List[str],
        dropped: List[str],
    ) -> List[ImageLayer]:
        """Image layers in their fixed order; policy violations are appended to stripped/dropped."""
        layers = [
            self._layer(
                LayerKind.BASE,
                "base image",
                [
                    f"FROM {self.config.base_image}",
                    'SHELL ["/bin/bash", "-o", "pipefail", "-c"]',
                    "ENV DEBIAN_FRONTEND=noninteractive LANG=C.UTF-8 LC_ALL=C.UTF-8",
                ],
                stripped,
            ),
            self._layer(LayerKind.UPDATE, "system update", ["RUN apt-get update && apt-get upgrade -y"], stripped),
        ]

        essentials, invalid = partition_packages(set(self.config.common_essentials) | set(profile.extra_essentials))
        dropped.extend(invalid)
        comments = []
        if profile.extra_essentials:
            comments.append("added by repair: " + " ".join(sorted(profile.extra_essentials)))
        layers.append(self._layer(LayerKind.ESSENTIALS, "common essentials", [apt_install(essentials)], stripped, comments))

        if not profile.toolchains:
            layers.append(
                ImageLayer(
                    kind=LayerKind.TOOLCHAIN,
                    title="toolchain",
                    comments=("TODO(toolchain): no signature file was detected; add toolchain install steps here.",),
                )
            )
        for eco in profile.toolchains:
            spec = toolchain if eco == toolchain.ecosystem else resolve(eco)
            layers.append(self._toolchain_layer(eco, spec, stripped, dropped))

        secondary = profile.sorted_secondary()
        if secondary:
            layers.append(
                ImageLayer(
                    kind=LayerKind.TOOLCHAIN,
                    title="secondary ecosystems (not provisioned)",
                    comments=tuple(
                        f"TODO(secondary:{eco.value}): {eco.value} signatures were also found; "
                        "add its toolchain here if needed."
                        for eco in secondary
                    ),
                )
            )

        project_packages, invalid = partition_packages(set(profile.os_packages) - set(essentials))
        dropped.extend(invalid)
        if project_packages:
            layers.append(self._layer(LayerKind.PROJECT, "project packages", [apt_install(project_packages)], stripped))
        else:
            layers.append(
                ImageLayer(kind=LayerKind.PROJECT, title="project packages", comments=("none detected",))
            )

        layers.append(
            self._layer(LayerKind.CLEANUP, "cleanup", ["RUN apt-get clean && rm -rf /var/lib/apt/lists/*"], stripped)
        )
        return layers

    def _toolchain_layer(
        self,
        eco: Ecosystem,
        spec: ToolchainSpec,
        stripped: List[str],
        dropped: List[str],
    ) -> ImageLayer:
        directives: List[str] = []
        packages, invalid = partition_packages(spec.os_packages)
        dropped.extend(invalid)
        if packages:
            directives.append(apt_install(packages))
        directives.extend(spec.install_steps)

        comments = [f"version: {spec.version or 'distribution default'}"]
        if spec.package_manager:
            comments.append(f"package manager: {spec.package_manager}")
        return self._layer(LayerKind.TOOLCHAIN, f"{eco.value} toolchain", directives, stripped, comments)

    @staticmethod
    def _layer(
        kind: LayerKind,
        title: str,
        directives: Sequence[str],
        stripped: List[str],
        comments: Sequence[str] = (),
    ) -> ImageLayer:
        kept, removed = strip_forbidden(directives)
        stripped.extend(removed)
        return ImageLayer(kind=kind, title=title, directives=tuple(kept), comments=tuple(comments))

    def _template_values(
        self,
        profile: ProjectProfile,
        toolchain: ToolchainSpec,
        artifact: GeneratedArtifact,
        image_name: str,
    ) -> Dict[str, Any]:
        commands = artifact.commands
        if profile.is_unknown:
            toolchain_version = None
            package_manager = None
        else:
            toolchain_version = toolchain.version or "distribution packages"
            package_manager = profile.package_manager or "ecosystem default"

        open_items = list(profile.ambiguities)
        for name in profile.unresolved_commands():
            open_items.append(f"{name.replace('_', ' ')} could not be determined")

        return {
            "project_name": profile.project_name,
            "ecosystem": profile.ecosystem.value,
            "signature_file": profile.signature_file,
            "toolchain_version": toolchain_version,
            "package_manager": package_manager,
            "script_name": self.config.script_name,
            "dockerfile_name": self.config.dockerfile_name,
            "project_dir": self.config.project_dir,
            "workdir": self.config.container_workdir,
            "image_name": image_name,
            "hostname": self.config.hostname(profile.project_name),
            "env_setup": commands[ENV_SETUP_KEY],
            "build_command": None if is_todo(commands["build"]) else commands["build"],
            "run_command": None if is_todo(commands["run"]) else commands["run"],
            "test_command": None if is_todo(commands["test"]) else commands["test"],
            "cache_dirs": list(profile.cache_dirs),
            "ports": list(profile.ports),
            "published_ports": [port.as_pair() for port in profile.ports],
            "secondary_ecosystems": [eco.value for eco in profile.sorted_secondary()],
            "open_items": open_items,
            "doc_commands": list(profile.doc_commands),
            "layers": [layer.render() for layer in artifact.image_layers],
        }
