"""Project analyzer: signature scan + manifests + auxiliary documents -> ProjectProfile."""
from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Callable, Optional, Sequence, Set, Tuple

from ..common.models import TODO, Ecosystem, ProjectProfile, is_todo, is_valid_os_package
from ..toolchain.resolver import ToolchainSpec, resolve
from ..utils.naming import extract_project_name
from .auxiliary import AuxiliaryHints, AuxiliaryScanner, merge_version_hints
from .manifests import ManifestReader
from .rules import DEFAULT_PACKAGE_MANAGER, LOCKFILE_PRIORITY, RULE_TABLE, RuleEntry
from .scanner import DetectionResult, SignatureIndex, select_primary

Resolver = Callable[..., ToolchainSpec]


def resolve_package_manager(ecosystem: Ecosystem, file_names: Set[str]) -> Optional[str]:
    """Pick the package-manager variant from lockfiles, in fixed priority order."""
    for lockfile, manager in LOCKFILE_PRIORITY.get(ecosystem, ()):
        if lockfile in file_names:
            return manager
    return DEFAULT_PACKAGE_MANAGER.get(ecosystem)


class ProjectAnalyzer:
    """Infer a project's build system, toolchain and dependencies.

    Never raises for "nothing detected": an ``Unknown`` profile with TODO
    commands is a valid result that downstream components render as a
    fully templated environment.
    """

    def __init__(
        self,
        max_depth: int = 3,
        aux_byte_budget: int = 64 * 1024,
        table: Sequence[RuleEntry] = RULE_TABLE,
        resolver: Resolver = resolve,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.max_depth = max_depth
        self.table = tuple(table)
        self.resolver = resolver
        self.aux_scanner = AuxiliaryScanner(byte_budget=aux_byte_budget)

    def analyze(self, root: Path, project_name: Optional[str] = None) -> ProjectProfile:
        """Scan root and build its profile."""
        root = Path(root).resolve()
        index = SignatureIndex.scan(root, max_depth=self.max_depth)
        return self.analyze_index(root, index, project_name=project_name)

    def analyze_index(
        self,
        root: Path,
        index: SignatureIndex,
        project_name: Optional[str] = None,
    ) -> ProjectProfile:
        """Build a profile from an already collected signature index."""
        name = project_name or extract_project_name(str(root))
        detection = select_primary(index, self.table)
        hints = self.aux_scanner.scan(root)

        if detection.primary is None:
            self.logger.info("No signature file matched under %s; profile is Unknown", root)
            return ProjectProfile(
                project_name=name,
                os_packages=frozenset(self._valid_packages(hints)),
                doc_commands=tuple(hints.doc_commands),
            )

        match = detection.primary
        eco = match.entry.ecosystem
        directory = root / match.directory if match.directory != "." else root
        if directory != root:
            self._merge_hints(hints, self.aux_scanner.scan(directory))

        reader = ManifestReader(directory)
        package_manager = resolve_package_manager(eco, index.files_in(match.directory))
        pm_version = reader.pinned_package_manager(package_manager) if package_manager else None

        build, test, run = reader.commands(match.entry, package_manager)
        if detection.ambiguities:
            for note in detection.ambiguities:
                self.logger.warning("Ambiguous detection: %s", note)
            build = test = run = TODO
        build, test, run = (self._in_subdir(cmd, match.directory) for cmd in (build, test, run))

        version, source = merge_version_hints(reader.version_hint(eco), hints, eco)
        web_framework = reader.web_framework(eco)
        toolchain = self.resolver(eco, package_manager, version, web_framework, pm_version)

        self.logger.info(
            "Detected %s (%s) via %s; toolchain %s from %s; secondary: %s",
            eco.value,
            package_manager or "-",
            f"{match.directory}/{match.signature}" if match.directory != "." else match.signature,
            toolchain.version or "distro",
            source if toolchain.version else "distro packages",
            ", ".join(e.value for e in detection.secondary) or "none",
        )

        return ProjectProfile(
            project_name=name,
            ecosystem=eco,
            package_manager=package_manager,
            package_manager_version=pm_version,
            build_command=build,
            test_command=test,
            run_command=run,
            toolchain_version=toolchain.version,
            os_packages=frozenset(self._valid_packages(hints)),
            cache_dirs=toolchain.cache_dirs,
            ports=toolchain.ports,
            secondary_ecosystems=frozenset(detection.secondary),
            toolchains=(eco,),
            web_framework=web_framework,
            project_subdir=match.directory,
            signature_file=match.signature if match.directory == "." else f"{match.directory}/{match.signature}",
            ambiguities=detection.ambiguities,
            doc_commands=tuple(hints.doc_commands),
        )

    def detect(self, root: Path) -> DetectionResult:
        """Run only the rule-table selection (no manifests, no documents)."""
        return select_primary(SignatureIndex.scan(Path(root), max_depth=self.max_depth), self.table)

    @staticmethod
    def _in_subdir(command: str, directory: str) -> str:
        if is_todo(command) or directory == ".":
            return command
        return f"cd {shlex.quote(directory)} && {command}"

    def _valid_packages(self, hints: AuxiliaryHints) -> Tuple[str, ...]:
        valid = []
        for package in sorted(hints.os_packages):
            if is_valid_os_package(package):
                valid.append(package)
            else:
                self.logger.warning("Dropping invalid OS package name from documents: %r", package)
        return tuple(valid)

    @staticmethod
    def _merge_hints(target: AuxiliaryHints, extra: AuxiliaryHints) -> None:
        target.os_packages.update(extra.os_packages)
        for eco, version in extra.tool_versions.items():
            target.tool_versions.setdefault(eco, version)
        for command in extra.doc_commands:
            if command not in target.doc_commands:
                target.doc_commands.append(command)
        target.documents.extend(extra.documents)
