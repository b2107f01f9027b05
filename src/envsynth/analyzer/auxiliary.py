"""Best-effort extraction of hints from auxiliary project documents.

Documents are read up to a fixed byte budget each. Only hints that can be
taken literally are kept (explicit ``apt-get install`` lines, pinned tool
versions); everything else stays informational so nothing is guessed.
"""
from __future__ import annotations

import fnmatch
import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import yaml

from ..common.models import Ecosystem, is_valid_os_package
from .manifests import normalize_version, read_text

logger = logging.getLogger(__name__)

DOC_PATTERNS = (
    "readme*",
    "building*",
    "install*",
    "contributing*",
    "hacking*",
    "dockerfile*",
    "*.dockerfile",
    "containerfile",
    "environment.yml",
    "environment.yaml",
    ".tool-versions",
    ".devcontainer.json",
)
DEVCONTAINER_FILE = Path(".devcontainer") / "devcontainer.json"

_APT_INSTALL_RE = re.compile(r"\bapt(?:-get)?\s+(?:-[\w-]+\s+)*install\b([^;&|\n]*)")
_FENCE_RE = re.compile(r"^(```|~~~)")
_DOCKERFILE_RUN_RE = re.compile(r"^RUN\s", re.IGNORECASE)
_APT_COMMAND_LINE_RE = re.compile(r"^(?:\$\s+)?(?:sudo\s+)?apt(?:-get)?\s")
_TRAILING_PUNCTUATION = ".,:;!?)]"
_CONDA_PYTHON_RE = re.compile(r"^python\s*=+\s*(\d+\.\d+(?:\.\d+)?)")
_DEVCONTAINER_FEATURE_RE = re.compile(r"/features/(node|python|go|rust|dotnet)(?::\d+)?$")

DOC_COMMAND_TOOLS = frozenset(
    {
        "bundle",
        "cargo",
        "cmake",
        "composer",
        "ctest",
        "dotnet",
        "go",
        "gradle",
        "./gradlew",
        "make",
        "meson",
        "mvn",
        "npm",
        "pip",
        "pnpm",
        "poetry",
        "pytest",
        "python",
        "python3",
        "uv",
        "yarn",
    }
)
MAX_DOC_COMMANDS = 20

TOOL_VERSION_NAMES: Dict[str, Ecosystem] = {
    "nodejs": Ecosystem.NODE,
    "node": Ecosystem.NODE,
    "python": Ecosystem.PYTHON,
    "rust": Ecosystem.RUST,
    "golang": Ecosystem.GO,
    "go": Ecosystem.GO,
    "dotnet": Ecosystem.DOTNET,
    "dotnet-core": Ecosystem.DOTNET,
}


@dataclass
class AuxiliaryHints:
    """Hints recovered from documents next to the manifests."""

    os_packages: Set[str] = field(default_factory=set)
    tool_versions: Dict[Ecosystem, str] = field(default_factory=dict)
    doc_commands: List[str] = field(default_factory=list)
    documents: List[str] = field(default_factory=list)


class AuxiliaryScanner:
    """Scan README/BUILDING/INSTALL-like files, existing image files and env declarations."""

    def __init__(self, byte_budget: int = 64 * 1024) -> None:
        self.byte_budget = byte_budget

    def scan(self, root: Path) -> AuxiliaryHints:
        hints = AuxiliaryHints()
        for path in self._documents(root):
            text = read_text(path, limit=self.byte_budget)
            if not text:
                continue
            rel = path.relative_to(root).as_posix()
            hints.documents.append(rel)
            name = path.name.lower()
            if name == ".tool-versions":
                self._tool_versions(text, hints)
            elif name in ("environment.yml", "environment.yaml"):
                self._conda_environment(text, hints)
            elif name.endswith("devcontainer.json"):
                self._devcontainer(text, hints)
            elif name.startswith(("dockerfile", "containerfile")) or name.endswith(".dockerfile"):
                self._apt_packages(text, hints, dockerfile=True)
            else:
                self._apt_packages(text, hints)
                self._doc_commands(text, hints)
        logger.debug(
            "Auxiliary scan read %d documents: %d packages, %d tool versions",
            len(hints.documents),
            len(hints.os_packages),
            len(hints.tool_versions),
        )
        return hints

    def _documents(self, root: Path) -> List[Path]:
        found: List[Path] = []
        try:
            entries = sorted(root.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            logger.warning("Cannot list %s: %s", root, exc)
            return found
        for entry in entries:
            if not entry.is_file():
                continue
            lowered = entry.name.lower()
            if any(fnmatch.fnmatchcase(lowered, pattern) for pattern in DOC_PATTERNS):
                found.append(entry)
        devcontainer = root / DEVCONTAINER_FILE
        if devcontainer.is_file():
            found.append(devcontainer)
        return found

    def _apt_packages(self, text: str, hints: AuxiliaryHints, dockerfile: bool = False) -> None:
        """Collect packages from ``apt install`` commands, never from prose.

        Dockerfiles contribute ``RUN`` lines. Documents contribute lines inside
        fenced code blocks, and indented lines that start with the apt command.
        """
        joined = text.replace("\\\r\n", " ").replace("\\\n", " ")
        in_fence = False
        for raw_line in joined.splitlines():
            line = raw_line.strip()
            if dockerfile:
                if not _DOCKERFILE_RUN_RE.match(line):
                    continue
            elif _FENCE_RE.match(line):
                in_fence = not in_fence
                continue
            elif not in_fence:
                if not raw_line.startswith(("    ", "\t")) or not _APT_COMMAND_LINE_RE.match(line):
                    continue
            for match in _APT_INSTALL_RE.finditer(line):
                _add_install_arguments(match.group(1), hints)

    def _doc_commands(self, text: str, hints: AuxiliaryHints) -> None:
        in_fence = False
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if _FENCE_RE.match(line):
                in_fence = not in_fence
                continue
            if not in_fence or not line:
                continue
            if line.startswith("$ "):
                line = line[2:].strip()
            first = line.split()[0]
            if first in DOC_COMMAND_TOOLS and line not in hints.doc_commands:
                hints.doc_commands.append(line)
                if len(hints.doc_commands) >= MAX_DOC_COMMANDS:
                    return

    def _tool_versions(self, text: str, hints: AuxiliaryHints) -> None:
        for line in text.splitlines():
            parts = line.split("#", 1)[0].split()
            if len(parts) < 2:
                continue
            eco = TOOL_VERSION_NAMES.get(parts[0].lower())
            version = normalize_version(parts[1])
            if eco and version:
                hints.tool_versions.setdefault(eco, _trim_for(eco, version))

    def _conda_environment(self, text: str, hints: AuxiliaryHints) -> None:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            logger.warning("Ignoring unparsable environment file: %s", exc)
            return
        if not isinstance(data, dict):
            return
        for dependency in data.get("dependencies") or []:
            if not isinstance(dependency, str):
                continue
            match = _CONDA_PYTHON_RE.match(dependency.strip())
            if match:
                hints.tool_versions.setdefault(Ecosystem.PYTHON, match.group(1))

    def _devcontainer(self, text: str, hints: AuxiliaryHints) -> None:
        data = _load_jsonc(text)
        if data is None:
            return
        features = data.get("features") or {}
        if not isinstance(features, dict):
            return
        for feature_id, options in sorted(features.items()):
            match = _DEVCONTAINER_FEATURE_RE.search(feature_id)
            if not match or not isinstance(options, dict):
                continue
            eco = TOOL_VERSION_NAMES.get(match.group(1))
            version = normalize_version(str(options.get("version") or ""))
            if eco and version:
                hints.tool_versions.setdefault(eco, _trim_for(eco, version))


def _add_install_arguments(arguments: str, hints: AuxiliaryHints) -> None:
    # Arguments end at a shell comment or at a word closing a sentence.
    for token in arguments.split("#", 1)[0].split():
        if token.startswith("-") or "$" in token:
            continue
        if token[-1] in _TRAILING_PUNCTUATION:
            break
        if is_valid_os_package(token):
            hints.os_packages.add(token)


def _trim_for(ecosystem: Ecosystem, version: str) -> str:
    if ecosystem == Ecosystem.NODE:
        return version.split(".")[0]
    if ecosystem == Ecosystem.DOTNET:
        return ".".join(version.split(".")[:2])
    return version


def _load_jsonc(text: str) -> Optional[dict]:
    stripped = "\n".join(line for line in text.splitlines() if not line.lstrip().startswith("//"))
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        logger.debug("devcontainer.json is not plain JSON; skipping")
        return None
    return data if isinstance(data, dict) else None


def merge_version_hints(
    manifest_hint: Optional[str],
    hints: AuxiliaryHints,
    ecosystem: Ecosystem,
) -> Tuple[Optional[str], str]:
    """Manifest version wins over auxiliary documents; returns (version, source)."""
    if manifest_hint:
        return manifest_hint, "manifest"
    aux = hints.tool_versions.get(ecosystem)
    if aux:
        return aux, "auxiliary"
    return None, "default"
