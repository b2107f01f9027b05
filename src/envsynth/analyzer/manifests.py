"""Readers for ecosystem manifests: commands, dependencies and version hints."""
from __future__ import annotations

import json
import logging
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Set, Tuple

from ..common.models import TODO, Ecosystem
from .rules import WEB_INDICATORS, RuleEntry

logger = logging.getLogger(__name__)

MANIFEST_BYTE_LIMIT = 1024 * 1024
NPM_DEFAULT_TEST = "no test specified"

_REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_REQUIRES_PYTHON_RE = re.compile(r"(?:>=|==|~=)\s*(\d+\.\d+)")
_GO_DIRECTIVE_RE = re.compile(r"^go\s+(\d+\.\d+(?:\.\d+)?)\s*$", re.MULTILINE)
_GO_TOOLCHAIN_RE = re.compile(r"^toolchain\s+go(\d+\.\d+(?:\.\d+)?)\s*$", re.MULTILINE)
_GO_REQUIRE_RE = re.compile(r"^\s*(?:require\s+)?([a-z0-9.\-]+\.[a-z]+/[^\s]+)\s+v", re.MULTILINE)
_GEM_RE = re.compile(r"""^\s*gem\s+['"]([^'"]+)['"]""", re.MULTILINE)
_MAKE_TEST_TARGET_RE = re.compile(r"^test\s*:", re.MULTILINE)
_JAVA_POM_RE = re.compile(
    r"<(?:maven\.compiler\.release|maven\.compiler\.source|java\.version|release)>\s*(?:1\.)?(\d+)\s*<"
)
_JAVA_GRADLE_RE = re.compile(r"(?:JavaLanguageVersion\.of\(\s*(\d+)\s*\)|JavaVersion\.VERSION_(?:1_)?(\d+))")
_VERSION_RE = re.compile(r"^\d+(?:\.\d+){0,2}$")


def read_text(path: Path, limit: int = MANIFEST_BYTE_LIMIT) -> str:
    """Read at most limit bytes of a text file; unreadable files read as empty."""
    try:
        with path.open("rb") as handle:
            data = handle.read(limit)
    except OSError as exc:
        logger.debug("Could not read %s: %s", path, exc)
        return ""
    return data.decode("utf-8", errors="replace")


def load_json(path: Path) -> Dict[str, Any]:
    text = read_text(path)
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed JSON manifest %s", path)
        return {}
    return data if isinstance(data, dict) else {}


def load_toml(path: Path) -> Dict[str, Any]:
    text = read_text(path)
    if not text:
        return {}
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError:
        logger.warning("Ignoring malformed TOML manifest %s", path)
        return {}


def normalize_version(raw: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    value = raw.strip().lstrip("vV")
    return value if _VERSION_RE.match(value) else None


class ManifestReader:
    """Inspect the manifests of one detected project directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path(self, name: str) -> Path:
        return self.directory / name

    def exists(self, name: str) -> bool:
        return self.path(name).exists()

    # Commands -----------------------------------------------------------

    def commands(
        self,
        entry: RuleEntry,
        package_manager: Optional[str],
    ) -> Tuple[str, str, str]:
        """Resolve (build, test, run) for the entry, keeping TODO where nothing is certain."""
        build, test, run = entry.build_cmd, entry.test_cmd, entry.run_cmd
        eco = entry.ecosystem

        if eco == Ecosystem.NODE:
            return self._node_commands(package_manager or "npm")
        if eco == Ecosystem.PYTHON:
            return self._python_commands(package_manager or "pip")
        if eco == Ecosystem.GO and self.exists("main.go"):
            run = "go run ."
        elif eco == Ecosystem.GRADLE and self.exists("gradlew"):
            build, test = "./gradlew build -x test", "./gradlew test"
        elif eco == Ecosystem.MAKE:
            makefile = next(
                (self.path(n) for n in ("GNUmakefile", "Makefile", "makefile") if self.exists(n)), None
            )
            if makefile and _MAKE_TEST_TARGET_RE.search(read_text(makefile)):
                test = "make test"
        elif eco == Ecosystem.RUBY:
            if self.exists(".rspec") or (self.directory / "spec").is_dir():
                test = "bundle exec rspec"
            elif self.exists("Rakefile"):
                test = "bundle exec rake test"
        elif eco == Ecosystem.PHP:
            if self.exists("phpunit.xml") or self.exists("phpunit.xml.dist"):
                test = "vendor/bin/phpunit"
        return build, test, run

    def _node_commands(self, pm: str) -> Tuple[str, str, str]:
        scripts = self.package_json().get("scripts") or {}
        if not isinstance(scripts, dict):
            scripts = {}
        install = f"{pm} install"
        build = f"{install} && {pm} run build" if "build" in scripts else install
        test_script = str(scripts.get("test") or "")
        test = f"{pm} test" if test_script and NPM_DEFAULT_TEST not in test_script else TODO
        if "start" in scripts:
            run = f"{pm} start"
        elif "dev" in scripts:
            run = f"{pm} run dev"
        else:
            run = TODO
        return build, test, run

    def _python_commands(self, pm: str) -> Tuple[str, str, str]:
        prefix = {"poetry": "poetry run ", "uv": "uv run ", "pipenv": "pipenv run "}.get(pm, "")
        if pm == "poetry":
            build = "poetry install"
        elif pm == "uv":
            build = "uv sync"
        elif pm == "pipenv":
            build = "pipenv install --dev"
        elif self.exists("pyproject.toml") or self.exists("setup.py"):
            build = "pip install -e ."
        elif self.exists("requirements.txt"):
            build = "pip install -r requirements.txt"
        else:
            build = TODO
        test = f"{prefix}pytest" if self._has_pytest_signal() else TODO
        run = f"{prefix}python manage.py runserver 0.0.0.0:8000" if self.exists("manage.py") else TODO
        return build, test, run

    def _has_pytest_signal(self) -> bool:
        if self.exists("pytest.ini") or self.exists("conftest.py"):
            return True
        pyproject = load_toml(self.path("pyproject.toml")) if self.exists("pyproject.toml") else {}
        if "pytest" in (pyproject.get("tool") or {}):
            return True
        for name in ("tox.ini", "setup.cfg"):
            if not self.exists(name):
                continue
            text = read_text(self.path(name))
            if "[pytest]" in text or "[tool:pytest]" in text:
                return True
        return "pytest" in self.dependencies(Ecosystem.PYTHON)

    # Package manager details --------------------------------------------

    def package_json(self) -> Dict[str, Any]:
        return load_json(self.path("package.json")) if self.exists("package.json") else {}

    def pinned_package_manager(self, pm: str) -> Optional[str]:
        """Version from the package.json ``packageManager`` field, when it names pm."""
        field = self.package_json().get("packageManager")
        if not isinstance(field, str) or "@" not in field:
            return None
        name, _, version = field.partition("@")
        if name != pm:
            return None
        return normalize_version(version.split("+", 1)[0])

    # Dependencies and web flag --------------------------------------------

    def dependencies(self, ecosystem: Ecosystem) -> Set[str]:
        """Lower-cased dependency names declared by the ecosystem's manifests."""
        deps: Set[str] = set()
        if ecosystem == Ecosystem.NODE:
            data = self.package_json()
            for section in ("dependencies", "devDependencies"):
                values = data.get(section) or {}
                if isinstance(values, dict):
                    deps.update(name.lower() for name in values)
        elif ecosystem == Ecosystem.PYTHON:
            deps.update(self._python_dependencies())
        elif ecosystem == Ecosystem.RUST and self.exists("Cargo.toml"):
            cargo = load_toml(self.path("Cargo.toml"))
            for section in ("dependencies", "dev-dependencies"):
                values = cargo.get(section) or {}
                deps.update(name.lower() for name in values)
        elif ecosystem == Ecosystem.GO and self.exists("go.mod"):
            deps.update(match.lower() for match in _GO_REQUIRE_RE.findall(read_text(self.path("go.mod"))))
        elif ecosystem == Ecosystem.RUBY and self.exists("Gemfile"):
            deps.update(name.lower() for name in _GEM_RE.findall(read_text(self.path("Gemfile"))))
        elif ecosystem == Ecosystem.PHP and self.exists("composer.json"):
            require = load_json(self.path("composer.json")).get("require") or {}
            if isinstance(require, dict):
                deps.update(name.lower() for name in require)
        elif ecosystem in (Ecosystem.MAVEN, Ecosystem.GRADLE):
            for name in ("pom.xml", "build.gradle", "build.gradle.kts"):
                if self.exists(name):
                    text = read_text(self.path(name))
                    if "spring-boot-starter-web" in text:
                        deps.add("spring-boot-starter-web")
        return deps

    def _python_dependencies(self) -> Set[str]:
        names: Set[str] = set()
        for req in sorted(self.directory.glob("requirements*.txt")):
            for line in read_text(req).splitlines():
                if line.strip().startswith(("#", "-")):
                    continue
                match = _REQUIREMENT_NAME_RE.match(line)
                if match:
                    names.add(match.group(1).lower())
        if self.exists("pyproject.toml"):
            pyproject = load_toml(self.path("pyproject.toml"))
            project = pyproject.get("project") or {}
            for spec in project.get("dependencies") or []:
                match = _REQUIREMENT_NAME_RE.match(str(spec))
                if match:
                    names.add(match.group(1).lower())
            for group in (project.get("optional-dependencies") or {}).values():
                for spec in group or []:
                    match = _REQUIREMENT_NAME_RE.match(str(spec))
                    if match:
                        names.add(match.group(1).lower())
            poetry = (pyproject.get("tool") or {}).get("poetry") or {}
            names.update(name.lower() for name in (poetry.get("dependencies") or {}))
            for group in (poetry.get("group") or {}).values():
                names.update(name.lower() for name in ((group or {}).get("dependencies") or {}))
        if self.exists("Pipfile"):
            pipfile = load_toml(self.path("Pipfile"))
            for section in ("packages", "dev-packages"):
                names.update(name.lower() for name in (pipfile.get(section) or {}))
        names.discard("python")
        return names

    def web_framework(self, ecosystem: Ecosystem) -> Optional[str]:
        """First allowlisted HTTP framework among the declared dependencies."""
        indicators = WEB_INDICATORS.get(ecosystem, ())
        if not indicators:
            return None
        deps = self.dependencies(ecosystem)
        for dependency, label in indicators:
            if dependency in deps or any(dep.startswith(dependency + "/") for dep in deps):
                return label
        return None

    # Version hints --------------------------------------------------------

    def version_hint(self, ecosystem: Ecosystem) -> Optional[str]:
        """Toolchain version declared by the project's own manifests, if any."""
        handler = {
            Ecosystem.RUST: self._rust_version,
            Ecosystem.GO: self._go_version,
            Ecosystem.NODE: self._node_version,
            Ecosystem.PYTHON: self._python_version,
            Ecosystem.MAVEN: self._java_version,
            Ecosystem.GRADLE: self._java_version,
            Ecosystem.DOTNET: self._dotnet_version,
        }.get(ecosystem)
        return handler() if handler else None

    def _rust_version(self) -> Optional[str]:
        if self.exists("rust-toolchain.toml"):
            channel = (load_toml(self.path("rust-toolchain.toml")).get("toolchain") or {}).get("channel")
            version = normalize_version(str(channel)) if channel else None
            if version:
                return version
        if self.exists("rust-toolchain"):
            version = normalize_version(read_text(self.path("rust-toolchain")).strip())
            if version:
                return version
        if self.exists("Cargo.toml"):
            package = load_toml(self.path("Cargo.toml")).get("package") or {}
            rust_version = package.get("rust-version")
            if isinstance(rust_version, str):
                return normalize_version(rust_version)
        return None

    def _go_version(self) -> Optional[str]:
        if not self.exists("go.mod"):
            return None
        text = read_text(self.path("go.mod"))
        toolchain = _GO_TOOLCHAIN_RE.search(text)
        if toolchain:
            return toolchain.group(1)
        directive = _GO_DIRECTIVE_RE.search(text)
        if not directive:
            return None
        version = directive.group(1)
        major, minor = (int(part) for part in version.split(".")[:2])
        # Since Go 1.21 the first release of a line is published as 1.N.0.
        if version.count(".") == 1 and (major, minor) >= (1, 21):
            version = f"{version}.0"
        return version

    def _node_version(self) -> Optional[str]:
        if self.exists(".nvmrc"):
            major = re.match(r"v?(\d+)", read_text(self.path(".nvmrc")).strip())
            if major:
                return major.group(1)
        engines = self.package_json().get("engines") or {}
        node = engines.get("node") if isinstance(engines, dict) else None
        if isinstance(node, str):
            major = re.search(r"(\d+)", node)
            if major:
                return major.group(1)
        return None

    def _python_version(self) -> Optional[str]:
        if self.exists(".python-version"):
            lines = read_text(self.path(".python-version")).split()
            version = normalize_version(lines[0]) if lines else None
            if version:
                return version
        if self.exists("pyproject.toml"):
            requires = (load_toml(self.path("pyproject.toml")).get("project") or {}).get("requires-python")
            if isinstance(requires, str):
                match = _REQUIRES_PYTHON_RE.search(requires)
                if match:
                    return match.group(1)
        return None

    def _java_version(self) -> Optional[str]:
        sources = (
            ("pom.xml", _JAVA_POM_RE),
            ("build.gradle", _JAVA_GRADLE_RE),
            ("build.gradle.kts", _JAVA_GRADLE_RE),
        )
        for name, pattern in sources:
            if self.exists(name):
                match = pattern.search(read_text(self.path(name)))
                if match:
                    return next(group for group in match.groups() if group)
        return None

    def _dotnet_version(self) -> Optional[str]:
        if not self.exists("global.json"):
            return None
        sdk = load_json(self.path("global.json")).get("sdk") or {}
        version = normalize_version(str(sdk.get("version") or ""))
        if not version:
            return None
        return ".".join(version.split(".")[:2])
