"""Ordered detection rule table.

The position of an entry in ``RULE_TABLE`` is its detection priority: the
first entry whose signature is present wins. Entries that share a ``rank``
are considered equally plausible; when more than one of them matches, the
detection is ambiguous and the analyzer falls back to TODO commands.
"""
from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from ..common.models import TODO, Ecosystem


@dataclass(frozen=True, slots=True)
class RuleEntry:
    """One row of the detection table."""

    ecosystem: Ecosystem
    signatures: Tuple[str, ...]
    build_cmd: str = TODO
    test_cmd: str = TODO
    run_cmd: str = TODO
    rank: int = 0

    def matches(self, file_names: Iterable[str]) -> Optional[str]:
        """Return the first signature (in declaration order) present among file_names."""
        names = sorted(set(file_names))
        for signature in self.signatures:
            if any(ch in signature for ch in "*?["):
                for name in names:
                    if fnmatch.fnmatchcase(name, signature):
                        return name
            elif signature in names:
                return signature
        return None


RULE_TABLE: Tuple[RuleEntry, ...] = (
    RuleEntry(Ecosystem.RUST, ("Cargo.toml",), "cargo build", "cargo test", "cargo run", rank=10),
    RuleEntry(Ecosystem.GO, ("go.mod",), "go build ./...", "go test ./...", rank=20),
    RuleEntry(Ecosystem.NODE, ("package.json",), "npm install", rank=30),
    RuleEntry(
        Ecosystem.PYTHON,
        ("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt", "Pipfile"),
        "pip install -e .",
        rank=40,
    ),
    RuleEntry(Ecosystem.MAVEN, ("pom.xml",), "mvn -B package -DskipTests", "mvn -B test", rank=50),
    RuleEntry(
        Ecosystem.GRADLE,
        ("build.gradle", "build.gradle.kts", "settings.gradle", "settings.gradle.kts"),
        "gradle build -x test",
        "gradle test",
        rank=50,
    ),
    RuleEntry(Ecosystem.DOTNET, ("*.sln", "*.csproj", "*.fsproj"), "dotnet build", "dotnet test", rank=60),
    RuleEntry(
        Ecosystem.CMAKE,
        ("CMakeLists.txt",),
        "cmake -S . -B build -G Ninja && cmake --build build",
        "ctest --test-dir build --output-on-failure",
        rank=70,
    ),
    RuleEntry(
        Ecosystem.MESON,
        ("meson.build",),
        "meson setup build && meson compile -C build",
        "meson test -C build",
        rank=80,
    ),
    RuleEntry(Ecosystem.MAKE, ("GNUmakefile", "Makefile", "makefile"), "make", rank=90),
    RuleEntry(Ecosystem.RUBY, ("Gemfile",), "bundle install", rank=100),
    RuleEntry(Ecosystem.PHP, ("composer.json",), "composer install", rank=110),
)

# Lockfile name -> package manager, in resolution priority order.
LOCKFILE_PRIORITY: Dict[Ecosystem, Tuple[Tuple[str, str], ...]] = {
    Ecosystem.NODE: (
        ("pnpm-lock.yaml", "pnpm"),
        ("yarn.lock", "yarn"),
        ("bun.lockb", "bun"),
        ("bun.lock", "bun"),
        ("package-lock.json", "npm"),
        ("npm-shrinkwrap.json", "npm"),
    ),
    Ecosystem.PYTHON: (
        ("poetry.lock", "poetry"),
        ("uv.lock", "uv"),
        ("Pipfile.lock", "pipenv"),
    ),
}

DEFAULT_PACKAGE_MANAGER: Dict[Ecosystem, str] = {
    Ecosystem.NODE: "npm",
    Ecosystem.PYTHON: "pip",
}

# Narrow allowlist of HTTP-serving framework dependencies: (dependency, framework label).
WEB_INDICATORS: Dict[Ecosystem, Tuple[Tuple[str, str], ...]] = {
    Ecosystem.NODE: (
        ("next", "next"),
        ("nuxt", "nuxt"),
        ("@nestjs/core", "nestjs"),
        ("express", "express"),
        ("fastify", "fastify"),
        ("koa", "koa"),
        ("vite", "vite"),
    ),
    Ecosystem.PYTHON: (
        ("django", "django"),
        ("fastapi", "fastapi"),
        ("flask", "flask"),
    ),
    Ecosystem.RUBY: (
        ("rails", "rails"),
        ("sinatra", "sinatra"),
    ),
    Ecosystem.GO: (
        ("github.com/gin-gonic/gin", "gin"),
        ("github.com/labstack/echo", "echo"),
        ("github.com/gofiber/fiber", "fiber"),
    ),
    Ecosystem.RUST: (
        ("actix-web", "actix-web"),
        ("axum", "axum"),
        ("rocket", "rocket"),
    ),
    Ecosystem.MAVEN: (("spring-boot-starter-web", "spring-boot"),),
    Ecosystem.GRADLE: (("spring-boot-starter-web", "spring-boot"),),
    Ecosystem.PHP: (("laravel/framework", "laravel"),),
}

# Directories never descended into while looking for signature files.
SKIP_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".idea",
        ".vscode",
        ".cache",
        ".tox",
        ".venv",
        "venv",
        "env",
        "node_modules",
        "vendor",
        "target",
        "build",
        "dist",
        "out",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".gradle",
    }
)


def entry_for(ecosystem: Ecosystem) -> Optional[RuleEntry]:
    for entry in RULE_TABLE:
        if entry.ecosystem == ecosystem:
            return entry
    return None


def all_signatures() -> Tuple[str, ...]:
    seen = []
    for entry in RULE_TABLE:
        for signature in entry.signatures:
            if signature not in seen:
                seen.append(signature)
    return tuple(seen)
