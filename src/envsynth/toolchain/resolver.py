"""Static toolchain table: ecosystem -> OS packages, install steps, caches, ports.

``resolve`` is a pure function of its arguments. Install steps are Dockerfile
directives; ``{version}`` and ``{pm_version}`` are substituted from the
manifest hint or the fixed default constants below.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..common.models import CacheMount, Ecosystem, PortMapping, ProjectProfile

logger = logging.getLogger(__name__)

CONTAINER_HOME = "/root"

RUST_DEFAULT_VERSION = "1.83.0"
GO_DEFAULT_VERSION = "1.23.4"
NODE_DEFAULT_VERSION = "20"
PYTHON_DEFAULT_VERSION = "3.12"
JAVA_DEFAULT_VERSION = "17"
DOTNET_DEFAULT_VERSION = "8.0"

UV_VERSION = "0.5.11"
PNPM_VERSION = "9.15.0"
YARN_VERSION = "1.22.22"
BUN_VERSION = "1.1.38"
POETRY_VERSION = "1.8.5"
PIPENV_VERSION = "2024.4.0"
BUNDLER_VERSION = "2.5.23"

FRAMEWORK_PORTS: Dict[str, int] = {
    "next": 3000,
    "nuxt": 3000,
    "nestjs": 3000,
    "express": 3000,
    "fastify": 3000,
    "koa": 3000,
    "vite": 5173,
    "django": 8000,
    "fastapi": 8000,
    "flask": 5000,
    "rails": 3000,
    "sinatra": 4567,
    "gin": 8080,
    "echo": 8080,
    "fiber": 3000,
    "actix-web": 8080,
    "axum": 3000,
    "rocket": 8000,
    "spring-boot": 8080,
    "laravel": 8000,
}

_TEMURIN_STEP = (
    "RUN curl -fsSL https://packages.adoptium.net/artifactory/api/gpg/key/public "
    "| gpg --dearmor -o /usr/share/keyrings/adoptium.gpg \\\n"
    "    && echo \"deb [signed-by=/usr/share/keyrings/adoptium.gpg] "
    "https://packages.adoptium.net/artifactory/deb bookworm main\" "
    "> /etc/apt/sources.list.d/adoptium.list \\\n"
    "    && apt-get update && apt-get install -y --no-install-recommends temurin-{version}-jdk"
)
_PYTHON_VENV_SETUP = (
    "if [ ! -x .venv/bin/python ]; then uv venv .venv --python {version} --seed -q; fi; "
    ". .venv/bin/activate"
)


@dataclass(frozen=True, slots=True)
class ToolchainRecipe:
    """Static description of how to provision one ecosystem."""

    default_version: Optional[str]
    os_packages: Tuple[str, ...] = ()
    install_steps: Tuple[str, ...] = ()
    cache_dirs: Tuple[Tuple[str, str], ...] = ()
    env_setup: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class PackageManagerRecipe:
    default_version: Optional[str]
    install_steps: Tuple[str, ...] = ()
    cache_dirs: Tuple[Tuple[str, str], ...] = ()
    env_setup: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ToolchainSpec:
    """Resolver output consumed by the generator."""

    ecosystem: Ecosystem
    version: Optional[str] = None
    package_manager: Optional[str] = None
    os_packages: Tuple[str, ...] = ()
    install_steps: Tuple[str, ...] = ()
    cache_dirs: Tuple[CacheMount, ...] = ()
    env_setup: Tuple[str, ...] = ()
    default_port: Optional[int] = None

    @property
    def ports(self) -> Tuple[PortMapping, ...]:
        if self.default_port is None:
            return ()
        return (PortMapping(host=self.default_port, container=self.default_port),)


TOOLCHAIN_TABLE: Dict[Ecosystem, ToolchainRecipe] = {
    Ecosystem.RUST: ToolchainRecipe(
        default_version=RUST_DEFAULT_VERSION,
        install_steps=(
            "ENV RUSTUP_HOME=/usr/local/rustup CARGO_HOME=/usr/local/cargo PATH=/usr/local/cargo/bin:$PATH",
            "RUN curl --proto '=https' --tlsv1.2 -sSf https://sh.rustup.rs "
            "| sh -s -- -y --no-modify-path --profile minimal --default-toolchain {version} \\\n"
            "    && rustup component add clippy rustfmt",
        ),
        cache_dirs=(
            (".cache/cargo-registry", "/usr/local/cargo/registry"),
            (".cache/cargo-git", "/usr/local/cargo/git"),
        ),
    ),
    Ecosystem.GO: ToolchainRecipe(
        default_version=GO_DEFAULT_VERSION,
        install_steps=(
            "ENV PATH=/usr/local/go/bin:/root/go/bin:$PATH",
            "RUN curl -fsSL https://go.dev/dl/go{version}.linux-$(dpkg --print-architecture).tar.gz "
            "| tar -C /usr/local -xz",
        ),
        cache_dirs=(
            (".cache/go-mod", f"{CONTAINER_HOME}/go/pkg/mod"),
            (".cache/go-build", f"{CONTAINER_HOME}/.cache/go-build"),
        ),
        env_setup=("export GOFLAGS=-buildvcs=false",),
    ),
    Ecosystem.NODE: ToolchainRecipe(
        default_version=NODE_DEFAULT_VERSION,
        install_steps=(
            "RUN curl -fsSL https://deb.nodesource.com/setup_{version}.x | bash - \\\n"
            "    && apt-get install -y --no-install-recommends nodejs",
        ),
        cache_dirs=((".cache/npm", f"{CONTAINER_HOME}/.npm"),),
    ),
    Ecosystem.PYTHON: ToolchainRecipe(
        default_version=PYTHON_DEFAULT_VERSION,
        install_steps=(
            "ENV UV_PYTHON_INSTALL_DIR=/opt/uv-python UV_TOOL_DIR=/opt/uv-tools UV_TOOL_BIN_DIR=/usr/local/bin",
            f"RUN curl -LsSf https://astral.sh/uv/{UV_VERSION}/install.sh "
            "| env UV_INSTALL_DIR=/usr/local/bin sh \\\n"
            "    && uv python install {version}",
        ),
        cache_dirs=(
            (".cache/pip", f"{CONTAINER_HOME}/.cache/pip"),
            (".cache/uv", f"{CONTAINER_HOME}/.cache/uv"),
        ),
        env_setup=(_PYTHON_VENV_SETUP,),
    ),
    Ecosystem.MAVEN: ToolchainRecipe(
        default_version=JAVA_DEFAULT_VERSION,
        os_packages=("maven",),
        install_steps=(_TEMURIN_STEP,),
        cache_dirs=((".cache/m2", f"{CONTAINER_HOME}/.m2"),),
    ),
    Ecosystem.GRADLE: ToolchainRecipe(
        default_version=JAVA_DEFAULT_VERSION,
        os_packages=("gradle",),
        install_steps=(_TEMURIN_STEP,),
        cache_dirs=((".cache/gradle", f"{CONTAINER_HOME}/.gradle"),),
    ),
    Ecosystem.DOTNET: ToolchainRecipe(
        default_version=DOTNET_DEFAULT_VERSION,
        os_packages=("libicu72",),
        install_steps=(
            "ENV DOTNET_ROOT=/usr/share/dotnet DOTNET_CLI_TELEMETRY_OPTOUT=1 PATH=/usr/share/dotnet:$PATH",
            "RUN curl -fsSL https://dot.net/v1/dotnet-install.sh "
            "| bash -s -- --channel {version} --install-dir /usr/share/dotnet",
        ),
        cache_dirs=((".cache/nuget", f"{CONTAINER_HOME}/.nuget/packages"),),
    ),
    Ecosystem.CMAKE: ToolchainRecipe(default_version=None, os_packages=("cmake", "ninja-build")),
    Ecosystem.MESON: ToolchainRecipe(default_version=None, os_packages=("meson", "ninja-build")),
    Ecosystem.MAKE: ToolchainRecipe(default_version=None, os_packages=("make",)),
    Ecosystem.RUBY: ToolchainRecipe(
        default_version=None,
        os_packages=("ruby-full",),
        install_steps=(
            "ENV BUNDLE_PATH=/usr/local/bundle",
            f"RUN gem install bundler -v {BUNDLER_VERSION}",
        ),
        cache_dirs=((".cache/bundle", "/usr/local/bundle"),),
    ),
    Ecosystem.PHP: ToolchainRecipe(
        default_version=None,
        os_packages=("composer", "php-cli", "php-curl", "php-mbstring", "php-xml", "php-zip"),
        cache_dirs=((".cache/composer", f"{CONTAINER_HOME}/.cache/composer"),),
    ),
}

PACKAGE_MANAGER_TABLE: Dict[Tuple[Ecosystem, str], PackageManagerRecipe] = {
    (Ecosystem.NODE, "pnpm"): PackageManagerRecipe(
        default_version=PNPM_VERSION,
        install_steps=("RUN npm install -g pnpm@{pm_version}",),
        cache_dirs=((".cache/pnpm-store", f"{CONTAINER_HOME}/.local/share/pnpm/store"),),
    ),
    (Ecosystem.NODE, "yarn"): PackageManagerRecipe(
        default_version=YARN_VERSION,
        install_steps=("RUN npm install -g yarn@{pm_version}",),
        cache_dirs=((".cache/yarn", "/usr/local/share/.cache/yarn"),),
    ),
    (Ecosystem.NODE, "bun"): PackageManagerRecipe(
        default_version=BUN_VERSION,
        install_steps=("RUN npm install -g bun@{pm_version}",),
        cache_dirs=((".cache/bun", f"{CONTAINER_HOME}/.bun/install/cache"),),
    ),
    (Ecosystem.PYTHON, "poetry"): PackageManagerRecipe(
        default_version=POETRY_VERSION,
        install_steps=(
            "ENV POETRY_VIRTUALENVS_IN_PROJECT=true",
            "RUN uv tool install poetry=={pm_version}",
        ),
        cache_dirs=((".cache/pypoetry", f"{CONTAINER_HOME}/.cache/pypoetry"),),
    ),
    (Ecosystem.PYTHON, "pipenv"): PackageManagerRecipe(
        default_version=PIPENV_VERSION,
        install_steps=(
            "ENV PIPENV_VENV_IN_PROJECT=1",
            "RUN uv tool install pipenv=={pm_version}",
        ),
    ),
}


def _mounts(pairs: Tuple[Tuple[str, str], ...]) -> Tuple[CacheMount, ...]:
    return tuple(CacheMount(host_path=host, container_path=container) for host, container in pairs)


def default_version(ecosystem: Ecosystem) -> Optional[str]:
    recipe = TOOLCHAIN_TABLE.get(ecosystem)
    return recipe.default_version if recipe else None


def resolve(
    ecosystem: Ecosystem,
    package_manager: Optional[str] = None,
    version_hint: Optional[str] = None,
    web_framework: Optional[str] = None,
    package_manager_version: Optional[str] = None,
) -> ToolchainSpec:
    """Map an ecosystem (and variant) to its provisioning recipe.

    Args:
        ecosystem: Primary ecosystem of the profile.
        package_manager: Package-manager variant resolved from lockfiles.
        version_hint: Toolchain version declared by the project; overrides the default.
        web_framework: Allowlisted framework label; only then is a port suggested.
        package_manager_version: Version pinned by the project for its package manager.

    Returns:
        ToolchainSpec for the generator. ``Unknown`` yields an empty spec.
    """
    recipe = TOOLCHAIN_TABLE.get(ecosystem)
    if recipe is None:
        return ToolchainSpec(ecosystem=ecosystem)

    version = None
    if recipe.default_version is not None:
        version = version_hint or recipe.default_version
    elif version_hint:
        logger.debug("Ignoring version hint %s for distro-provided %s toolchain", version_hint, ecosystem.value)

    install_steps = [step.replace("{version}", version or "") for step in recipe.install_steps]
    cache_pairs = list(recipe.cache_dirs)
    env_setup = [fragment.replace("{version}", version or "") for fragment in recipe.env_setup]

    pm_recipe = PACKAGE_MANAGER_TABLE.get((ecosystem, package_manager or ""))
    if pm_recipe is not None:
        pm_version = package_manager_version or pm_recipe.default_version or ""
        install_steps.extend(step.replace("{pm_version}", pm_version) for step in pm_recipe.install_steps)
        cache_pairs.extend(pair for pair in pm_recipe.cache_dirs if pair not in cache_pairs)
        env_setup.extend(pm_recipe.env_setup)

    port = FRAMEWORK_PORTS.get(web_framework) if web_framework else None

    return ToolchainSpec(
        ecosystem=ecosystem,
        version=version,
        package_manager=package_manager,
        os_packages=tuple(recipe.os_packages),
        install_steps=tuple(install_steps),
        cache_dirs=_mounts(tuple(cache_pairs)),
        env_setup=tuple(env_setup),
        default_port=port,
    )


def resolve_for(profile: ProjectProfile) -> ToolchainSpec:
    """Resolve the toolchain described by an existing profile."""
    return resolve(
        profile.ecosystem,
        profile.package_manager,
        profile.toolchain_version,
        profile.web_framework,
        profile.package_manager_version,
    )
