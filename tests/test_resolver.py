"""Tests for the static toolchain table."""

from __future__ import annotations

from envsynth.common.models import Ecosystem, PortMapping, ProjectProfile
from envsynth.toolchain import resolver
from envsynth.toolchain.resolver import resolve, resolve_for


def test_version_hint_overrides_default() -> None:
    assert resolve(Ecosystem.RUST).version == resolver.RUST_DEFAULT_VERSION
    assert resolve(Ecosystem.RUST, version_hint="1.75.0").version == "1.75.0"

    steps = "\n".join(resolve(Ecosystem.RUST, version_hint="1.75.0").install_steps)
    assert "--default-toolchain 1.75.0" in steps
    assert "{version}" not in steps


def test_distro_toolchains_have_no_version() -> None:
    spec = resolve(Ecosystem.CMAKE, version_hint="3.28")

    assert spec.version is None
    assert spec.os_packages == ("cmake", "ninja-build")
    assert spec.install_steps == ()


def test_port_only_for_known_web_frameworks() -> None:
    assert resolve(Ecosystem.NODE).ports == ()
    assert resolve(Ecosystem.NODE, web_framework="not-a-framework").ports == ()
    assert resolve(Ecosystem.NODE, web_framework="express").ports == (PortMapping(host=3000, container=3000),)
    assert resolve(Ecosystem.PYTHON, web_framework="django").default_port == 8000


def test_package_manager_variant_adds_steps_and_caches() -> None:
    spec = resolve(Ecosystem.NODE, package_manager="pnpm")

    assert "RUN npm install -g pnpm@9.15.0" in spec.install_steps
    hosts = [mount.host_path for mount in spec.cache_dirs]
    assert hosts == [".cache/npm", ".cache/pnpm-store"]

    pinned = resolve(Ecosystem.NODE, package_manager="pnpm", package_manager_version="8.6.0")
    assert "RUN npm install -g pnpm@8.6.0" in pinned.install_steps


def test_unknown_ecosystem_resolves_to_empty_spec() -> None:
    spec = resolve(Ecosystem.UNKNOWN)

    assert spec.version is None
    assert spec.install_steps == ()
    assert spec.cache_dirs == ()
    assert spec.ports == ()


def test_resolution_is_deterministic() -> None:
    profile = ProjectProfile(
        project_name="svc",
        ecosystem=Ecosystem.PYTHON,
        package_manager="poetry",
        toolchain_version="3.11",
        web_framework="flask",
    )

    assert resolve_for(profile) == resolve_for(profile)
    assert resolve_for(profile).default_port == 5000
    assert any("poetry==" in step for step in resolve_for(profile).install_steps)
