"""Toolchain resolver: ecosystem -> packages, install steps, caches, ports."""

from .resolver import TOOLCHAIN_TABLE, ToolchainSpec, default_version, resolve, resolve_for

__all__ = ["TOOLCHAIN_TABLE", "ToolchainSpec", "default_version", "resolve", "resolve_for"]
