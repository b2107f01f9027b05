"""Artifact policy: forbidden Dockerfile directives and OS package validation."""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Sequence, Tuple

from ..common.errors import ForbiddenDirectiveError
from ..common.models import is_valid_os_package

logger = logging.getLogger(__name__)

FORBIDDEN_DIRECTIVES: Tuple[str, ...] = ("ENTRYPOINT", "CMD", "WORKDIR", "USER")

_DIRECTIVE_RE = re.compile(r"^\s*([A-Za-z]+)\b")


def directive_name(line: str) -> str:
    match = _DIRECTIVE_RE.match(line)
    return match.group(1).upper() if match else ""


def strip_forbidden(directives: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Drop forbidden directives from a contribution.

    Returns:
        (kept directives, stripped directive texts)
    """
    kept: List[str] = []
    stripped: List[str] = []
    for directive in directives:
        if directive_name(directive) in FORBIDDEN_DIRECTIVES:
            logger.warning("Stripping forbidden directive: %s", directive.splitlines()[0])
            stripped.append(directive)
        else:
            kept.append(directive)
    return kept, stripped


def find_forbidden(dockerfile: str) -> List[str]:
    """Instructions in the final Dockerfile text that violate the policy.

    Continuation lines are folded first so that only instruction starts are
    inspected.
    """
    found: List[str] = []
    continued = False
    for line in dockerfile.splitlines():
        stripped = line.strip()
        if not continued and stripped and not stripped.startswith("#"):
            name = directive_name(stripped)
            if name in FORBIDDEN_DIRECTIVES:
                found.append(name)
        continued = stripped.endswith("\\")
    return found


def assert_policy(dockerfile: str) -> None:
    found = find_forbidden(dockerfile)
    if found:
        raise ForbiddenDirectiveError(found)


def partition_packages(packages: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Split package names into (valid, invalid), both sorted and de-duplicated."""
    valid: List[str] = []
    invalid: List[str] = []
    for package in sorted(set(packages)):
        if is_valid_os_package(package):
            valid.append(package)
        else:
            logger.warning("Dropping invalid OS package name: %r", package)
            invalid.append(package)
    return valid, invalid
