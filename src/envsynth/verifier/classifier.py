"""Classification of image build failures.

Order matters: network patterns are checked first because a failed
``apt-get update`` typically surfaces later as "Unable to locate package".
Anything not matched is ``Unknown`` and is never repaired.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple

from ..common.command_runner import CommandResult
from ..common.models import is_valid_os_package
from .models import FailureClass

NETWORK_PATTERNS: Tuple[Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"Temporary failure (?:resolving|in name resolution)",
        r"Could not resolve (?:host|'[^']+')",
        r"Could not connect to",
        r"Connection (?:timed out|refused|reset by peer)",
        r"Network is unreachable",
        r"Failed to fetch https?://[^\n]*(?:timed out|Connection failed|Could not connect|Temporary failure)",
        r"TLS handshake timeout",
        r"i/o timeout",
        r"net/http: request canceled",
        r"unexpected EOF",
        r"50[234] (?:Bad Gateway|Service Unavailable|Gateway Time-?out)",
        r"curl: \((?:6|7|28|35|52|56)\)",
        r"toomanyrequests",
    )
)

_UNABLE_TO_LOCATE_RE = re.compile(r"Unable to locate package\s+([^\s'\"]+)")
_NO_CANDIDATE_RE = re.compile(r"Package '?([^\s']+?)'? has no installation candidate")
_COMMAND_NOT_FOUND_RE = re.compile(r"(?:^|\s)(?:[\w/.-]*sh: )?(?:line \d+: )?([\w.+-]+): (?:command )?not found", re.MULTILINE)

# Commands commonly assumed by install steps -> Debian package providing them.
COMMAND_PACKAGES: Dict[str, str] = {
    "curl": "curl",
    "wget": "wget",
    "git": "git",
    "unzip": "unzip",
    "zip": "zip",
    "xz": "xz-utils",
    "bzip2": "bzip2",
    "gpg": "gnupg",
    "make": "make",
    "gcc": "gcc",
    "g++": "g++",
    "cc": "build-essential",
    "pkg-config": "pkg-config",
    "python3": "python3",
    "perl": "perl",
    "file": "file",
    "sudo": "sudo",
    "lsb_release": "lsb-release",
    "ssh": "openssh-client",
    "rsync": "rsync",
    "patch": "patch",
    "tar": "tar",
}


@dataclass(frozen=True, slots=True)
class Classification:
    failure_class: FailureClass
    package: Optional[str] = None
    evidence: Optional[str] = None


def classify_output(output: str) -> Classification:
    """Classify captured build output."""
    for pattern in NETWORK_PATTERNS:
        match = pattern.search(output)
        if match:
            return Classification(FailureClass.NETWORK_TRANSIENT, evidence=_line_of(output, match.start()))

    for pattern in (_UNABLE_TO_LOCATE_RE, _NO_CANDIDATE_RE):
        match = pattern.search(output)
        if match and is_valid_os_package(match.group(1)):
            return Classification(
                FailureClass.MISSING_PACKAGE,
                package=match.group(1),
                evidence=_line_of(output, match.start()),
            )

    for match in _COMMAND_NOT_FOUND_RE.finditer(output):
        package = COMMAND_PACKAGES.get(match.group(1))
        if package:
            return Classification(
                FailureClass.MISSING_PACKAGE,
                package=package,
                evidence=_line_of(output, match.start(1)),
            )

    return Classification(FailureClass.UNKNOWN)


def classify_result(result: CommandResult) -> Classification:
    """Classify a failed image build.

    A timeout or a missing ``docker``/``bash`` binary is ``Unknown``: neither
    is an environment gap the generated artifacts can fix.
    """
    if result.timed_out:
        return Classification(FailureClass.UNKNOWN, evidence="image build timed out")
    if not result.tool_available:
        return Classification(FailureClass.UNKNOWN, evidence=result.stderr.strip() or None)
    return classify_output(result.output)


def _line_of(text: str, index: int) -> str:
    start = text.rfind("\n", 0, index) + 1
    end = text.find("\n", index)
    return text[start:] if end == -1 else text[start:end]
