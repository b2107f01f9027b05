"""Bounded project tree scan and rule-table evaluation."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..common.models import Ecosystem
from .rules import RULE_TABLE, SKIP_DIRS, RuleEntry

logger = logging.getLogger(__name__)


@dataclass
class SignatureIndex:
    """File names found per directory, keyed by POSIX path relative to the project root."""

    files_by_dir: Dict[str, Set[str]] = field(default_factory=dict)

    @classmethod
    def from_paths(cls, paths: Iterable[str]) -> "SignatureIndex":
        """Build an index from relative file paths, in whatever order they arrive."""
        index = cls()
        for raw in paths:
            path = PurePosixPath(raw)
            parent = str(path.parent) if str(path.parent) != "" else "."
            index.files_by_dir.setdefault(parent, set()).add(path.name)
        return index

    @classmethod
    def scan(cls, root: Path, max_depth: int = 3) -> "SignatureIndex":
        """Walk root up to max_depth directories deep, skipping vendored and build output."""
        index = cls()
        root = root.resolve()
        for current, dirs, files in os.walk(root):
            rel = Path(current).relative_to(root)
            depth = 0 if str(rel) == "." else len(rel.parts)
            dirs[:] = [d for d in dirs if d not in SKIP_DIRS and not d.endswith(".egg-info")]
            if depth >= max_depth:
                dirs[:] = []
            key = "." if depth == 0 else rel.as_posix()
            index.files_by_dir[key] = set(files)
        logger.debug("Scanned %d directories under %s", len(index.files_by_dir), root)
        return index

    @staticmethod
    def depth_of(directory: str) -> int:
        return 0 if directory == "." else len(PurePosixPath(directory).parts)

    def files_in(self, directory: str) -> Set[str]:
        return self.files_by_dir.get(directory, set())


@dataclass(frozen=True, slots=True)
class SignatureMatch:
    entry: RuleEntry
    directory: str
    signature: str


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """Primary rule match plus everything else that matched."""

    primary: Optional[SignatureMatch]
    secondary: Tuple[Ecosystem, ...] = ()
    ambiguities: Tuple[str, ...] = ()

    @property
    def ecosystem(self) -> Ecosystem:
        return self.primary.entry.ecosystem if self.primary else Ecosystem.UNKNOWN


def select_primary(index: SignatureIndex, table: Sequence[RuleEntry] = RULE_TABLE) -> DetectionResult:
    """Choose the primary ecosystem from table priority alone.

    Only the shallowest depth holding any match is considered for the primary;
    within it the first table entry wins. Directory iteration order never
    matters because every candidate is ranked by (table position, directory).
    """
    matches: List[Tuple[int, int, SignatureMatch]] = []
    for directory in sorted(index.files_by_dir):
        files = index.files_by_dir[directory]
        for position, entry in enumerate(table):
            signature = entry.matches(files)
            if signature:
                depth = SignatureIndex.depth_of(directory)
                matches.append((depth, position, SignatureMatch(entry, directory, signature)))

    if not matches:
        return DetectionResult(primary=None)

    top_depth = min(depth for depth, _, _ in matches)
    candidates = sorted(
        ((position, match.directory, match) for depth, position, match in matches if depth == top_depth),
        key=lambda item: (item[0], item[1]),
    )
    _, _, primary = candidates[0]

    ambiguities: List[str] = []
    same_entry_dirs = [m.directory for _, _, m in candidates if m.entry is primary.entry]
    if len(same_entry_dirs) > 1:
        ambiguities.append(
            f"{primary.entry.ecosystem.value} signatures found in several directories: "
            + ", ".join(same_entry_dirs)
        )
    peers = []
    for _, _, match in candidates:
        if match.entry is primary.entry or match.entry.rank != primary.entry.rank:
            continue
        if match.entry.ecosystem not in peers:
            peers.append(match.entry.ecosystem)
    if peers:
        ambiguities.append(
            f"{primary.entry.ecosystem.value} is equally ranked with "
            + ", ".join(eco.value for eco in peers)
        )

    secondary: List[Ecosystem] = []
    for _, position, match in sorted(matches, key=lambda item: (item[1], item[2].directory)):
        eco = match.entry.ecosystem
        if eco != primary.entry.ecosystem and eco not in secondary:
            secondary.append(eco)

    return DetectionResult(primary=primary, secondary=tuple(secondary), ambiguities=tuple(ambiguities))
