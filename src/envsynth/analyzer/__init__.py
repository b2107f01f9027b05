"""Project detection: rule table, signature scan, manifests and auxiliary documents."""

from .analyzer import ProjectAnalyzer, resolve_package_manager
from .auxiliary import AuxiliaryHints, AuxiliaryScanner
from .manifests import ManifestReader
from .rules import LOCKFILE_PRIORITY, RULE_TABLE, RuleEntry
from .scanner import DetectionResult, SignatureIndex, SignatureMatch, select_primary

__all__ = [
    "ProjectAnalyzer",
    "resolve_package_manager",
    "AuxiliaryHints",
    "AuxiliaryScanner",
    "ManifestReader",
    "LOCKFILE_PRIORITY",
    "RULE_TABLE",
    "RuleEntry",
    "DetectionResult",
    "SignatureIndex",
    "SignatureMatch",
    "select_primary",
]
