"""Synthesis orchestration and reporting."""

from .models import SynthesisReport, SynthesisStatus
from .reporter import SynthesisReporter
from .synthesizer import EnvironmentSynthesizer

__all__ = [
    "EnvironmentSynthesizer",
    "SynthesisReport",
    "SynthesisReporter",
    "SynthesisStatus",
]
