import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..common.models import ImageMetrics
from ..verifier.models import LoopResult
from .models import SynthesisReport


class SynthesisReporter:
    """Serializes synthesis reports to JSON and renders short human summaries."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def save_report(self, report: SynthesisReport, path: Path) -> Path:
        """
        Save a synthesis report to a JSON file.

        Args:
            report: Synthesis report to save
            path: Destination file; parent directories are created

        Returns:
            Path to the saved report file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.report_to_dict(report), f, indent=2, default=str)
        except OSError as e:
            self.logger.error(f"Failed to save report: {e}")
            raise

        self.logger.info(f"Report saved to {path}")
        return path

    def report_to_dict(self, report: SynthesisReport) -> Dict[str, Any]:
        """Convert a synthesis report to a JSON-serializable dictionary."""
        return {
            "synthesis_id": report.synthesis_id,
            "source": report.source,
            "wrapper_dir": report.wrapper_dir,
            "status": report.status.value,
            "start_time": report.start_time.isoformat(),
            "end_time": report.end_time.isoformat() if report.end_time else None,
            "total_time": report.total_time,
            "exit_code": report.exit_code,
            "error_message": report.error_message,
            "profile": report.profile.model_dump(mode="json") if report.profile else None,
            "generation": dict(report.generation.summary()) if report.generation else None,
            "unresolved_placeholders": report.unresolved_placeholders,
            "verification": self._loop_to_dict(report.loop_result) if report.loop_result else None,
            "commits": [
                {"sha": commit.sha, "message": commit.message, "files": list(commit.files)}
                for commit in report.commits
            ],
        }

    def _loop_to_dict(self, result: LoopResult) -> Dict[str, Any]:
        return {
            "final_state": result.final_state.value,
            "exit_code": result.exit_code,
            "history": [state.value for state in result.history],
            "repairs": result.repairs,
            "build_skipped": result.build_skipped,
            "halt_reason": result.halt_reason,
            "image_metrics": self._metrics_to_dict(result.image_metrics),
            "attempts": [attempt.to_dict() for attempt in result.attempts],
        }

    @staticmethod
    def _metrics_to_dict(metrics: Optional[ImageMetrics]) -> Optional[Dict[str, Any]]:
        if metrics is None:
            return None
        return {
            "image_name": metrics.image_name,
            "build_time": metrics.build_time,
            "image_size_mb": metrics.image_size_mb,
            "layers_count": metrics.layers_count,
        }

    def summary_lines(self, report: SynthesisReport) -> List[str]:
        """Human-readable summary; on failure includes the failing state and its raw output."""
        lines = [f"Synthesis {report.status.value}: {report.source} -> {report.wrapper_dir}"]
        profile = report.profile
        if profile is not None:
            lines.append(
                f"  ecosystem: {profile.ecosystem.value}"
                + (f" ({profile.package_manager})" if profile.package_manager else "")
            )
            lines.append(f"  build: {profile.build_command}")
            lines.append(f"  test:  {profile.test_command}")
            lines.append(f"  run:   {profile.run_command}")

        unresolved = report.unresolved_placeholders
        if unresolved:
            lines.append(f"  unresolved placeholders ({len(unresolved)}): {', '.join(unresolved)}")

        result = report.loop_result
        if result is not None:
            lines.append(f"  verification: {result.final_state.value} after {result.repairs} repair(s)")
            if result.build_skipped:
                lines.append("  project build not verified: build command is TODO")
            if result.image_metrics and result.image_metrics.image_size_mb is not None:
                lines.append(
                    f"  image: {result.image_metrics.image_name} "
                    f"{result.image_metrics.image_size_mb:.2f} MB, {result.image_metrics.layers_count} layers"
                )
            failing = result.failing_attempt
            if failing is not None:
                lines.append(f"  failed in state {failing.state.value}: {failing.command} (exit code {failing.exit_code})")
                if result.halt_reason:
                    lines.append(f"  reason: {result.halt_reason}")
                lines.append("  --- captured output ---")
                lines.extend(failing.captured_output.rstrip("\n").splitlines())
                lines.append("  --- end of output ---")

        if report.error_message:
            lines.append(f"  error: {report.error_message}")
        return lines
