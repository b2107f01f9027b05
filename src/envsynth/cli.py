"""Command-line interface for envsynth."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .common.errors import EnvsynthError
from .config import load_config
from .core.reporter import SynthesisReporter
from .core.synthesizer import EnvironmentSynthesizer


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging once for CLI usage."""
    root = logging.getLogger()
    if not root.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(
            logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        )
        root.addHandler(console_handler)
    root.setLevel(logging.INFO)

    # Detailed logging from our own package only
    logging.getLogger('envsynth').setLevel(logging.DEBUG if verbose else logging.INFO)

    # Set log level for specific loggers to reduce noise
    logging.getLogger('git').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envsynth",
        description="Synthesize an isolated, containerized development environment for a project.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("--config", help="Optional YAML/JSON configuration file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze a local project and print its profile.")
    analyze.add_argument("path", help="Project root directory.")
    analyze.add_argument("--json", action="store_true", help="Print the profile as JSON.")

    generate = subparsers.add_parser(
        "generate",
        help="Render Dockerfile, run.sh, README.md and .gitignore without git or docker.",
    )
    generate.add_argument("path", help="Project root directory.")
    generate.add_argument("--output", required=True, help="Directory receiving the generated files.")

    synthesize = subparsers.add_parser(
        "synthesize",
        help="Create a wrapper repository, generate artifacts and verify them.",
    )
    synthesize.add_argument("source", help="Git URL or local project directory (never modified).")
    synthesize.add_argument("wrapper_dir", help="Wrapper directory to create; must be empty or absent.")
    synthesize.add_argument("--no-verify", action="store_true", help="Skip the image build and verification loop.")
    synthesize.add_argument("--report", help="Write a JSON report to this path.")
    synthesize.add_argument("--project-dir", help="Name of the nested project directory (default: project).")

    return parser


def handle_analyze(args: argparse.Namespace, synthesizer: EnvironmentSynthesizer) -> int:
    profile = synthesizer.analyze(Path(args.path))
    if args.json:
        print(json.dumps(profile.model_dump(mode="json"), indent=2, sort_keys=True))
        return 0

    print(f"Project:          {profile.project_name}")
    print(f"Ecosystem:        {profile.ecosystem.value}")
    print(f"Package manager:  {profile.package_manager or '-'}")
    print(f"Toolchain:        {profile.toolchain_version or '-'}")
    print(f"Build command:    {profile.build_command}")
    print(f"Test command:     {profile.test_command}")
    print(f"Run command:      {profile.run_command}")
    if profile.os_packages:
        print(f"OS packages:      {' '.join(sorted(profile.os_packages))}")
    if profile.ports:
        print(f"Ports:            {', '.join(port.as_pair() for port in profile.ports)}")
    if profile.secondary_ecosystems:
        print(f"Secondary:        {', '.join(eco.value for eco in profile.sorted_secondary())}")
    for note in profile.ambiguities:
        print(f"Ambiguous:        {note}")
    return 0


def handle_generate(args: argparse.Namespace, synthesizer: EnvironmentSynthesizer) -> int:
    generation = synthesizer.generate(Path(args.path), Path(args.output))
    for name in sorted(generation.files):
        print(Path(args.output) / name)
    if generation.unresolved_placeholders:
        print(
            f"{generation.unresolved_count} unresolved placeholder(s): "
            f"{', '.join(generation.unresolved_placeholders)}"
        )
    return 0


def handle_synthesize(args: argparse.Namespace, synthesizer: EnvironmentSynthesizer) -> int:
    reporter = SynthesisReporter()
    report = synthesizer.synthesize(args.source, Path(args.wrapper_dir), verify=not args.no_verify)
    if args.report:
        reporter.save_report(report, Path(args.report))
    for line in reporter.summary_lines(report):
        print(line)
    return report.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(
            Path(args.config) if args.config else None,
            project_dir=getattr(args, "project_dir", None),
        )
        synthesizer = EnvironmentSynthesizer(config)

        if args.command == "analyze":
            return handle_analyze(args, synthesizer)
        if args.command == "generate":
            return handle_generate(args, synthesizer)
        if args.command == "synthesize":
            return handle_synthesize(args, synthesizer)
    except KeyboardInterrupt:
        logger.warning("Aborted.")
        return 130
    except EnvsynthError as exc:
        logger.error("%s", exc)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
