"""Tests for the envsynth command-line interface."""

from __future__ import annotations

import json
import os
import shutil
import stat
from pathlib import Path

import pytest

from envsynth.cli import build_parser, main


def test_parser_requires_a_subcommand() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_analyze_json(rust_project: Path, capsys) -> None:
    assert main(["analyze", str(rust_project), "--json"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["ecosystem"] == "rust"
    assert data["build_command"] == "cargo build"
    assert data["project_name"] == "demo"


def test_analyze_text(make_project, capsys) -> None:
    root = make_project({"notes.txt": "hello\n"})

    assert main(["analyze", str(root)]) == 0

    out = capsys.readouterr().out
    assert "Ecosystem:        unknown" in out
    assert "Build command:    TODO" in out


def test_analyze_missing_directory(tmp_path: Path) -> None:
    assert main(["analyze", str(tmp_path / "missing")]) == 1


def test_generate_writes_artifacts(tmp_path: Path, rust_project: Path, capsys) -> None:
    output = tmp_path / "out"

    assert main(["generate", str(rust_project), "--output", str(output)]) == 0

    assert (output / "Dockerfile").is_file()
    assert os.stat(output / "run.sh").st_mode & stat.S_IXUSR
    assert str(output / "README.md") in capsys.readouterr().out


def test_invalid_config_file(tmp_path: Path, rust_project: Path) -> None:
    config = tmp_path / "bad.yaml"
    config.write_text("project_dir: ../escape\n", encoding="utf-8")

    assert main(["--config", str(config), "analyze", str(rust_project)]) == 1


def test_synthesize_refuses_non_empty_wrapper(tmp_path: Path, rust_project: Path) -> None:
    wrapper = tmp_path / "wrapper"
    wrapper.mkdir()
    (wrapper / "existing.txt").write_text("x\n", encoding="utf-8")

    assert main(["synthesize", str(rust_project), str(wrapper), "--no-verify"]) == 1


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_synthesize_without_verification(tmp_path: Path, rust_project: Path, capsys) -> None:
    wrapper = tmp_path / "wrapper"
    report_path = tmp_path / "report.json"

    code = main(
        [
            "synthesize",
            str(rust_project),
            str(wrapper),
            "--no-verify",
            "--project-dir",
            "src-tree",
            "--report",
            str(report_path),
        ]
    )

    assert code == 0
    assert (wrapper / "src-tree" / "Cargo.toml").is_file()
    assert (wrapper / ".gitignore").read_text(encoding="utf-8").startswith("/src-tree/\n")
    report = json.loads(report_path.read_text(encoding="utf-8"))
    assert report["status"] == "unverified"
    assert [commit["message"] for commit in report["commits"]] == [
        "Initialize development environment wrapper",
        "Add generated development environment",
    ]
    assert "Synthesis unverified" in capsys.readouterr().out
