"""End-to-end synthesis tests with a scripted container runtime."""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest
from git import Repo

from envsynth.common.errors import ProjectSourceError, WrapperExistsError
from envsynth.config import SynthConfig
from envsynth.core import EnvironmentSynthesizer, SynthesisReporter, SynthesisStatus

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

SCAFFOLD_MESSAGE = "Initialize development environment wrapper"
ARTIFACTS_MESSAGE = "Add generated development environment"


def snapshot(root: Path):
    return {p.relative_to(root).as_posix(): p.read_bytes() for p in sorted(root.rglob("*")) if p.is_file()}


def make_synthesizer(runtime=None, sleeps=None) -> EnvironmentSynthesizer:
    def factory(layout):
        if runtime is None:
            raise AssertionError("runtime must not be used")
        return runtime

    return EnvironmentSynthesizer(
        SynthConfig(git_author_name="Test", git_author_email="test@example.com"),
        runtime_factory=factory,
        sleep=(sleeps.append if sleeps is not None else lambda seconds: None),
    )


def committed_files(commit) -> list:
    return sorted(item.path for item in commit.tree.traverse())


def test_unverified_synthesis_writes_two_commits(tmp_path: Path, rust_project: Path) -> None:
    before = snapshot(rust_project)
    wrapper = tmp_path / "wrapper"

    report = make_synthesizer().synthesize(str(rust_project), wrapper, verify=False)

    assert report.status == SynthesisStatus.UNVERIFIED
    assert report.exit_code == 0
    assert report.loop_result is None
    assert snapshot(rust_project) == before
    assert (wrapper / "project" / "Cargo.toml").is_file()
    assert (wrapper / ".cache" / "cargo-registry").is_dir()

    repo = Repo(wrapper)
    commits = list(reversed(list(repo.iter_commits())))
    assert [c.message.strip() for c in commits] == [SCAFFOLD_MESSAGE, ARTIFACTS_MESSAGE]
    assert committed_files(commits[0]) == [".gitignore", "README.md"]
    assert committed_files(commits[1]) == [".gitignore", "Dockerfile", "README.md", "run.sh"]
    assert not repo.is_dirty(untracked_files=True)
    repo.close()


def test_verified_synthesis_repairs_and_commits_final_artifacts(
    tmp_path: Path, rust_project: Path, runtime_factory, result_factory
) -> None:
    runtime = runtime_factory(
        image_results=[result_factory(100, stderr="E: Unable to locate package libfoo-dev\n"), result_factory(0)]
    )
    wrapper = tmp_path / "wrapper"

    report = make_synthesizer(runtime).synthesize(str(rust_project), wrapper)

    assert report.status == SynthesisStatus.COMPLETED
    assert report.exit_code == 0
    assert report.final_state == "done"
    assert report.profile.extra_essentials == frozenset({"libfoo-dev"})
    assert len(report.commits) == 2

    repo = Repo(wrapper)
    head = repo.head.commit
    committed = head.tree["Dockerfile"].data_stream.read().decode("utf-8")
    assert "libfoo-dev" in committed
    assert committed == (wrapper / "Dockerfile").read_text(encoding="utf-8")
    assert head.parents[0].tree["README.md"].hexsha == head.tree["README.md"].hexsha
    assert len(list(repo.iter_commits())) == 2
    repo.close()


def test_failed_project_build_is_reported(tmp_path: Path, rust_project: Path, runtime_factory, result_factory) -> None:
    runtime = runtime_factory(
        build_result=result_factory(101, stderr="error: could not compile `demo`\n", command=("bash", "run.sh", "build"))
    )
    wrapper = tmp_path / "wrapper"
    reporter = SynthesisReporter()

    report = make_synthesizer(runtime).synthesize(str(rust_project), wrapper)
    saved = json.loads(reporter.save_report(report, tmp_path / "reports" / "report.json").read_text(encoding="utf-8"))
    lines = reporter.summary_lines(report)

    assert report.status == SynthesisStatus.FAILED
    assert report.exit_code == 101
    assert len(report.commits) == 2
    assert saved["status"] == "failed"
    assert saved["verification"]["final_state"] == "build_failed"
    assert saved["verification"]["attempts"][-1]["exit_code"] == 101
    assert saved["profile"]["ecosystem"] == "rust"
    assert any("exit code 101" in line for line in lines)
    assert "error: could not compile `demo`" in lines


def test_network_backoff_uses_injected_sleep(tmp_path: Path, rust_project: Path, runtime_factory, result_factory) -> None:
    sleeps = []
    runtime = runtime_factory(
        image_results=[result_factory(100, stderr="Could not resolve host: deb.debian.org\n"), result_factory(0)]
    )

    report = make_synthesizer(runtime, sleeps).synthesize(str(rust_project), tmp_path / "wrapper")

    assert report.status == SynthesisStatus.COMPLETED
    assert sleeps == [2.0]


def test_non_empty_wrapper_is_refused(tmp_path: Path, rust_project: Path) -> None:
    wrapper = tmp_path / "wrapper"
    wrapper.mkdir()
    (wrapper / "notes.txt").write_text("keep\n", encoding="utf-8")

    with pytest.raises(WrapperExistsError):
        make_synthesizer().synthesize(str(rust_project), wrapper, verify=False)
    assert sorted(p.name for p in wrapper.iterdir()) == ["notes.txt"]


def test_missing_source_is_reported(tmp_path: Path) -> None:
    with pytest.raises(ProjectSourceError):
        make_synthesizer().synthesize(str(tmp_path / "missing"), tmp_path / "wrapper", verify=False)


def test_generate_writes_files_without_git(tmp_path: Path, rust_project: Path) -> None:
    output = tmp_path / "out"

    generation = make_synthesizer().generate(rust_project, output)

    assert sorted(p.name for p in output.iterdir()) == sorted(generation.files)
    assert not (output / ".git").exists()
