"""Tests for the wrapper workspace: placement, atomic writes, caches and history."""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

import pytest

from envsynth.common.errors import WrapperExistsError
from envsynth.common.models import CacheMount
from envsynth.store import WrapperLayout, WrapperWorkspace


def make_workspace(root: Path) -> WrapperWorkspace:
    return WrapperWorkspace(WrapperLayout(root=root), author_name="Test", author_email="test@example.com")


def test_prepare_refuses_non_empty_directory(tmp_path: Path) -> None:
    wrapper = tmp_path / "wrapper"
    wrapper.mkdir()
    (wrapper / "keep.txt").write_text("mine\n", encoding="utf-8")

    with pytest.raises(WrapperExistsError):
        make_workspace(wrapper).prepare()
    assert (wrapper / "keep.txt").read_text(encoding="utf-8") == "mine\n"


def test_prepare_accepts_empty_or_missing_directory(tmp_path: Path) -> None:
    (tmp_path / "empty").mkdir()

    make_workspace(tmp_path / "empty").prepare()
    make_workspace(tmp_path / "fresh").prepare()

    assert (tmp_path / "fresh").is_dir()


def test_place_project_copies_without_touching_source(tmp_path: Path, rust_project: Path) -> None:
    before = sorted(p.relative_to(rust_project).as_posix() for p in rust_project.rglob("*"))
    workspace = make_workspace(tmp_path / "wrapper")
    workspace.prepare()

    placement = workspace.place_project(str(rust_project))

    assert placement.success
    assert placement.method == "copy"
    assert (tmp_path / "wrapper" / "project" / "Cargo.toml").is_file()
    assert sorted(p.relative_to(rust_project).as_posix() for p in rust_project.rglob("*")) == before
    assert not workspace.place_project(str(rust_project)).success


def test_place_project_rejects_wrapper_inside_source(rust_project: Path) -> None:
    workspace = make_workspace(rust_project / "wrapper")
    workspace.prepare()

    placement = workspace.place_project(str(rust_project))

    assert not placement.success
    assert "must not be inside" in placement.error


def test_place_project_missing_source(tmp_path: Path) -> None:
    workspace = make_workspace(tmp_path / "wrapper")
    workspace.prepare()

    assert not workspace.place_project(str(tmp_path / "nope")).success


def test_write_file_is_whole_file_replacement(tmp_path: Path) -> None:
    workspace = make_workspace(tmp_path)

    created = workspace.write_file("run.sh", "#!/usr/bin/env bash\necho one\n", executable=True)
    unchanged = workspace.write_file("run.sh", "#!/usr/bin/env bash\necho one\n", executable=True)
    modified = workspace.write_file("run.sh", "#!/usr/bin/env bash\necho two\n", executable=True)

    assert [created.action, unchanged.action, modified.action] == ["created", "unchanged", "modified"]
    assert (tmp_path / "run.sh").read_text(encoding="utf-8").endswith("echo two\n")
    assert os.stat(tmp_path / "run.sh").st_mode & stat.S_IXUSR
    assert [p.name for p in tmp_path.iterdir()] == ["run.sh"]


def test_write_files_marks_only_script_executable(tmp_path: Path) -> None:
    workspace = make_workspace(tmp_path)

    results = workspace.write_files({"Dockerfile": "FROM debian:12.8-slim\n", "run.sh": "#!/bin/sh\n"})

    assert all(result.success for result in results)
    assert os.stat(tmp_path / "run.sh").st_mode & stat.S_IXUSR
    assert not os.stat(tmp_path / "Dockerfile").st_mode & stat.S_IXUSR


def test_write_outside_wrapper_is_refused(tmp_path: Path) -> None:
    workspace = make_workspace(tmp_path / "wrapper")

    result = workspace.write_file("../escape.txt", "nope")

    assert not result.success
    assert not (tmp_path / "escape.txt").exists()


def test_cache_dirs_are_created_once(tmp_path: Path) -> None:
    workspace = make_workspace(tmp_path)
    mounts = [CacheMount(host_path=".cache/cargo-registry", container_path="/usr/local/cargo/registry")]

    first = workspace.ensure_cache_dirs(mounts)
    marker = tmp_path / ".cache" / "cargo-registry" / "index"
    marker.write_text("cached\n", encoding="utf-8")
    second = workspace.ensure_cache_dirs(mounts)

    assert first.success and second.success
    assert (tmp_path / ".cache" / "cargo-registry").resolve() in first.created
    assert second.created == []
    assert marker.read_text(encoding="utf-8") == "cached\n"


def test_cache_dirs_outside_cache_root_are_rejected(tmp_path: Path) -> None:
    workspace = make_workspace(tmp_path)

    result = workspace.ensure_cache_dirs([CacheMount(host_path="registry", container_path="/r")])

    assert not result.success
    assert not (tmp_path / "registry").exists()


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
def test_history_has_scaffold_then_artifacts(tmp_path: Path) -> None:
    with make_workspace(tmp_path) as workspace:
        workspace.write_files({".gitignore": "/project/\n/.cache/\n", "README.md": "# demo\n"})
        scaffold = workspace.commit_scaffold("Initialize development environment wrapper")
        workspace.write_files({"Dockerfile": "FROM debian:12.8-slim\n", "run.sh": "#!/bin/sh\n"})
        artifacts = workspace.commit_artifacts("Add generated development environment")

        assert scaffold.success and artifacts.success
        assert workspace.commit_messages() == [
            "Initialize development environment wrapper",
            "Add generated development environment",
        ]
        head = workspace.repo.head.commit
        assert sorted(item.path for item in head.tree.traverse()) == [".gitignore", "Dockerfile", "README.md", "run.sh"]
        assert head.author.name == "Test"
        assert head.tree["run.sh"].mode & 0o111


def test_commit_messages_without_repository(tmp_path: Path) -> None:
    assert make_workspace(tmp_path).commit_messages() == []
