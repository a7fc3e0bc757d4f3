"""Tests for workspace acquisition and release."""

import threading

import pytest

from cad_showcase.conversion.errors import WorkspaceError
from cad_showcase.conversion.workspace import WORKSPACE_PREFIX, WorkspaceManager


def test_acquire_creates_unique_directories(tmp_path):
    manager = WorkspaceManager(tmp_path)

    first = manager.acquire()
    second = manager.acquire()

    assert first.path.is_dir()
    assert second.path.is_dir()
    assert first.path != second.path
    assert first.path.name.startswith(WORKSPACE_PREFIX)
    assert first.path.parent == tmp_path


def test_release_removes_tree(tmp_path):
    manager = WorkspaceManager(tmp_path)
    workspace = manager.acquire()
    workspace.stage("part.step", b"data")
    (workspace.path / "nested").mkdir()
    (workspace.path / "nested" / "file").write_text("x")

    manager.release(workspace)

    assert not workspace.path.exists()


def test_release_tolerates_missing_directory(tmp_path):
    manager = WorkspaceManager(tmp_path)
    workspace = manager.acquire()
    manager.release(workspace)

    manager.release(workspace)

    assert not workspace.path.exists()


def test_scope_releases_on_exception(tmp_path):
    manager = WorkspaceManager(tmp_path)
    seen = []

    with pytest.raises(RuntimeError):
        with manager.scope() as workspace:
            seen.append(workspace.path)
            raise RuntimeError("boom")

    assert not seen[0].exists()


def test_acquire_failure_raises_workspace_error(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(WorkspaceError):
        WorkspaceManager(blocker / "sub").acquire()


def test_stage_rejects_paths_outside_workspace(tmp_path):
    workspace = WorkspaceManager(tmp_path).acquire()

    with pytest.raises(WorkspaceError):
        workspace.stage("../escape.step", b"x")
    with pytest.raises(WorkspaceError):
        workspace.file("sub/part.step")


def test_stage_writes_bytes(tmp_path):
    workspace = WorkspaceManager(tmp_path).acquire()

    path = workspace.stage("part.step", b"ISO-10303-21;")

    assert path.read_bytes() == b"ISO-10303-21;"
    assert path.parent == workspace.path


def test_concurrent_acquire_never_shares_directories(tmp_path):
    manager = WorkspaceManager(tmp_path)
    paths = []
    lock = threading.Lock()

    def grab():
        workspace = manager.acquire()
        with lock:
            paths.append(workspace.path)

    threads = [threading.Thread(target=grab) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(set(paths)) == 20
