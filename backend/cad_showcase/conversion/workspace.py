"""Disposable per-request working directories for external conversion tools."""
import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from cad_showcase.config import CAD_WORKSPACE_DIR
from cad_showcase.conversion.errors import WorkspaceError

logger = logging.getLogger("cad_showcase.conversion.workspace")

WORKSPACE_PREFIX = "cad-convert-"


@dataclass(frozen=True)
class Workspace:
    """Handle to a directory owned by exactly one conversion request."""

    path: Path

    def file(self, name: str) -> Path:
        candidate = self.path / name
        if candidate.parent != self.path:
            raise WorkspaceError(f"Refusing to place {name!r} outside the workspace")
        return candidate

    def stage(self, name: str, data: bytes) -> Path:
        """Write bytes into the workspace and return the file path."""
        target = self.file(name)
        try:
            target.write_bytes(data)
        except OSError as e:
            raise WorkspaceError(f"Could not stage {name} in {self.path}: {e}") from e
        return target

    def write_text(self, name: str, text: str) -> Path:
        target = self.file(name)
        try:
            target.write_text(text, encoding="utf-8")
        except OSError as e:
            raise WorkspaceError(f"Could not write {name} in {self.path}: {e}") from e
        return target


class WorkspaceManager:
    """Creates uniquely named temp directories and removes them again."""

    def __init__(self, root: Optional[Path] = None):
        self._root = Path(root) if root is not None else CAD_WORKSPACE_DIR

    def acquire(self) -> Workspace:
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self._root))
        except OSError as e:
            logger.error("Could not create workspace under %s: %s", self._root, e)
            raise WorkspaceError(f"Could not create conversion workspace: {e}") from e
        logger.debug("Workspace created: %s", path)
        return Workspace(path=path)

    def release(self, workspace: Workspace) -> None:
        """Remove the workspace tree. Missing or half-deleted trees are fine."""
        shutil.rmtree(workspace.path, ignore_errors=True)
        if workspace.path.exists():
            logger.warning("Workspace %s could not be fully removed", workspace.path)
        else:
            logger.debug("Workspace removed: %s", workspace.path)

    @contextmanager
    def scope(self) -> Iterator[Workspace]:
        workspace = self.acquire()
        try:
            yield workspace
        finally:
            self.release(workspace)
