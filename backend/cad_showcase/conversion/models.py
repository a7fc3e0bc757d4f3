"""Conversion request/result models."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from cad_showcase import config


class ConversionOutcome(str, Enum):
    CONVERTED = "converted"
    SKIPPED = "skipped"
    NOT_CONFIGURED = "not_configured"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class MeshSettings:
    """Meshing fidelity passed to the driver scripts through the environment."""

    linear_deflection: float = config.LINEAR_DEFLECTION
    angular_deflection: float = config.ANGULAR_DEFLECTION


@dataclass(frozen=True)
class ConversionRequest:
    data: bytes
    original_filename: str
    output_base_name: str
    mesh: Optional[MeshSettings] = None

    @property
    def extension(self) -> str:
        return Path(self.original_filename).suffix.lower()


@dataclass(frozen=True)
class ConversionSettings:
    """Backend configuration snapshot handed to the orchestrator."""

    freecad_cmd: Optional[str] = None
    cadquery_image: Optional[str] = None
    container_runtime: str = "docker"
    container_python: str = "python"
    timeout_seconds: float = 120.0
    mesh: MeshSettings = field(default_factory=MeshSettings)

    @classmethod
    def from_config(cls) -> "ConversionSettings":
        return cls(
            freecad_cmd=config.FREECAD_CMD,
            cadquery_image=config.CADQUERY_DOCKER_IMAGE,
            container_runtime=config.CONTAINER_RUNTIME,
            container_python=config.CADQUERY_PYTHON,
            timeout_seconds=config.CAD_CONVERSION_TIMEOUT_MS / 1000.0,
            mesh=MeshSettings(config.LINEAR_DEFLECTION, config.ANGULAR_DEFLECTION),
        )


@dataclass(frozen=True)
class ExecutionOutcome:
    """What one external command did. stdout/stderr may be tail-truncated."""

    returncode: Optional[int]
    stdout: str
    stderr: str
    duration: float
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


@dataclass(frozen=True)
class ConversionResult:
    data: bytes
    filename: str
    content_type: str = config.STL_CONTENT_TYPE
    skipped: bool = False
    backend: Optional[str] = None  # None when skipped

    @classmethod
    def from_artifact(cls, path: Path, backend: str) -> "ConversionResult":
        """Build a result from an output file on disk. Missing or empty files are rejected."""
        if not path.is_file() or path.stat().st_size == 0:
            raise ValueError(f"Conversion artifact {path} is missing or empty")
        return cls(data=path.read_bytes(), filename=path.name, backend=backend)

    @property
    def status(self) -> ConversionOutcome:
        return ConversionOutcome.SKIPPED if self.skipped else ConversionOutcome.CONVERTED
