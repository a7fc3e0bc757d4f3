"""Conversion backends in priority order.

A backend is a record, not a class: its availability check, driver script
and command builder are plain functions over ConversionSettings.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from cad_showcase.conversion.models import ConversionSettings, MeshSettings
from cad_showcase.conversion.scripts import CADQUERY_SCRIPT, FREECAD_SCRIPT

CONTAINER_WORKDIR = "/workspace"


@dataclass(frozen=True)
class Invocation:
    command: str
    args: list[str]
    env: dict[str, str]
    cwd: Optional[Path] = None


@dataclass(frozen=True)
class BackendDescriptor:
    name: str
    required_setting: str
    script_name: str
    script_body: str
    is_available: Callable[[ConversionSettings], bool]
    build: Callable[[ConversionSettings, MeshSettings, Path, Path, Path, Path], Invocation]


def _freecad_env(mesh: MeshSettings) -> dict[str, str]:
    return {
        "LINEAR_DEFLECTION": repr(mesh.linear_deflection),
        "ANGULAR_DEFLECTION": repr(mesh.angular_deflection),
    }


def _cadquery_env(mesh: MeshSettings) -> dict[str, str]:
    return {
        "TOLERANCE": repr(mesh.linear_deflection),
        "ANGULAR_TOLERANCE": repr(mesh.angular_deflection),
    }


def _build_freecad(
    settings: ConversionSettings,
    mesh: MeshSettings,
    workspace: Path,
    script: Path,
    input_path: Path,
    output_path: Path,
) -> Invocation:
    # <tool> <script> <input> <output>
    return Invocation(
        command=settings.freecad_cmd or "",
        args=[str(script), str(input_path), str(output_path)],
        env=_freecad_env(mesh),
        cwd=workspace,
    )


def _build_cadquery(
    settings: ConversionSettings,
    mesh: MeshSettings,
    workspace: Path,
    script: Path,
    input_path: Path,
    output_path: Path,
) -> Invocation:
    # <runtime> run --rm -v <workspace>:/workspace [-e K=V ...] <image> <python> /workspace/<script> ...
    env = _cadquery_env(mesh)
    args = ["run", "--rm", "-v", f"{workspace.as_posix()}:{CONTAINER_WORKDIR}"]
    for key, value in env.items():
        args += ["-e", f"{key}={value}"]
    args += [
        settings.cadquery_image or "",
        settings.container_python,
        f"{CONTAINER_WORKDIR}/{script.name}",
        f"{CONTAINER_WORKDIR}/{input_path.name}",
        f"{CONTAINER_WORKDIR}/{output_path.name}",
    ]
    return Invocation(command=settings.container_runtime, args=args, env=env, cwd=workspace)


FREECAD = BackendDescriptor(
    name="freecad",
    required_setting="FREECAD_CMD",
    script_name="freecad_convert.py",
    script_body=FREECAD_SCRIPT,
    is_available=lambda s: bool(s.freecad_cmd),
    build=_build_freecad,
)

CADQUERY = BackendDescriptor(
    name="cadquery",
    required_setting="CADQUERY_DOCKER_IMAGE",
    script_name="cadquery_convert.py",
    script_body=CADQUERY_SCRIPT,
    is_available=lambda s: bool(s.cadquery_image),
    build=_build_cadquery,
)

# Local tool first, container second
DEFAULT_BACKENDS: tuple[BackendDescriptor, ...] = (FREECAD, CADQUERY)


def available_backends(
    settings: ConversionSettings,
    backends: tuple[BackendDescriptor, ...] = DEFAULT_BACKENDS,
) -> list[BackendDescriptor]:
    return [b for b in backends if b.is_available(settings)]
