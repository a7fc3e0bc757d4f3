"""Shared fixtures: isolated workspaces and services wired to a fake runner."""
from typing import Callable, Iterator

import pytest

from cad_showcase.conversion.models import ConversionSettings
from cad_showcase.conversion.service import ConversionService
from fakes import RecordingWorkspaceManager


@pytest.fixture
def workspaces(tmp_path) -> RecordingWorkspaceManager:
    return RecordingWorkspaceManager(tmp_path / "workspaces")


@pytest.fixture
def both_backends() -> ConversionSettings:
    return ConversionSettings(
        freecad_cmd="freecadcmd",
        cadquery_image="cadquery/cadquery:latest",
        timeout_seconds=5.0,
    )


@pytest.fixture
def make_service(workspaces) -> Iterator[Callable[..., ConversionService]]:
    created: list[ConversionService] = []

    def factory(settings: ConversionSettings, runner) -> ConversionService:
        service = ConversionService(settings=settings, runner=runner, workspaces=workspaces, max_workers=4)
        created.append(service)
        return service

    yield factory
    for service in created:
        service.shutdown()
