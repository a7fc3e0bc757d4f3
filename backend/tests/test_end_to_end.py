"""
End-to-end conversion through real child processes.

Small executables in tmp_path stand in for the FreeCAD command and the
container runtime, so the full stage -> run -> verify -> cleanup path runs.
"""

import stat
import sys
import time

import pytest

from cad_showcase.conversion.errors import BackendExecutionError, ConversionExhaustedError
from cad_showcase.conversion.models import ConversionRequest, ConversionSettings
from cad_showcase.conversion.runner import SubprocessRunner

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell stubs")

STEP_BYTES = b"ISO-10303-21;\nEND-ISO-10303-21;\n"


def make_tool(directory, name, body):
    path = directory / name
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def assert_all_released(workspaces):
    for path in workspaces.acquired:
        assert not path.exists()


@pytest.fixture
def tools(tmp_path):
    directory = tmp_path / "bin"
    directory.mkdir()
    return directory


def test_local_tool_converts(tools, workspaces, make_service):
    # <tool> <script> <input> <output>
    tool = make_tool(tools, "freecadcmd", 'test -f "$1" || exit 9\necho "solid $LINEAR_DEFLECTION" > "$3"\n')
    service = make_service(ConversionSettings(freecad_cmd=tool, timeout_seconds=30), SubprocessRunner())

    result = service.convert(ConversionRequest(STEP_BYTES, "part.step", "part"))

    assert result.skipped is False
    assert result.filename == "part.stl"
    assert result.data == b"solid 0.1\n"
    assert_all_released(workspaces)


def test_failing_local_tool_falls_back_to_container(tools, workspaces, make_service):
    tool = make_tool(tools, "freecadcmd", 'echo "Part.OCCError: cannot read" >&2\nexit 2\n')
    # args: run --rm -v <ws>:/workspace -e T=.. -e A=.. <image> <python> <script> <input> <output>
    runtime = make_tool(
        tools,
        "docker",
        'ws=$(echo "$4" | cut -d: -f1)\nout=$(basename "${13}")\necho "solid container" > "$ws/$out"\n',
    )
    settings = ConversionSettings(
        freecad_cmd=tool,
        cadquery_image="cadquery/cadquery",
        container_runtime=runtime,
        timeout_seconds=30,
    )
    service = make_service(settings, SubprocessRunner())

    result = service.convert(ConversionRequest(STEP_BYTES, "part.stp", "part"))

    assert result.backend == "cadquery"
    assert result.data == b"solid container\n"
    assert_all_released(workspaces)


def test_real_interpreter_without_freecad_fails_cleanly(workspaces, make_service):
    settings = ConversionSettings(freecad_cmd=sys.executable, timeout_seconds=60)
    service = make_service(settings, SubprocessRunner())

    with pytest.raises(ConversionExhaustedError) as exc_info:
        service.convert(ConversionRequest(STEP_BYTES, "part.step", "part"))

    failure = exc_info.value.failures[0]
    assert failure.kind == BackendExecutionError.EXIT
    assert failure.outcome.returncode == 2
    assert "ModuleNotFoundError" in failure.outcome.stderr
    assert_all_released(workspaces)


def test_hanging_tool_is_killed_and_workspace_removed(tools, workspaces, make_service):
    tool = make_tool(tools, "freecadcmd", "sleep 60\n")
    service = make_service(ConversionSettings(freecad_cmd=tool, timeout_seconds=0.5), SubprocessRunner())

    started = time.monotonic()
    with pytest.raises(ConversionExhaustedError) as exc_info:
        service.convert(ConversionRequest(STEP_BYTES, "part.step", "part"))
    elapsed = time.monotonic() - started

    assert exc_info.value.failures[0].kind == BackendExecutionError.TIMEOUT
    assert elapsed < 10
    assert_all_released(workspaces)


def test_timeout_kills_children_of_the_tool(tools, tmp_path, workspaces, make_service):
    marker = tmp_path / "still-running"
    tool = make_tool(tools, "freecadcmd", f'(sleep 2; echo alive > "{marker}") &\nsleep 60\n')
    service = make_service(ConversionSettings(freecad_cmd=tool, timeout_seconds=0.5), SubprocessRunner())

    with pytest.raises(ConversionExhaustedError) as exc_info:
        service.convert(ConversionRequest(STEP_BYTES, "part.step", "part"))

    assert exc_info.value.failures[0].kind == BackendExecutionError.TIMEOUT
    time.sleep(3)
    assert not marker.exists()
    assert_all_released(workspaces)
