"""CAD to STL conversion with ordered backend fallback and guaranteed workspace cleanup."""
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence, Union

from cad_showcase.config import MAX_WORKERS, TARGET_EXTENSION
from cad_showcase.conversion.backends import (
    DEFAULT_BACKENDS,
    BackendDescriptor,
    available_backends,
)
from cad_showcase.conversion.errors import (
    BackendExecutionError,
    CommandError,
    CommandTimeoutError,
    ConfigurationError,
    ConversionError,
    ConversionExhaustedError,
)
from cad_showcase.conversion.models import (
    ConversionRequest,
    ConversionResult,
    ConversionSettings,
    MeshSettings,
)
from cad_showcase.conversion.naming import output_base_name, safe_extension, safe_filename_segment
from cad_showcase.conversion.runner import CommandRunner, SubprocessRunner
from cad_showcase.conversion.workspace import Workspace, WorkspaceManager

logger = logging.getLogger("cad_showcase.conversion.service")


class ConversionService:
    """Converts CAD uploads to STL by trying each configured backend in turn.

    Requests are independent and may run concurrently; the backends of a
    single request run strictly one after another and the first artifact wins.
    """

    def __init__(
        self,
        settings: Optional[ConversionSettings] = None,
        runner: Optional[CommandRunner] = None,
        workspaces: Optional[WorkspaceManager] = None,
        backends: Sequence[BackendDescriptor] = DEFAULT_BACKENDS,
        max_workers: int = MAX_WORKERS,
    ):
        self._settings = settings or ConversionSettings.from_config()
        self._runner = runner or SubprocessRunner()
        self._workspaces = workspaces or WorkspaceManager()
        self._backends = tuple(backends)
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        logger.info(
            "ConversionService initialized (available backends: %s)",
            ", ".join(b.name for b in self.available_backends()) or "none",
        )

    @property
    def settings(self) -> ConversionSettings:
        return self._settings

    def available_backends(self) -> list[BackendDescriptor]:
        return available_backends(self._settings, self._backends)

    def describe_backends(self) -> list[dict]:
        return [
            {
                "name": b.name,
                "setting": b.required_setting,
                "available": b.is_available(self._settings),
            }
            for b in self._backends
        ]

    def convert(self, request: ConversionRequest) -> ConversionResult:
        """Return the STL for `request`.

        Raises ConfigurationError when no backend is configured,
        ConversionExhaustedError when every configured backend failed and
        WorkspaceError when the workspace cannot be set up.
        """
        base = safe_filename_segment(request.output_base_name)
        output_name = f"{base}{TARGET_EXTENSION}"

        if request.extension == TARGET_EXTENSION:
            logger.info("%s is already STL, skipping conversion", request.original_filename)
            return ConversionResult(data=request.data, filename=output_name, skipped=True)

        candidates = self.available_backends()
        if not candidates:
            error = ConfigurationError([b.required_setting for b in self._backends])
            logger.error("Cannot convert %s: %s", request.original_filename, error)
            raise error

        mesh = request.mesh or self._settings.mesh
        input_name = f"{base}{safe_extension(request.original_filename)}"
        failures: list[BackendExecutionError] = []

        with self._workspaces.scope() as workspace:
            input_path = workspace.stage(input_name, request.data)
            output_path = workspace.file(output_name)
            for backend in candidates:
                try:
                    result = self._attempt(backend, workspace, input_path, output_path, mesh)
                except BackendExecutionError as e:
                    failures.append(e)
                    stderr = e.outcome.stderr.strip() if e.outcome else ""
                    logger.warning(
                        "%s conversion failed for %s (%s): %s%s",
                        backend.name,
                        request.original_filename,
                        e.kind,
                        e.message,
                        f"\n{stderr}" if stderr else "",
                    )
                    continue
                if failures:
                    logger.info(
                        "%s succeeded after failures in: %s",
                        backend.name,
                        ", ".join(f.backend for f in failures),
                    )
                return result

        raise ConversionExhaustedError(failures)

    def _attempt(
        self,
        backend: BackendDescriptor,
        workspace: Workspace,
        input_path: Path,
        output_path: Path,
        mesh: MeshSettings,
    ) -> ConversionResult:
        # Never let a previous backend's partial output pass verification.
        self._clear_output(backend, output_path)
        script = workspace.file(backend.script_name)
        invocation = backend.build(self._settings, mesh, workspace.path, script, input_path, output_path)
        try:
            workspace.write_text(backend.script_name, backend.script_body)
            outcome = self._runner.run(
                invocation.command,
                invocation.args,
                cwd=invocation.cwd,
                env=invocation.env,
                timeout=self._settings.timeout_seconds,
            )
        except CommandTimeoutError as e:
            raise BackendExecutionError(backend.name, BackendExecutionError.TIMEOUT, str(e), e.outcome) from e
        except CommandError as e:
            raise BackendExecutionError(backend.name, BackendExecutionError.SPAWN, str(e), e.outcome) from e
        finally:
            script.unlink(missing_ok=True)

        if not outcome.ok:
            raise BackendExecutionError(
                backend.name,
                BackendExecutionError.EXIT,
                f'Command "{invocation.command}" exited with code {outcome.returncode}',
                outcome,
            )
        try:
            result = ConversionResult.from_artifact(output_path, backend.name)
        except (ValueError, OSError) as e:
            raise BackendExecutionError(
                backend.name,
                BackendExecutionError.MISSING_OUTPUT,
                f"Expected conversion output {output_path.name} but no non-empty file was found",
                outcome,
            ) from e
        logger.info("Converted %s with %s in %.2fs", input_path.name, backend.name, outcome.duration)
        return result

    @staticmethod
    def _clear_output(backend: BackendDescriptor, output_path: Path) -> None:
        try:
            if output_path.is_dir() and not output_path.is_symlink():
                shutil.rmtree(output_path)
            else:
                output_path.unlink(missing_ok=True)
        except OSError as e:
            raise BackendExecutionError(
                backend.name,
                BackendExecutionError.MISSING_OUTPUT,
                f"Could not clear stale output {output_path.name}: {e}",
            ) from e

    def convert_to_stl(
        self,
        data: bytes,
        original_filename: str,
        fallback_name: str = "",
        mesh: Optional[MeshSettings] = None,
    ) -> ConversionResult:
        """Convert an upload, naming the artifact after the uploaded file."""
        request = ConversionRequest(
            data=data,
            original_filename=original_filename,
            output_base_name=output_base_name(original_filename, fallback_name),
            mesh=mesh,
        )
        return self.convert(request)

    def convert_many(
        self, requests: Sequence[ConversionRequest]
    ) -> list[Union[ConversionResult, Exception]]:
        """Convert independent requests in parallel. Results keep the input order."""
        futures = [self._executor.submit(self.convert, r) for r in requests]
        results: list[Union[ConversionResult, Exception]] = []
        for request, future in zip(requests, futures):
            try:
                results.append(future.result())
            except ConversionError as e:
                logger.error("Conversion failed for %s: %s", request.original_filename, e)
                results.append(e)
            except Exception as e:
                logger.exception("Task failed for %s: %s", request.original_filename, e)
                results.append(e)
        return results

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


# Singleton
_conversion_service: Optional[ConversionService] = None


def get_conversion_service() -> ConversionService:
    global _conversion_service
    if _conversion_service is None:
        _conversion_service = ConversionService()
    return _conversion_service
