"""Exceptions raised by the CAD conversion pipeline."""
from typing import Optional, Sequence

from cad_showcase.conversion.models import ConversionOutcome, ExecutionOutcome


class ConversionError(Exception):
    """Base exception for conversion operations."""


class ConfigurationError(ConversionError):
    """No conversion backend is configured. Nothing was executed."""

    status = ConversionOutcome.NOT_CONFIGURED

    def __init__(self, missing_settings: Sequence[str]):
        self.missing_settings = tuple(missing_settings)
        super().__init__(
            "No CAD conversion tool configured. Set "
            + " and/or ".join(self.missing_settings)
            + "."
        )


class WorkspaceError(ConversionError):
    """Workspace could not be created or the input could not be staged."""


class CommandError(ConversionError):
    """The external command could not be run at all."""

    def __init__(
        self,
        message: str,
        command: str,
        outcome: Optional[ExecutionOutcome] = None,
    ):
        super().__init__(message)
        self.command = command
        self.outcome = outcome


class CommandTimeoutError(CommandError):
    """The external command exceeded its timeout and was killed."""


class BackendExecutionError(ConversionError):
    """One backend attempt failed."""

    SPAWN = "spawn"
    EXIT = "exit"
    TIMEOUT = "timeout"
    MISSING_OUTPUT = "missing_output"

    def __init__(
        self,
        backend: str,
        kind: str,
        message: str,
        outcome: Optional[ExecutionOutcome] = None,
    ):
        super().__init__(message)
        self.backend = backend
        self.kind = kind
        self.message = message
        self.outcome = outcome

    @property
    def detail(self) -> str:
        line = f"{self.backend}: {self.message}"
        stderr = (self.outcome.stderr if self.outcome else "").strip()
        if stderr:
            line += f" ({stderr.splitlines()[-1]})"
        return line


class ConversionExhaustedError(ConversionError):
    """Every available backend was tried and none produced an artifact."""

    status = ConversionOutcome.EXHAUSTED

    def __init__(self, failures: Sequence[BackendExecutionError]):
        self.failures = list(failures)
        super().__init__("CAD conversion failed")

    @property
    def backends(self) -> list[str]:
        return [f.backend for f in self.failures]

    @property
    def details(self) -> list[str]:
        return [f.detail for f in self.failures]
