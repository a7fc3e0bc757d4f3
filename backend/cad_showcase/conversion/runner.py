"""Running external conversion tools as isolated child processes."""
import logging
import os
import signal
import subprocess
import time
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from cad_showcase.config import MAX_CAPTURED_OUTPUT_CHARS
from cad_showcase.conversion.errors import CommandError, CommandTimeoutError
from cad_showcase.conversion.models import ExecutionOutcome

logger = logging.getLogger("cad_showcase.conversion.runner")

# How long to wait for pipes to drain after a timed-out child is killed
KILL_GRACE_SECONDS = 5.0
TRUNCATION_MARKER = "...[truncated]...\n"


class CommandRunner(Protocol):
    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionOutcome:
        """Run command to completion and return its outcome, also for non-zero exits.

        Raises CommandError when the process cannot be started and
        CommandTimeoutError when it had to be killed.
        """


def tail(text: Optional[str], limit: int = MAX_CAPTURED_OUTPUT_CHARS) -> str:
    """Keep the last `limit` characters; tool errors are usually at the end."""
    if not text:
        return ""
    if limit <= 0 or len(text) <= limit:
        return text
    return TRUNCATION_MARKER + text[-limit:]


class SubprocessRunner:
    """CommandRunner backed by subprocess.Popen."""

    def __init__(self, max_output_chars: int = MAX_CAPTURED_OUTPUT_CHARS):
        self._max_output_chars = max_output_chars

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ExecutionOutcome:
        cmd = [command, *args]
        full_env = os.environ.copy()
        if env:
            full_env.update(env)
        started = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=os.name == "posix",
            )
        except FileNotFoundError as e:
            raise CommandError(f"Command not found: {command}", command) from e
        except OSError as e:
            raise CommandError(f"Could not start {command}: {e}", command) from e

        try:
            stdout, stderr = proc.communicate(timeout=timeout if timeout and timeout > 0 else None)
        except subprocess.TimeoutExpired:
            self._kill(proc)
            try:
                stdout, stderr = proc.communicate(timeout=KILL_GRACE_SECONDS)
            except subprocess.TimeoutExpired:
                # A grandchild still holds the pipes open; give up on the output.
                stdout, stderr = "", ""
                for stream in (proc.stdout, proc.stderr):
                    if stream:
                        stream.close()
                proc.wait()
            outcome = self._outcome(proc.returncode, stdout, stderr, started, timed_out=True)
            logger.warning("%s timed out after %.1fs and was killed", command, outcome.duration)
            raise CommandTimeoutError(
                f"Command timed out after {timeout:g}s", command, outcome
            )

        outcome = self._outcome(proc.returncode, stdout, stderr, started)
        logger.debug("%s exited with %s in %.2fs", command, outcome.returncode, outcome.duration)
        return outcome

    def _outcome(
        self,
        returncode: Optional[int],
        stdout: Optional[str],
        stderr: Optional[str],
        started: float,
        timed_out: bool = False,
    ) -> ExecutionOutcome:
        return ExecutionOutcome(
            returncode=returncode,
            stdout=tail(stdout, self._max_output_chars),
            stderr=tail(stderr, self._max_output_chars),
            duration=time.monotonic() - started,
            timed_out=timed_out,
        )

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        if os.name == "posix":
            try:
                os.killpg(proc.pid, signal.SIGKILL)
                return
            except (ProcessLookupError, PermissionError):
                pass
        proc.kill()
