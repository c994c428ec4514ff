"""Asyncio subprocess backend for running shell commands in a pool."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 200


@dataclass(slots=True)
class CommandResult:
    """Finished shell command."""

    command: str
    exit_code: int | None
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def preview(self) -> str:
        """First line of output, trimmed for one-line reporting."""

        text = self.stdout.strip() or self.stderr.strip()
        first_line = text.splitlines()[0] if text else ""
        return first_line[:_PREVIEW_CHARS]


class CommandFailedError(RuntimeError):
    """Shell command exited non-zero or timed out."""

    def __init__(self, message: str, *, result: CommandResult, timed_out: bool = False) -> None:
        super().__init__(message)
        self.result = result
        self.timed_out = timed_out


async def run_shell_command(command: str, timeout_seconds: float | None = None) -> CommandResult:
    """Run ``command`` through the shell and raise if it does not succeed.

    The shell and everything it spawns are killed if the wait is interrupted,
    whether by the timeout or by cancellation of the calling task.
    """

    process = await asyncio.create_subprocess_shell(
        command,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=os.name != "nt",
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout_seconds)
    except TimeoutError as error:
        await _terminate_process(process)
        result = CommandResult(command=command, exit_code=None, stdout="", stderr="")
        raise CommandFailedError(
            f"Command timed out after {timeout_seconds}s: {command}",
            result=result,
            timed_out=True,
        ) from error
    except BaseException:
        logger.debug("Command interrupted, killing process group: %s", command)
        await _terminate_process(process)
        raise

    result = CommandResult(
        command=command,
        exit_code=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    logger.debug("Command exited with %s: %s", result.exit_code, command)
    if not result.ok:
        raise CommandFailedError(
            f"Command exited with code {result.exit_code}: {command}",
            result=result,
        )
    return result


async def _terminate_process(process: asyncio.subprocess.Process) -> None:
    if process.returncode is not None:
        return
    try:
        if os.name == "nt":
            process.kill()
        else:
            os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    await process.wait()
