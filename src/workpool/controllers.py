"""Controllers for workpool CLI commands."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field

from workpool.chunking import chunk
from workpool.commands import CommandFailedError, CommandResult, run_shell_command
from workpool.config import Settings
from workpool.pool import run_chunked_pool, run_pool
from workpool.retry import with_retry, with_retry_default

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChunkCommand:
    """CLI input for chunk preview."""

    items: tuple[str, ...]
    size: int


@dataclass(slots=True)
class RunCommandsCommand:
    """CLI input for running shell commands through the pool."""

    commands: tuple[str, ...]
    workers: int | None = None
    chunked: bool = False
    chunk_size: int | None = None
    attempts: int | None = None
    backoff_ms: float | None = None
    jitter_ms: float | None = None
    max_backoff_ms: float | None = None
    timeout_seconds: float | None = None
    keep_going: bool = False


@dataclass(slots=True)
class RunCommandsResult:
    """Rendered outcome of a pool run."""

    lines: list[str] = field(default_factory=list)
    success: bool = True


class PoolCliController:
    """Thin adapter between click commands and the pool/retry helpers."""

    def chunk(self, command: ChunkCommand) -> list[str]:
        return [json.dumps(batch) for batch in chunk(command.items, command.size)]

    def run(self, command: RunCommandsCommand) -> RunCommandsResult:
        settings = _apply_overrides(Settings.from_env(), command)
        settings.validate()
        return asyncio.run(self._run(command, settings))

    async def _run(self, command: RunCommandsCommand, settings: Settings) -> RunCommandsResult:
        failures_seen = 0

        def on_error(error: Exception) -> None:
            nonlocal failures_seen
            failures_seen += 1
            logger.info("Command attempt failed: %s", error)

        async def run_one(shell_command: str) -> CommandResult:
            return await run_shell_command(shell_command, settings.command_timeout_seconds)

        options = settings.retry.to_options(on_error=on_error)
        if command.keep_going:
            guarded = with_retry_default(run_one, None, options)
        else:
            guarded = with_retry(run_one, options)

        async def run_batch(batch: list[str]) -> list[CommandResult | None]:
            return [await guarded(shell_command) for shell_command in batch]

        try:
            if command.chunked or command.chunk_size is not None:
                results = await run_chunked_pool(
                    command.commands,
                    run_batch,
                    chunk_size=settings.pool.chunk_size,
                    workers=settings.pool.workers,
                )
            else:
                results = await run_pool(command.commands, guarded, settings.pool.workers)
        except CommandFailedError as error:
            return RunCommandsResult(
                lines=[
                    f"FAILED: {error}",
                    *_stderr_lines(error.result),
                    f"Failed attempts observed: {failures_seen}",
                ],
                success=False,
            )

        lines = [
            _render_result(index, shell_command, result)
            for index, (shell_command, result) in enumerate(zip(command.commands, results))
        ]
        succeeded = sum(1 for result in results if result is not None)
        lines.append(
            f"Completed {succeeded}/{len(results)} commands "
            f"(failed attempts observed: {failures_seen}).",
        )
        return RunCommandsResult(lines=lines, success=succeeded == len(results))


def _apply_overrides(settings: Settings, command: RunCommandsCommand) -> Settings:
    if command.workers is not None:
        settings.pool.workers = command.workers
    if command.chunk_size is not None:
        settings.pool.chunk_size = command.chunk_size
    if command.attempts is not None:
        settings.retry.attempts = command.attempts
    if command.backoff_ms is not None:
        settings.retry.backoff_duration_ms = command.backoff_ms
    if command.jitter_ms is not None:
        settings.retry.backoff_jitter_ms = command.jitter_ms
    if command.max_backoff_ms is not None:
        settings.retry.max_backoff_ms = command.max_backoff_ms
    if command.timeout_seconds is not None:
        settings.command_timeout_seconds = command.timeout_seconds
    return settings


def _render_result(index: int, shell_command: str, result: CommandResult | None) -> str:
    if result is None:
        return f"[{index}] FAILED {shell_command}"
    preview = result.preview()
    return f"[{index}] ok {shell_command}" + (f": {preview}" if preview else "")


def _stderr_lines(result: CommandResult) -> list[str]:
    stderr = result.stderr.strip()
    if not stderr:
        return []
    return [f"  stderr: {line}" for line in stderr.splitlines()[:5]]
