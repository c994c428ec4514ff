"""CLI entrypoint for workpool."""

import logging

import rich_click as click

from workpool import __version__
from workpool.config import env_log_level
from workpool.controllers import ChunkCommand, PoolCliController, RunCommandsCommand

click.rich_click.USE_MARKDOWN = True
POOL_CONTROLLER = PoolCliController()


@click.group()
@click.version_option(version=__version__, prog_name="workpool")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Logging level. If omitted, WORKPOOL_LOG_LEVEL is used.",
)
def workpool(log_level: str | None) -> None:
    """Bounded-concurrency task runner with retries."""

    level = (log_level or env_log_level()).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise click.ClickException(f"WORKPOOL_LOG_LEVEL is not a known level: {level!r}.")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@workpool.command("chunk")
@click.argument("items", nargs=-1)
@click.option(
    "--size",
    type=click.IntRange(min=1),
    default=10,
    show_default=True,
    help="Chunk size.",
)
def chunk_items(items: tuple[str, ...], size: int) -> None:
    """Print ITEMS split into chunks, one JSON array per line."""

    _emit_lines(POOL_CONTROLLER.chunk(ChunkCommand(items=items, size=size)))


@workpool.command("run")
@click.argument("commands", nargs=-1, required=True)
@click.option(
    "--workers",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum commands in flight. If omitted, WORKPOOL_WORKERS is used.",
)
@click.option(
    "--chunked",
    is_flag=True,
    default=False,
    help="Hand commands to workers in batches (run sequentially inside a batch).",
)
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=None,
    help="Batch size; implies --chunked. If omitted, WORKPOOL_CHUNK_SIZE is used.",
)
@click.option(
    "--attempts",
    type=click.IntRange(min=1),
    default=None,
    help="Attempts per command. If omitted, WORKPOOL_RETRY_ATTEMPTS is used.",
)
@click.option(
    "--backoff-ms",
    type=click.FloatRange(min=0),
    default=None,
    help="Base backoff in milliseconds, doubled per failed attempt.",
)
@click.option(
    "--jitter-ms",
    type=click.FloatRange(min=0),
    default=None,
    help="Upper bound of random jitter added to each backoff.",
)
@click.option(
    "--max-backoff-ms",
    type=click.FloatRange(min=0),
    default=None,
    help="Cap for the exponential part of the backoff. Uncapped by default.",
)
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Per-attempt command timeout.",
)
@click.option(
    "--keep-going",
    is_flag=True,
    default=False,
    help="Report exhausted commands as FAILED instead of aborting the run.",
)
def run_commands(  # noqa: PLR0913
    commands: tuple[str, ...],
    workers: int | None,
    chunked: bool,
    chunk_size: int | None,
    attempts: int | None,
    backoff_ms: float | None,
    jitter_ms: float | None,
    max_backoff_ms: float | None,
    timeout_seconds: float | None,
    keep_going: bool,
) -> None:
    """Run shell COMMANDS concurrently, printing results in input order."""

    try:
        result = POOL_CONTROLLER.run(
            RunCommandsCommand(
                commands=commands,
                workers=workers,
                chunked=chunked,
                chunk_size=chunk_size,
                attempts=attempts,
                backoff_ms=backoff_ms,
                jitter_ms=jitter_ms,
                max_backoff_ms=max_backoff_ms,
                timeout_seconds=timeout_seconds,
                keep_going=keep_going,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("One or more commands failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    workpool()
