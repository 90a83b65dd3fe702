# src/resultbridge/cli/run_cmds.py

"""
The 'run' and 'replay' commands.
"""

import asyncio
import signal
from pathlib import Path

import click
import structlog
from rich.console import Console

from resultbridge.cli.utils import (
    config_path_option,
    logging_options,
    setup_logging_from_context,
    tests_options,
)
from resultbridge.config import BridgeConfig, load_config
from resultbridge.exceptions import ConfigurationError, TestTreeError
from resultbridge.pipeline import IdentityResolver
from resultbridge.protocols import RunSummary
from resultbridge.reporting import FanOutSink, LoggingSink, RecordingSink, render_results
from resultbridge.runtime import ResultCorrelator, RunOrchestrator
from resultbridge.telemetry import StructLogger
from resultbridge.tree import StaticTestTree

log: StructLogger = structlog.get_logger("cli.run")

EXIT_INTERRUPTED = 130


def _prepare(
    ctx: click.Context,
    config_path: Path | None,
    tests_file: Path,
    selection: tuple[str, ...],
    kwargs: dict,
) -> tuple[BridgeConfig, IdentityResolver]:
    """Loads config, sets up logging and builds the resolver for the selection."""
    try:
        config = load_config(config_path, required=config_path is not None)
    except ConfigurationError as e:
        click.echo(f"Error: Configuration problem:\n{e}", err=True)
        ctx.exit(1)

    setup_logging_from_context(
        ctx,
        local_log_level=kwargs.get("log_level"),
        local_log_file=kwargs.get("log_file"),
        local_json_logs=kwargs.get("json_logs"),
        default_log_level=config.global_config.log_level,
    )

    separator = config.pipeline.label_separator
    try:
        tree = StaticTestTree.from_file(tests_file, separator)
    except (TestTreeError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(2)

    requested = tree.identifiers_for(selection or None)
    if not requested:
        click.echo("Error: No tests selected.", err=True)
        ctx.exit(2)
    return config, IdentityResolver(requested, separator)


def _exit_code(summary: RunSummary) -> int:
    if summary.cancelled:
        return EXIT_INTERRUPTED
    return 0 if summary.success else 1


async def _execute_with_signals(
    orchestrator: RunOrchestrator,
    resolver: IdentityResolver,
    sink: RecordingSink,
    command: list[str],
) -> RunSummary:
    """Runs the orchestrator, turning SIGINT/SIGTERM into a clean cancellation."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel_event.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            log.debug("Signal handlers not supported here", signal=sig.name)
    try:
        return await orchestrator.execute(
            resolver,
            FanOutSink(sink, LoggingSink()),
            command=command,
            cancel_event=cancel_event,
        )
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


@click.command(name="run", context_settings={"ignore_unknown_options": True})
@config_path_option
@tests_options
@logging_options
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run_cli(
    ctx: click.Context,
    config_path: Path | None,
    tests_file: Path,
    selection: tuple[str, ...],
    command: tuple[str, ...],
    **kwargs,
):
    """Run a test command and report live per-test results.

    Pass the command after '--', e.g. resultbridge run -t tests.txt -- npm test.
    """
    config, resolver = _prepare(ctx, config_path, tests_file, selection, kwargs)
    test_command = list(command) or config.runner.command
    if not test_command:
        click.echo("Error: No test command given and none configured in [runner].", err=True)
        ctx.exit(2)

    log.info("Initializing run command...", tests=len(resolver.identifiers))
    sink = RecordingSink()
    orchestrator = RunOrchestrator(config)
    summary = asyncio.run(_execute_with_signals(orchestrator, resolver, sink, test_command))

    render_results(Console(), sink, summary)
    ctx.exit(_exit_code(summary))


@click.command(name="replay")
@click.argument(
    "output_file",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
)
@tests_options
@click.option("--exit-code", type=int, default=0, show_default=True, help="Exit code the captured run ended with.")
@click.option(
    "--chunk-size",
    type=click.IntRange(min=1),
    default=4096,
    show_default=True,
    help="Bytes fed to the pipeline per chunk.",
)
@config_path_option
@logging_options
@click.pass_context
def replay_cli(
    ctx: click.Context,
    output_file: Path,
    tests_file: Path,
    selection: tuple[str, ...],
    exit_code: int,
    chunk_size: int,
    config_path: Path | None,
    **kwargs,
):
    """Correlate captured runner output offline, as if it were streamed live."""
    config, resolver = _prepare(ctx, config_path, tests_file, selection, kwargs)
    log.info("Replaying captured output", output_file=str(output_file), chunk_size=chunk_size)

    sink = RecordingSink()
    correlator = ResultCorrelator(resolver, FanOutSink(sink, LoggingSink()), config.pipeline)
    with output_file.open("rb") as f:
        while chunk := f.read(chunk_size):
            correlator.feed(chunk)
    summary = correlator.finalize(exit_code)

    render_results(Console(), sink, summary)
    ctx.exit(_exit_code(summary))

# 🔼⚙️
