# src/resultbridge/runtime/orchestrator.py

"""
High-level coordinator for one live test run.
Binds a process, a resolver and a sink to a fresh correlator.
"""

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import structlog

from resultbridge.config import BridgeConfig
from resultbridge.exceptions import RunnerError
from resultbridge.pipeline import IdentityResolver
from resultbridge.protocols import RunReportingSink, RunSummary
from resultbridge.runner import ProcessRunner, RunnerProcess, get_process_runner
from resultbridge.telemetry import StructLogger

from .correlator import ResultCorrelator

log: StructLogger = structlog.get_logger("runtime.orchestrator")

# Exit code used when the test command never started.
START_FAILURE_EXIT_CODE = -1


class RunOrchestrator:
    """Runs test commands and streams their output through a correlator."""

    def __init__(self, config: BridgeConfig, runner: ProcessRunner | None = None):
        self.config = config
        self.runner = runner or get_process_runner(config.runner)

    async def execute(
        self,
        resolver: IdentityResolver,
        sink: RunReportingSink,
        command: list[str] | None = None,
        working_dir: Path | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RunSummary:
        """
        Executes one run to completion or cancellation.

        Args:
            resolver: Read-only index of the identifiers this run covers.
            sink: Receives every per-test transition.
            command: Test command; defaults to the configured one.
            working_dir: Defaults to the configured working directory.
            cancel_event: When set, the run is cancelled and the process stopped.

        Returns:
            The run summary. Never raises for runner output or exit problems.
        """
        runner_config = self.config.runner
        command = list(command or runner_config.command)
        working_dir = working_dir or runner_config.working_dir
        correlator = ResultCorrelator(resolver, sink, self.config.pipeline)
        run_log = log.bind(run_id=correlator.session.run_id)
        run_log.info("Starting test run", command=" ".join(command), tests=len(resolver.identifiers))

        try:
            process = await self.runner.start(command, working_dir)
        except RunnerError as e:
            run_log.error("Test command could not be started", error=str(e))
            return correlator.finalize(START_FAILURE_EXIT_CODE)

        if runner_config.mark_running_on_start:
            correlator.mark_all_running()

        exit_code: int | None = None
        try:
            cancelled = await self._pump(process, correlator, cancel_event)
            if not cancelled:
                cancelled, exit_code = await self._wait_for_exit(process, cancel_event)
        except asyncio.CancelledError:
            run_log.warning("Run task was cancelled")
            correlator.cancel()
            await process.terminate(runner_config.terminate_timeout)
            raise

        if cancelled:
            summary = correlator.cancel()
            await process.terminate(runner_config.terminate_timeout)
            return summary

        return correlator.finalize(exit_code)

    async def _wait_for_exit(
        self,
        process: RunnerProcess,
        cancel_event: asyncio.Event | None,
    ) -> tuple[bool, int | None]:
        """Waits for the exit code; returns (True, None) if cancelled first."""
        if cancel_event is None:
            return False, await process.wait()
        wait_task = asyncio.ensure_future(process.wait())
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({wait_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
            if wait_task in done:
                return False, wait_task.result()
            log.warning("Run cancelled while waiting for the test command to exit")
            return True, None
        finally:
            for task in (wait_task, cancel_task):
                if not task.done():
                    task.cancel()

    async def _pump(
        self,
        process: RunnerProcess,
        correlator: ResultCorrelator,
        cancel_event: asyncio.Event | None,
    ) -> bool:
        """Feeds output chunks until end of stream; returns True if cancelled."""
        chunks: AsyncIterator[bytes] = aiter(process.chunks())
        cancel_task = asyncio.create_task(cancel_event.wait()) if cancel_event else None
        read_task: asyncio.Future | None = None
        try:
            while True:
                read_task = asyncio.ensure_future(anext(chunks))
                waiters = {read_task} if cancel_task is None else {read_task, cancel_task}
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                if cancel_task is not None and cancel_task in done:
                    read_task.cancel()
                    await asyncio.gather(read_task, return_exceptions=True)
                    return True

                try:
                    chunk = read_task.result()
                except StopAsyncIteration:
                    return False
                correlator.feed(chunk)
        finally:
            for task in (read_task, cancel_task):
                if task is not None and not task.done():
                    task.cancel()

# 🔼⚙️
