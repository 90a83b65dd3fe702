# tests/unit/test_orchestrator.py

"""Unit tests for the RunOrchestrator component."""

import asyncio
import sys
from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from resultbridge.config import BridgeConfig, RunnerConfig
from resultbridge.exceptions import RunnerError
from resultbridge.pipeline import IdentityResolver
from resultbridge.protocols import TestIdentifier, Verdict
from resultbridge.reporting import FinalResult, RecordingSink
from resultbridge.runtime import START_FAILURE_EXIT_CODE, RunOrchestrator
from resultbridge.state import CANCELLED_MESSAGE, NO_RESULT_MESSAGE

LOGIN = TestIdentifier.from_label("auth > login works")
LOGOUT = TestIdentifier.from_label("auth > logout works")


class FakeProcess:
    """Replays canned output; optionally hangs afterwards like a stuck runner.

    ``linger`` closes the output stream but keeps the process alive until
    ``terminate`` is called.
    """

    def __init__(self, output: list[bytes], exit_code: int = 0, hang: bool = False, linger: bool = False):
        self._output = output
        self.exit_code = exit_code
        self.hang = hang
        self.linger = linger
        self.waiting = False
        self.terminated = False
        self._killed = asyncio.Event()

    async def chunks(self) -> AsyncIterator[bytes]:
        for chunk in self._output:
            await asyncio.sleep(0)
            yield chunk
        if self.hang:
            await asyncio.Event().wait()

    async def wait(self) -> int:
        if self.linger:
            self.waiting = True
            await self._killed.wait()
            return -15
        return self.exit_code

    async def terminate(self, timeout: float) -> int | None:
        self.terminated = True
        self._killed.set()
        return -15


def _orchestrator(process: FakeProcess, **runner_options) -> RunOrchestrator:
    runner = MagicMock()
    runner.start = AsyncMock(return_value=process)
    config = BridgeConfig(runner=RunnerConfig(command=["fake-runner"], **runner_options))
    return RunOrchestrator(config, runner=runner)


@pytest.fixture
def resolver(auth_tests) -> IdentityResolver:
    return IdentityResolver(auth_tests)


async def _wait_for(condition, attempts: int = 200) -> None:
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.mark.asyncio
class TestRunExecution:
    """Tests for a run that goes to completion."""

    async def test_streams_output_and_finalizes(self, resolver: IdentityResolver, sink: RecordingSink):
        """Outcomes split over chunks are applied; the rest uses the exit code."""
        process = FakeProcess(["✓ auth - login".encode(), " works 12ms\n".encode()], exit_code=1)
        orchestrator = _orchestrator(process)

        summary = await orchestrator.execute(resolver, sink)

        orchestrator.runner.start.assert_awaited_once_with(["fake-runner"], Path("."))
        assert sink.results[LOGIN] == FinalResult(Verdict.PASSED, duration_ms=12.0)
        assert sink.results[LOGOUT] == FinalResult(Verdict.FAILED, NO_RESULT_MESSAGE)
        assert summary.exit_code == 1
        assert not process.terminated

    async def test_command_override(self, resolver: IdentityResolver, sink: RecordingSink, tmp_path: Path):
        orchestrator = _orchestrator(FakeProcess([]))

        await orchestrator.execute(resolver, sink, command=["other", "--flag"], working_dir=tmp_path)

        orchestrator.runner.start.assert_awaited_once_with(["other", "--flag"], tmp_path)

    async def test_start_failure_fails_every_test(self, resolver: IdentityResolver, sink: RecordingSink):
        runner = MagicMock()
        runner.start = AsyncMock(side_effect=RunnerError("Test command not found", command=["nope"]))
        orchestrator = RunOrchestrator(BridgeConfig(runner=RunnerConfig(command=["nope"])), runner=runner)

        summary = await orchestrator.execute(resolver, sink)

        assert summary.exit_code == START_FAILURE_EXIT_CODE
        assert summary.failed == 2
        assert all(result.message == NO_RESULT_MESSAGE for result in sink.results.values())

    async def test_mark_running_on_start(self, resolver: IdentityResolver, sink: RecordingSink):
        orchestrator = _orchestrator(FakeProcess([b"ok 1 - auth > login works\n"]), mark_running_on_start=True)

        await orchestrator.execute(resolver, sink)

        kinds = [event.kind for event in sink.events]
        assert kinds[:2] == ["running", "running"]
        assert sorted(kinds[2:]) == ["passed", "skipped"]


@pytest.mark.asyncio
class TestRunCancellation:
    """Tests for stopping a run before the process exits."""

    async def test_cancel_event_stops_run(self, resolver: IdentityResolver, sink: RecordingSink):
        process = FakeProcess(["✓ auth > login works\n".encode()], hang=True)
        orchestrator = _orchestrator(process)
        cancel_event = asyncio.Event()

        task = asyncio.create_task(orchestrator.execute(resolver, sink, cancel_event=cancel_event))
        await _wait_for(lambda: LOGIN in sink.results)
        cancel_event.set()
        summary = await asyncio.wait_for(task, timeout=5)

        assert summary.cancelled
        assert summary.passed == 1
        assert sink.results[LOGOUT] == FinalResult(Verdict.SKIPPED, CANCELLED_MESSAGE)
        assert process.terminated

    async def test_cancel_event_while_waiting_for_exit(self, resolver: IdentityResolver, sink: RecordingSink):
        """A process that closed its output but never exits still honours cancellation."""
        process = FakeProcess(["✓ auth > login works\n".encode()], linger=True)
        orchestrator = _orchestrator(process)
        cancel_event = asyncio.Event()

        task = asyncio.create_task(orchestrator.execute(resolver, sink, cancel_event=cancel_event))
        await _wait_for(lambda: process.waiting)
        cancel_event.set()
        summary = await asyncio.wait_for(task, timeout=5)

        assert summary.cancelled
        assert summary.passed == 1
        assert sink.results[LOGIN] == FinalResult(Verdict.PASSED)
        assert sink.results[LOGOUT] == FinalResult(Verdict.SKIPPED, CANCELLED_MESSAGE)
        assert process.terminated

    async def test_task_cancellation_cleans_up(self, resolver: IdentityResolver, sink: RecordingSink):
        process = FakeProcess([], hang=True)
        orchestrator = _orchestrator(process)

        task = asyncio.create_task(orchestrator.execute(resolver, sink))
        await _wait_for(lambda: orchestrator.runner.start.await_count == 1)
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert {result.message for result in sink.results.values()} == {CANCELLED_MESSAGE}
        assert process.terminated


@pytest.mark.slow
@pytest.mark.asyncio
class TestRealSubprocess:
    """Runs the default subprocess runner against the current interpreter."""

    async def test_python_command(self, resolver: IdentityResolver, sink: RecordingSink):
        script = "import sys; print('ok 1 - auth > login works'); sys.exit(3)"
        orchestrator = RunOrchestrator(BridgeConfig(runner=RunnerConfig(command=[sys.executable, "-c", script])))

        summary = await orchestrator.execute(resolver, sink)

        assert summary.exit_code == 3
        assert sink.results[LOGIN].verdict is Verdict.PASSED
        assert sink.results[LOGOUT] == FinalResult(Verdict.FAILED, NO_RESULT_MESSAGE)

    async def test_missing_executable(self, resolver: IdentityResolver, sink: RecordingSink):
        config = BridgeConfig(runner=RunnerConfig(command=["resultbridge-no-such-binary-xyz"]))

        summary = await RunOrchestrator(config).execute(resolver, sink)

        assert summary.exit_code == START_FAILURE_EXIT_CODE
        assert summary.failed == 2
