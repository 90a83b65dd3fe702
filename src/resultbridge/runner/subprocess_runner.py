#
# src/resultbridge/runner/subprocess_runner.py
#
"""
A generic, tool-agnostic process runner using asyncio.subprocess.
"""
import asyncio
from collections.abc import AsyncIterator
from pathlib import Path

import structlog

from resultbridge.exceptions import RunnerError
from resultbridge.runner.protocols import ProcessRunner, RunnerProcess
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runner.subprocess")

DEFAULT_CHUNK_SIZE = 4096


class SubprocessHandle(RunnerProcess):
    """
    Wraps a running asyncio subprocess.
    """

    def __init__(self, process: asyncio.subprocess.Process, chunk_size: int, command: list[str]):
        self._process = process
        self._chunk_size = chunk_size
        self._log = log.bind(command=" ".join(command), pid=process.pid)
        self._stderr_task: asyncio.Task | None = None
        if process.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(process.stderr))

    @property
    def pid(self) -> int:
        return self._process.pid

    async def chunks(self) -> AsyncIterator[bytes]:
        stream = self._process.stdout
        if stream is None:
            return
        while True:
            chunk = await stream.read(self._chunk_size)
            if not chunk:
                break
            yield chunk

    async def wait(self) -> int:
        exit_code = await self._process.wait()
        if self._stderr_task is not None:
            await self._stderr_task
        self._log.info("Test command finished", exit_code=exit_code, success=exit_code == 0)
        return exit_code

    async def terminate(self, timeout: float) -> int | None:
        if self._process.returncode is None:
            self._log.warning("Terminating test command")
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(self._process.wait(), timeout=timeout)
            except TimeoutError:
                self._log.warning("Test command ignored terminate, killing it", timeout=timeout)
                try:
                    self._process.kill()
                except ProcessLookupError:
                    pass
                await self._process.wait()
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()
        return self._process.returncode

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        async for line in stream:
            self._log.debug("Test command stderr", line=line.decode("utf-8", errors="replace").rstrip())


class SubprocessProcessRunner(ProcessRunner):
    """
    Implements the ProcessRunner protocol by executing a command in a subprocess.
    """

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE, merge_stderr: bool = True):
        self.chunk_size = chunk_size
        self.merge_stderr = merge_stderr

    async def start(self, command: list[str], working_dir: Path) -> SubprocessHandle:
        """
        Starts the given test command using asyncio.create_subprocess_exec.
        """
        if not command:
            raise RunnerError("No test command configured")
        runner_log = log.bind(
            command=" ".join(command),
            working_dir=str(working_dir),
        )
        runner_log.info("Executing test command")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT if self.merge_stderr else asyncio.subprocess.PIPE,
                cwd=working_dir,
            )
        except FileNotFoundError as e:
            runner_log.error("Test command not found", command_executable=command[0])
            raise RunnerError(
                f"Test command not found: '{command[0]}'. Is it installed and in the system's PATH?",
                command=command,
                details=e,
            ) from e
        except OSError as e:
            runner_log.exception("An unexpected error occurred while starting tests")
            raise RunnerError(f"Failed to start test command: {e}", command=command, details=e) from e

        runner_log.debug("Test command started", pid=process.pid)
        return SubprocessHandle(process, self.chunk_size, command)

# 🔼⚙️
