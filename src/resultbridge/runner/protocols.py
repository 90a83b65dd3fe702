#
# src/resultbridge/runner/protocols.py
#
"""
Defines protocols for the external test process a run reads from.
"""
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class RunnerProcess(Protocol):
    """
    A started test process: a live output stream and an eventual exit code.
    """

    def chunks(self) -> AsyncIterator[bytes]:
        """Yields raw output chunks in arrival order until end of stream."""
        ...

    async def wait(self) -> int:
        """Waits for the process to exit and returns its exit code."""
        ...

    async def terminate(self, timeout: float) -> int | None:
        """
        Asks the process to stop, killing it if it outlives ``timeout`` seconds.

        Returns:
            The exit code, or None if it could not be collected.
        """
        ...


@runtime_checkable
class ProcessRunner(Protocol):
    """
    Protocol for a runner that can start the project's test command.
    """

    async def start(self, command: list[str], working_dir: Path) -> RunnerProcess:
        """
        Starts the test command in the specified directory.

        Args:
            command: The command and arguments to execute.
            working_dir: The directory from which to run the command.

        Raises:
            RunnerError: if the process cannot be started.
        """
        ...

# 🔼⚙️
