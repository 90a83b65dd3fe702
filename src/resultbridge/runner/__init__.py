#
# src/resultbridge/runner/__init__.py
#
"""
Process runner sub-package: starts the external test command and streams
its output.
"""
from .factory import get_process_runner
from .protocols import ProcessRunner, RunnerProcess
from .subprocess_runner import SubprocessHandle, SubprocessProcessRunner

__all__ = [
    "ProcessRunner",
    "RunnerProcess",
    "SubprocessHandle",
    "SubprocessProcessRunner",
    "get_process_runner",
]

# 🔼⚙️
