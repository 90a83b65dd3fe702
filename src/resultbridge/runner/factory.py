#
# src/resultbridge/runner/factory.py
#
"""
Factory for creating ProcessRunner instances.
"""
import structlog

from resultbridge.config import RunnerConfig
from resultbridge.exceptions import ConfigurationError
from resultbridge.runner.protocols import ProcessRunner
from resultbridge.runner.subprocess_runner import SubprocessProcessRunner

log = structlog.get_logger("runner.factory")

RUNNER_MAP = {
    "subprocess": SubprocessProcessRunner,
    "exec": SubprocessProcessRunner,  # A generic alias
}


def get_process_runner(config: RunnerConfig) -> ProcessRunner:
    """
    Factory function to get an instance of a ProcessRunner.
    """
    runner_key = config.runner.lower()
    runner_class = RUNNER_MAP.get(runner_key)

    if not runner_class:
        log.error("Unsupported process runner specified", runner=config.runner)
        raise ConfigurationError(
            f"Unsupported process runner: '{config.runner}'. "
            f"Available runners: {list(RUNNER_MAP.keys())}"
        )

    log.debug("Instantiating process runner", runner=config.runner)
    return runner_class(chunk_size=config.chunk_size, merge_stderr=config.merge_stderr)

# 🔼⚙️
