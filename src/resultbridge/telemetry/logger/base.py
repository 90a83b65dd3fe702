# src/resultbridge/telemetry/logger/base.py

"""
structlog configuration for resultbridge.

Diagnostics always go to stderr, so the results table on stdout stays
machine-readable. An optional log file receives the same events as JSON.
"""

import logging
import sys

import structlog
from structlog.typing import FilteringBoundLogger

from resultbridge.telemetry.logger.processors import (
    add_emoji_processor,
    remove_extra_keys_processor,
)

BASE_LOGGER_NAME = "resultbridge"

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    add_emoji_processor,
    remove_extra_keys_processor,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


def _stderr_renderer(json_logs: bool) -> structlog.types.Processor:
    if json_logs:
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _attach_log_file(root_logger: logging.Logger, log_file: str, level: int) -> logging.Handler:
    """Adds a JSON file handler; OSError propagates to the caller."""
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=structlog.processors.JSONRenderer(sort_keys=True))
    )
    file_handler.setLevel(level)
    root_logger.addHandler(file_handler)
    return file_handler


def setup_logging(
    level: int = logging.INFO,
    json_logs: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Routes structlog through stdlib logging for the whole process.

    Replaces any handlers already on the root logger. A log file that cannot
    be opened is reported and skipped; stderr logging still works.
    """
    structlog.configure(
        processors=_SHARED_PROCESSORS,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=_stderr_renderer(json_logs)))
    root_logger.addHandler(stderr_handler)

    slog = structlog.get_logger(BASE_LOGGER_NAME)
    file_enabled = False
    if log_file:
        try:
            _attach_log_file(root_logger, log_file, level)
            file_enabled = True
        except OSError as e:
            slog.error("Could not open log file", path=log_file, error=str(e))

    slog.debug(
        "Logging configured",
        level=logging.getLevelName(level),
        stderr_format="json" if json_logs else "console",
        log_file=log_file if file_enabled else None,
    )


StructLogger = FilteringBoundLogger

# 🔼⚙️
