# src/resultbridge/cli/utils.py

import logging
from pathlib import Path
from typing import Any

import click
import structlog

from resultbridge.telemetry.logger import setup_logging as core_setup_logging

log = structlog.get_logger("cli.utils")

LOG_LEVEL_CHOICES = click.Choice(list(logging._nameToLevel.keys()), case_sensitive=False)


def logging_options(f):
    """Decorator to add logging options to any command."""
    f = click.option(
        "-l",
        "--log-level",
        type=LOG_LEVEL_CHOICES,
        default=None,
        envvar="RESULTBRIDGE_LOG_LEVEL",
        help="Set the logging level (overrides config file).",
    )(f)
    f = click.option(
        "--log-file",
        type=click.Path(dir_okay=False, writable=True, resolve_path=True),
        default=None,
        envvar="RESULTBRIDGE_LOG_FILE",
        help="Path to write logs to a file (JSON format).",
    )(f)
    f = click.option(
        "--json-logs",
        is_flag=True,
        default=None,
        envvar="RESULTBRIDGE_JSON_LOGS",
        help="Output console logs as JSON.",
    )(f)
    return f


def config_path_option(f):
    """Decorator adding the shared --config-path option."""
    return click.option(
        "-c",
        "--config-path",
        type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
        default=None,
        envvar="RESULTBRIDGE_CONF",
        help="Path to the resultbridge configuration file (env var RESULTBRIDGE_CONF).",
        show_envvar=True,
    )(f)


def tests_options(f):
    """Decorator adding the test tree options shared by run and replay."""
    f = click.option(
        "-t",
        "--tests",
        "tests_file",
        type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
        required=True,
        help="File listing one hierarchical test label per line.",
    )(f)
    f = click.option(
        "-s",
        "--select",
        "selection",
        multiple=True,
        help="Only run tests with this label or under this suite (repeatable).",
    )(f)
    return f


def setup_logging_from_context(
    ctx: click.Context,
    local_log_level: str | None = None,
    local_log_file: str | None = None,
    local_json_logs: bool | None = None,
    default_log_level: str = "INFO",
) -> None:
    """
    Setup logging using context values, allowing local overrides.
    """
    obj: dict[str, Any] = ctx.obj or {}
    log_level_str = local_log_level or obj.get("LOG_LEVEL") or default_log_level
    log_file_path = local_log_file or obj.get("LOG_FILE")
    use_json_logs = local_json_logs if local_json_logs is not None else obj.get("JSON_LOGS", False)

    numeric_level = logging.getLevelName(log_level_str.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        log_level_str = "INFO"

    core_setup_logging(
        level=numeric_level,
        json_logs=use_json_logs,
        log_file=log_file_path,
    )

    log.debug(
        "CLI logging initialized via utils",
        level=log_level_str,
        file=log_file_path or "console",
        json=use_json_logs,
    )

# ⚙️🛠️
