#
# config/loader.py
#
"""
Loads and validates the TOML configuration file into attrs models.
"""

import os
import tomllib
from pathlib import Path
from typing import Any

import attrs
import structlog

from resultbridge.config.models import BridgeConfig, GlobalConfig, PipelineConfig, RunnerConfig
from resultbridge.exceptions import ConfigurationError
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("config.loader")

DEFAULT_CONFIG_FILE = Path("resultbridge.toml")
ENV_LOG_LEVEL = "RESULTBRIDGE_LOG_LEVEL"


def _build_section(model: type, data: Any, section: str, path: Path) -> Any:
    """Instantiates one attrs section model, reporting unknown keys and bad values."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Section [{section}] must be a table", str(path))
    known = {a.name for a in attrs.fields(model)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in [{section}]: {', '.join(unknown)}", str(path))
    try:
        return model(**data)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value in [{section}]: {e}", str(path)) from e


def _apply_env_overrides(global_data: dict[str, Any]) -> dict[str, Any]:
    env_level = os.environ.get(ENV_LOG_LEVEL)
    if env_level:
        log.debug("Applying log level from environment", env_var=ENV_LOG_LEVEL, value=env_level)
        return {**global_data, "log_level": env_level}
    return global_data


def load_config(config_path: Path | None = None, required: bool = True) -> BridgeConfig:
    """
    Loads configuration from a TOML file.

    Args:
        config_path: File to read; defaults to ``resultbridge.toml`` in the
            working directory.
        required: When False, a missing file yields the default configuration.

    Returns:
        The validated configuration.

    Raises:
        ConfigurationError: if the file is required but missing, cannot be
            parsed, or contains invalid settings.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_FILE
    config_log = log.bind(config_path=str(path))

    if not path.is_file():
        if required:
            raise ConfigurationError("Configuration file not found", str(path))
        config_log.debug("No configuration file, using defaults")
        global_config = _build_section(GlobalConfig, _apply_env_overrides({}), "global", path)
        return BridgeConfig(global_config=global_config)

    try:
        with path.open("rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML: {e}", str(path)) from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration: {e}", str(path)) from e

    unknown_sections = sorted(set(raw) - {"global", "pipeline", "runner"})
    if unknown_sections:
        raise ConfigurationError(f"Unknown sections: {', '.join(unknown_sections)}", str(path))

    global_data = raw.get("global") or {}
    if isinstance(global_data, dict):
        global_data = _apply_env_overrides(global_data)

    config = BridgeConfig(
        global_config=_build_section(GlobalConfig, global_data, "global", path),
        pipeline=_build_section(PipelineConfig, raw.get("pipeline"), "pipeline", path),
        runner=_build_section(RunnerConfig, raw.get("runner"), "runner", path),
        config_file_path=path,
    )
    config_log.info("Configuration loaded", runner=config.runner.runner)
    return config

# 🔼⚙️
