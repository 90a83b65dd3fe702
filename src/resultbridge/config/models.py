#
# config/models.py
#
"""
Attrs-based data models for the resultbridge configuration structure.
"""

import logging
from pathlib import Path
from typing import Any

from attrs import define, field

from resultbridge.pipeline.dialects import DEFAULT_DETECTION_WINDOW
from resultbridge.pipeline.ingest import DEFAULT_MAX_RECORD_SIZE
from resultbridge.protocols import DEFAULT_LABEL_SEPARATOR


# --- Validators ---
def _validate_log_level(inst: Any, attr: Any, value: str) -> None:
    """Validator for standard logging level names."""
    valid = logging._nameToLevel.keys()
    if value.upper() not in valid:
        raise ValueError(f"Invalid log_level '{value}'. Must be one of {list(valid)}.")


def _validate_positive_int(inst: Any, attr: Any, value: int) -> None:
    """Validator ensures integer is positive."""
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be positive integer, got {value}")


def _validate_positive_number(inst: Any, attr: Any, value: float) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"Field '{attr.name}' must be a positive number, got {value}")


def _validate_separator(inst: Any, attr: Any, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Field '{attr.name}' must be a non-blank string, got {value!r}")


def _validate_command(inst: Any, attr: Any, value: list[str]) -> None:
    if not all(isinstance(part, str) and part for part in value):
        raise ValueError(f"Field '{attr.name}' must be a list of non-empty strings, got {value!r}")


# --- Section models ---
@define(frozen=True, slots=True)
class PipelineConfig:
    """Settings for output ingest, dialect detection and label matching."""

    detection_window: int = field(default=DEFAULT_DETECTION_WINDOW, validator=_validate_positive_int)
    max_record_size: int = field(default=DEFAULT_MAX_RECORD_SIZE, validator=_validate_positive_int)
    label_separator: str = field(default=DEFAULT_LABEL_SEPARATOR, validator=_validate_separator)


@define(frozen=True, slots=True)
class RunnerConfig:
    """How the external test process is started and stopped."""

    runner: str = field(default="subprocess")
    command: list[str] = field(factory=list, converter=list, validator=_validate_command)
    working_dir: Path = field(default=Path("."), converter=Path)
    chunk_size: int = field(default=4096, validator=_validate_positive_int)
    merge_stderr: bool = field(default=True)
    terminate_timeout: float = field(default=5.0, validator=_validate_positive_number)
    mark_running_on_start: bool = field(default=False)


@define(frozen=True, slots=True)
class GlobalConfig:
    """Global default settings for resultbridge."""

    log_level: str = field(default="INFO", validator=_validate_log_level)

    @property
    def numeric_log_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


@define(frozen=True, slots=True)
class BridgeConfig:
    """Root configuration object for the resultbridge application."""

    global_config: GlobalConfig = field(factory=GlobalConfig, metadata={"toml_name": "global"})
    pipeline: PipelineConfig = field(factory=PipelineConfig)
    runner: RunnerConfig = field(factory=RunnerConfig)
    config_file_path: Path | None = field(default=None)

# 🔼⚙️
