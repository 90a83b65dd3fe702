#
# config/__init__.py
#
"""
Configuration handling sub-package for resultbridge.

Exports the loading function and core configuration models.
"""

from .loader import DEFAULT_CONFIG_FILE, load_config
from .models import (
    BridgeConfig,
    GlobalConfig,
    PipelineConfig,
    RunnerConfig,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "BridgeConfig",
    "GlobalConfig",
    "PipelineConfig",
    "RunnerConfig",
    "load_config",
]

# 🔼⚙️
