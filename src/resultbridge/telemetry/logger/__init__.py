# src/resultbridge/telemetry/logger/__init__.py

from .base import StructLogger, setup_logging

__all__ = ["StructLogger", "setup_logging"]
