# src/resultbridge/telemetry/logger/processors.py

"""
Custom structlog processors used by the resultbridge logging pipeline.
"""

import logging
from typing import Any

from structlog.typing import EventDict, WrappedLogger

LOG_EMOJIS: dict[Any, str] = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
    "passed": "✅",
    "failed": "🚫",
    "skipped": "⏭️",
    "summary": "📊",
    "general": "➡️",
}

# Keys that only make sense to the emoji processor and must not reach renderers.
_INTERNAL_KEYS = ("emoji_key",)


def add_emoji_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Prefixes the event with an emoji chosen by `emoji_key` or by log level."""
    emoji_key = event_dict.get("emoji_key")
    if emoji_key is not None:
        emoji = LOG_EMOJIS.get(emoji_key, LOG_EMOJIS["general"])
    else:
        level = logging.getLevelName(method_name.upper())
        emoji = LOG_EMOJIS.get(level, "")
    event = event_dict.get("event")
    if emoji and isinstance(event, str):
        event_dict["event"] = f"{emoji} {event}"
    return event_dict


def remove_extra_keys_processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Drops processor-only keys before rendering."""
    for key in _INTERNAL_KEYS:
        event_dict.pop(key, None)
    return event_dict
