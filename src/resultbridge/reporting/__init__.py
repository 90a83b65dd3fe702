#
# src/resultbridge/reporting/__init__.py
#
"""
Reporting sinks and run result rendering.
"""
from .console import render_results
from .sinks import FanOutSink, FinalResult, LoggingSink, RecordingSink, SinkEvent

__all__ = ["FanOutSink", "FinalResult", "LoggingSink", "RecordingSink", "SinkEvent", "render_results"]

# 🔼⚙️
