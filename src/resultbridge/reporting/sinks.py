# src/resultbridge/reporting/sinks.py

"""
Reporting sinks: the objects that receive live per-test transitions.
"""

import attrs
import structlog

from resultbridge.protocols import RunReportingSink, TestIdentifier, Verdict
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("reporting.sinks")


@attrs.define(frozen=True, slots=True)
class SinkEvent:
    """One call received by a RecordingSink."""

    kind: str
    identifier: TestIdentifier
    message: str | None = None
    duration_ms: float | None = None


@attrs.define(frozen=True, slots=True)
class FinalResult:
    verdict: Verdict
    message: str | None = None
    duration_ms: float | None = None


class RecordingSink(RunReportingSink):
    """
    Keeps every call in order and the final verdict per test.

    A second terminal call for the same test is recorded as a duplicate and
    otherwise ignored.
    """

    def __init__(self) -> None:
        self.events: list[SinkEvent] = []
        self.results: dict[TestIdentifier, FinalResult] = {}
        self.running: set[TestIdentifier] = set()
        self.duplicates: list[SinkEvent] = []

    def mark_running(self, identifier: TestIdentifier) -> None:
        self.events.append(SinkEvent("running", identifier))
        self.running.add(identifier)

    def mark_passed(self, identifier: TestIdentifier, duration_ms: float | None) -> None:
        self._terminal(SinkEvent("passed", identifier, duration_ms=duration_ms), Verdict.PASSED)

    def mark_failed(self, identifier: TestIdentifier, message: str | None, duration_ms: float | None) -> None:
        self._terminal(SinkEvent("failed", identifier, message, duration_ms), Verdict.FAILED)

    def mark_skipped(self, identifier: TestIdentifier, message: str | None) -> None:
        self._terminal(SinkEvent("skipped", identifier, message), Verdict.SKIPPED)

    def _terminal(self, event: SinkEvent, verdict: Verdict) -> None:
        self.events.append(event)
        if event.identifier in self.results:
            self.duplicates.append(event)
            return
        self.running.discard(event.identifier)
        self.results[event.identifier] = FinalResult(verdict, event.message, event.duration_ms)


class LoggingSink(RunReportingSink):
    """Reports every transition as a structured log event."""

    def __init__(self, logger: StructLogger | None = None):
        self._log = logger or log

    def mark_running(self, identifier: TestIdentifier) -> None:
        self._log.info("Test running", identifier=str(identifier))

    def mark_passed(self, identifier: TestIdentifier, duration_ms: float | None) -> None:
        self._log.info("Test passed", identifier=str(identifier), duration_ms=duration_ms, emoji_key="passed")

    def mark_failed(self, identifier: TestIdentifier, message: str | None, duration_ms: float | None) -> None:
        self._log.warning(
            "Test failed",
            identifier=str(identifier),
            message=message,
            duration_ms=duration_ms,
            emoji_key="failed",
        )

    def mark_skipped(self, identifier: TestIdentifier, message: str | None) -> None:
        self._log.info("Test skipped", identifier=str(identifier), message=message, emoji_key="skipped")


class FanOutSink(RunReportingSink):
    """Forwards every call to several sinks in order. A sink that raises is logged and skipped."""

    def __init__(self, *sinks: RunReportingSink):
        self.sinks = sinks

    def mark_running(self, identifier: TestIdentifier) -> None:
        self._forward("mark_running", identifier)

    def mark_passed(self, identifier: TestIdentifier, duration_ms: float | None) -> None:
        self._forward("mark_passed", identifier, duration_ms)

    def mark_failed(self, identifier: TestIdentifier, message: str | None, duration_ms: float | None) -> None:
        self._forward("mark_failed", identifier, message, duration_ms)

    def mark_skipped(self, identifier: TestIdentifier, message: str | None) -> None:
        self._forward("mark_skipped", identifier, message)

    def _forward(self, method: str, identifier: TestIdentifier, *args) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, method)(identifier, *args)
            except Exception:
                log.exception(
                    "Reporting sink call failed",
                    sink=type(sink).__name__,
                    method=method,
                    test=str(identifier),
                )

# 🔼⚙️
