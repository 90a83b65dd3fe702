# src/resultbridge/runtime/correlator.py

"""
Per-run correlation pipeline: raw output in, validated sink transitions out.

Chunks are processed strictly in arrival order and every stage below is a
synchronous transform, so a correlator never suspends.
"""

import structlog

from resultbridge.config import PipelineConfig
from resultbridge.exceptions import SessionClosedError
from resultbridge.pipeline import (
    FormatDetector,
    IdentityResolver,
    RecordBuffer,
    RecordParser,
    get_record_parser,
    summarize,
)
from resultbridge.protocols import (
    DialectTag,
    RawRecord,
    RawStartRecord,
    ResolvedOutcome,
    RunReportingSink,
    RunSummary,
)
from resultbridge.state import RunSession, RunStateMachine
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runtime.correlator")


class ResultCorrelator:
    """
    Owns one RunSession and everything mutable about it.

    The resolver passed in is read-only and may be shared with other
    correlators; the buffer, detector, parser and session never are.
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        sink: RunReportingSink,
        config: PipelineConfig | None = None,
    ):
        self.config = config or PipelineConfig()
        self.resolver = resolver
        self.session = RunSession(requested=resolver.identifiers)
        self.machine = RunStateMachine(self.session, sink)
        self._buffer = RecordBuffer(max_record_size=self.config.max_record_size)
        self._detector = FormatDetector(window=self.config.detection_window)
        self._parser: RecordParser | None = None
        self._summary: RunSummary | None = None
        self._log = log.bind(run_id=self.session.run_id)

    @property
    def dialect(self) -> DialectTag:
        return self.session.dialect

    @property
    def summary(self) -> RunSummary | None:
        return self._summary

    def mark_all_running(self) -> None:
        for identifier in self.session.unfinished():
            self.machine.mark_running(identifier)

    def feed(self, chunk: bytes | str) -> list[ResolvedOutcome]:
        """
        Processes one output chunk and returns the outcomes it applied.

        Output arriving after the run was finalized or cancelled is discarded.
        """
        if self.session.closed:
            self._log.debug("Discarding output for closed run", size=len(chunk))
            return []
        applied: list[ResolvedOutcome] = []
        for record in self._buffer.feed(chunk):
            applied.extend(self._consume(record))
        return applied

    def finalize(self, exit_code: int | None) -> RunSummary:
        """
        Flushes buffered output, resolves unreported tests and summarizes.

        Raises:
            SessionClosedError: if the run was already finalized or cancelled.
        """
        if self.session.closed:
            raise SessionClosedError(f"Run '{self.session.run_id}' is already closed")
        for record in self._buffer.flush():
            self._consume(record)
        if self._parser is None and self.session.dialect is DialectTag.UNDETECTED:
            self._adopt(self._detector.conclude())
        if self._parser is not None:
            for raw in self._parser.flush():
                self._handle(raw)
        self.machine.finalize(exit_code)
        self._summary = summarize(self.session)
        return self._summary

    def cancel(self) -> RunSummary:
        """Skips everything unfinished; later output is ignored."""
        if self._summary is not None:
            return self._summary
        # A failure still collecting detail lines is already a complete outcome.
        if self._parser is not None:
            for raw in self._parser.flush():
                self._handle(raw)
        self.machine.cancel()
        self._summary = summarize(self.session)
        return self._summary

    def _consume(self, record: str) -> list[ResolvedOutcome]:
        if self._parser is not None:
            return self._parse(record)
        if self.session.dialect is not DialectTag.UNDETECTED:
            # Unrecognized output: exit-code-only reporting for the whole run.
            return []
        dialect = self._detector.observe(record)
        if dialect is DialectTag.UNDETECTED:
            return []
        self._adopt(dialect)
        applied: list[ResolvedOutcome] = []
        for buffered in self._detector.take_buffered():
            applied.extend(self._parse(buffered))
        return applied

    def _adopt(self, dialect: DialectTag) -> None:
        self.session.set_dialect(dialect)
        if dialect is DialectTag.UNRECOGNIZED:
            self._log.warning("Output dialect not recognized, falling back to exit-code reporting")
            return
        self._parser = get_record_parser(dialect)
        if dialect is DialectTag.ANNOTATED_TEXT:
            self._buffer.lines_only()

    def _parse(self, record: str) -> list[ResolvedOutcome]:
        applied: list[ResolvedOutcome] = []
        for raw in self._parser.parse(record):
            outcome = self._handle(raw)
            if outcome is not None:
                applied.append(outcome)
        self.session.malformed = self._parser.malformed
        return applied

    def _handle(self, raw: RawRecord) -> ResolvedOutcome | None:
        resolution = self.resolver.resolve(raw.raw_label)
        if isinstance(raw, RawStartRecord):
            if resolution.matched:
                self.machine.mark_running(resolution.identifier)
            return None
        if not resolution.matched:
            self.session.record_unresolved(raw.raw_label)
            return None
        outcome = ResolvedOutcome.from_raw(resolution.identifier, raw)
        if not self.machine.apply(outcome):
            return None
        return outcome

# 🔼⚙️
