# src/resultbridge/pipeline/dialects.py

"""
Classifies a run's output dialect from its first records.
"""

import structlog

from resultbridge.pipeline.parsers import (
    MalformedRecordError,
    decode_structured_record,
    match_result_line,
)
from resultbridge.protocols import DialectTag
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("pipeline.dialects")

DEFAULT_DETECTION_WINDOW = 20


def classify_record(record: str) -> DialectTag | None:
    """Returns the dialect a single record proves, or None if it proves nothing."""
    try:
        if decode_structured_record(record) is not None:
            return DialectTag.STRUCTURED
    except MalformedRecordError:
        pass
    if match_result_line(record) is not None:
        return DialectTag.ANNOTATED_TEXT
    return None


class FormatDetector:
    """
    Watches up to ``window`` non-blank records and decides the dialect once.

    Records seen before the decision are kept so the chosen parser can replay
    them; nothing in the detection window is lost.
    """

    def __init__(self, window: int = DEFAULT_DETECTION_WINDOW):
        if window <= 0:
            raise ValueError(f"Detection window must be positive, got {window}")
        self.window = window
        self.dialect = DialectTag.UNDETECTED
        self._seen: list[str] = []
        self._counted = 0

    @property
    def decided(self) -> bool:
        return self.dialect is not DialectTag.UNDETECTED

    def observe(self, record: str) -> DialectTag:
        """
        Feeds one record to an undecided detector.

        Returns the current dialect, which stays UNDETECTED until a record
        matches a grammar or the window is exhausted.
        """
        if self.decided:
            return self.dialect
        self._seen.append(record)
        if not record.strip():
            return self.dialect

        self._counted += 1
        found = classify_record(record)
        if found is not None:
            self._decide(found)
        elif self._counted >= self.window:
            self._decide(DialectTag.UNRECOGNIZED)
        return self.dialect

    def conclude(self) -> DialectTag:
        """Forces a decision when the stream ends inside the window."""
        if not self.decided:
            self._decide(DialectTag.UNRECOGNIZED)
        return self.dialect

    def take_buffered(self) -> list[str]:
        """Hands over the records held during detection."""
        seen, self._seen = self._seen, []
        return seen

    def _decide(self, dialect: DialectTag) -> None:
        self.dialect = dialect
        log_func = log.warning if dialect is DialectTag.UNRECOGNIZED else log.info
        log_func(
            "Output dialect detected",
            dialect=dialect.value,
            records_inspected=self._counted,
        )
        if dialect is DialectTag.UNRECOGNIZED:
            self._seen.clear()

# 🔼⚙️
