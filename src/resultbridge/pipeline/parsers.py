# src/resultbridge/pipeline/parsers.py

"""
Dialect-specific record parsers.

Each parser turns complete records into ``RawOutcomeRecord`` (or
``RawStartRecord``) values. Parsers never raise on bad input: unparseable text
is either ignored as runner chatter or counted as malformed.
"""

import json
import re
from typing import Any, Protocol

import structlog

from resultbridge.protocols import DialectTag, RawOutcomeRecord, RawRecord, RawStartRecord, Verdict
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("pipeline.parsers")


class MalformedRecordError(ValueError):
    """A record that claims to be structured but cannot be decoded into a result."""

    pass


# --- Annotated text grammar ---

_FAIL_MARKERS = ("✗", "✘", "×", "✕", "FAIL", "not ok")
_SKIP_MARKERS = ("○", "↓", "SKIP")

_RESULT_LINE_RE = re.compile(
    r"^\s*(?P<marker>[✓✔√✗✘×✕○↓]|(?:PASS|FAIL|SKIP)(?=[\s:])|(?:not )?ok(?=\s+\d))"
    r"[\s:]+(?P<rest>\S.*?)\s*$"
)
_TAP_NUMBER_RE = re.compile(r"^\d+\s*(?:-\s+)?")
_TAP_SKIP_RE = re.compile(r"\s+#\s*(?:SKIP|TODO)\b.*$", re.IGNORECASE)
_DURATION_RE = re.compile(r"^(?P<label>.*?\S)\s+\(?(?P<value>\d+(?:\.\d+)?)\s?(?P<unit>ms|s|m)\)?$")
_CONTINUATION_RE = re.compile(r"^\s+(?:→|\||>)\s?(?P<detail>.*)$")

_UNIT_TO_MS = {"ms": 1.0, "s": 1000.0, "m": 60_000.0}


def _marker_verdict(marker: str) -> Verdict:
    if marker in _FAIL_MARKERS:
        return Verdict.FAILED
    if marker in _SKIP_MARKERS:
        return Verdict.SKIPPED
    return Verdict.PASSED


def match_result_line(line: str) -> RawOutcomeRecord | None:
    """
    Parses one annotated-text result line such as ``✓ auth - login works 12ms``.

    Returns None for anything that is not a result line.
    """
    match = _RESULT_LINE_RE.match(line)
    if not match:
        return None
    marker = match.group("marker")
    verdict = _marker_verdict(marker)
    rest = match.group("rest")

    if marker in ("ok", "not ok"):
        rest = _TAP_NUMBER_RE.sub("", rest, count=1)
        directive = _TAP_SKIP_RE.search(rest)
        if directive:
            rest = rest[: directive.start()]
            verdict = Verdict.SKIPPED

    duration_ms = None
    timed = _DURATION_RE.match(rest)
    if timed:
        rest = timed.group("label")
        duration_ms = float(timed.group("value")) * _UNIT_TO_MS[timed.group("unit")]

    label = rest.strip()
    if not label:
        return None
    return RawOutcomeRecord(raw_label=label, verdict=verdict, duration_ms=duration_ms)


class AnnotatedTextParser:
    """
    Parses marker-prefixed result lines and their indented failure detail.

    A failure is held back until its detail block closes so that every
    continuation line ends up in its message.
    """

    dialect = DialectTag.ANNOTATED_TEXT

    def __init__(self) -> None:
        self.malformed = 0
        self._failure: RawOutcomeRecord | None = None
        self._detail: list[str] = []

    def parse(self, record: str) -> list[RawRecord]:
        outcome = match_result_line(record)
        if outcome is not None:
            emitted = self._close_failure()
            if outcome.verdict is Verdict.FAILED:
                self._failure = outcome
            else:
                emitted.append(outcome)
            return emitted

        if self._failure is not None:
            continuation = _CONTINUATION_RE.match(record)
            if continuation:
                self._detail.append(continuation.group("detail").rstrip())
                return []
            if not record.strip() or record[:1].isspace():
                return []
            return self._close_failure()
        return []

    def flush(self) -> list[RawRecord]:
        return self._close_failure()

    def _close_failure(self) -> list[RawRecord]:
        if self._failure is None:
            return []
        failure = self._failure
        if self._detail:
            failure = RawOutcomeRecord(
                raw_label=failure.raw_label,
                verdict=failure.verdict,
                duration_ms=failure.duration_ms,
                message="\n".join(self._detail),
            )
        self._failure = None
        self._detail = []
        return [failure]


# --- Structured record grammar ---

LABEL_KEYS = ("test", "fullName", "name", "title", "id")
VERDICT_KEYS = ("verdict", "status", "outcome", "result")
DURATION_KEYS = ("durationMs", "duration_ms", "duration")
MESSAGE_KEYS = ("message", "error", "failureMessage", "details")

VERDICT_ALIASES: dict[str, Verdict] = {
    "pass": Verdict.PASSED,
    "passed": Verdict.PASSED,
    "ok": Verdict.PASSED,
    "success": Verdict.PASSED,
    "fail": Verdict.FAILED,
    "failed": Verdict.FAILED,
    "failure": Verdict.FAILED,
    "error": Verdict.FAILED,
    "skip": Verdict.SKIPPED,
    "skipped": Verdict.SKIPPED,
    "pending": Verdict.SKIPPED,
    "todo": Verdict.SKIPPED,
    "ignored": Verdict.SKIPPED,
    "disabled": Verdict.SKIPPED,
}
START_ALIASES = frozenset({"running", "started", "start"})


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _coerce_message(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        return "\n".join(str(item) for item in value)
    if isinstance(value, dict):
        inner = value.get("message")
        return str(inner) if inner is not None else json.dumps(value, ensure_ascii=False)
    return str(value)


def decode_structured_record(record: str) -> RawRecord | None:
    """
    Decodes one structured record.

    Returns None for blank records and for objects that carry no
    verdict (suite, file or metadata events).

    Raises:
        MalformedRecordError: if the record is not a JSON object, has a
            verdict without a usable label, or an unknown verdict.
    """
    text = record.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Not a JSON record: {e.msg}") from e
    if not isinstance(data, dict):
        raise MalformedRecordError(f"Expected a JSON object, got {type(data).__name__}")

    label = _first(data, LABEL_KEYS)
    verdict_value = _first(data, VERDICT_KEYS)
    if verdict_value is None:
        return None
    if label is None or isinstance(label, (dict, list, bool)):
        raise MalformedRecordError("Record has an incomplete test result")

    token = str(verdict_value).strip().lower()
    if token in START_ALIASES:
        return RawStartRecord(raw_label=str(label))
    verdict = VERDICT_ALIASES.get(token)
    if verdict is None:
        raise MalformedRecordError(f"Unknown verdict {verdict_value!r}")

    duration = _first(data, DURATION_KEYS)
    duration_ms = None
    if isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration >= 0:
        duration_ms = float(duration)

    return RawOutcomeRecord(
        raw_label=str(label),
        verdict=verdict,
        duration_ms=duration_ms,
        message=_coerce_message(_first(data, MESSAGE_KEYS)),
    )


class StructuredRecordParser:
    """Decodes each record independently; bad records are skipped and counted."""

    dialect = DialectTag.STRUCTURED

    def __init__(self) -> None:
        self.malformed = 0

    def parse(self, record: str) -> list[RawRecord]:
        try:
            decoded = decode_structured_record(record)
        except MalformedRecordError as e:
            self.malformed += 1
            log.debug("Skipping malformed structured record", reason=str(e), record=record[:200])
            return []
        return [decoded] if decoded is not None else []

    def flush(self) -> list[RawRecord]:
        return []


class RecordParser(Protocol):
    """Common interface of the dialect parsers."""

    dialect: DialectTag
    malformed: int

    def parse(self, record: str) -> list[RawRecord]: ...

    def flush(self) -> list[RawRecord]: ...


PARSER_MAP: dict[DialectTag, type[AnnotatedTextParser] | type[StructuredRecordParser]] = {
    DialectTag.ANNOTATED_TEXT: AnnotatedTextParser,
    DialectTag.STRUCTURED: StructuredRecordParser,
}


def get_record_parser(dialect: DialectTag) -> RecordParser:
    """
    Factory function returning a fresh parser for a detected dialect.
    """
    parser_class = PARSER_MAP.get(dialect)
    if parser_class is None:
        raise ValueError(
            f"No record parser for dialect '{dialect.value}'. "
            f"Available dialects: {[tag.value for tag in PARSER_MAP]}"
        )
    log.debug("Instantiating record parser", dialect=dialect.value)
    return parser_class()

# 🔼⚙️
