# src/resultbridge/pipeline/ingest.py

"""
Turns arbitrary, non-aligned output chunks into complete logical records.

A record is either one text line or one balanced ``{...}`` object, which may
span several lines. Only the current unterminated record is ever buffered.
"""

import codecs
from collections.abc import Iterator

import structlog

from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("pipeline.ingest")

DEFAULT_MAX_RECORD_SIZE = 256 * 1024

_OPENERS = "{["
_CLOSERS = "}]"
# First non-blank character of a line directly inside a pretty-printed object.
_MEMBER_STARTS = '"},'


class RecordBuffer:
    """Incremental splitter for runner output."""

    def __init__(self, max_record_size: int = DEFAULT_MAX_RECORD_SIZE, objects: bool = True):
        self.max_record_size = max_record_size
        self._objects = objects
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending: list[str] = []
        self._pending_len = 0
        self._ready: list[str] = []
        self._last_was_cr = False
        # Object scanning state, only meaningful while _in_object is set.
        self._in_object = False
        self._depth = 0
        self._in_string = False
        self._escaped = False
        self._expect_member = False

    @property
    def objects(self) -> bool:
        return self._objects

    def lines_only(self) -> None:
        """Disables balanced-object boundaries for the rest of the stream."""
        if not self._objects:
            return
        self._objects = False
        log.debug("Record buffer switched to line-only boundaries")
        if self._in_object:
            self._ready.extend(self._abandon_object(""))

    def feed(self, chunk: bytes | str) -> Iterator[str]:
        """Consumes one chunk and yields every record it completes."""
        text = self._decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
        yield from self._drain_ready()
        yield from self._scan(text)

    def flush(self) -> Iterator[str]:
        """Yields whatever is left once the stream has ended."""
        yield from self._drain_ready()
        yield from self._scan(self._decoder.decode(b"", final=True))
        if self._in_object:
            log.debug("Stream ended inside an unbalanced object", size=self._pending_len)
            yield from self._abandon_object("")
        if self._pending_len:
            yield self._take()

    def _scan(self, text: str) -> Iterator[str]:
        start = 0
        for index, char in enumerate(text):
            if self._last_was_cr:
                self._last_was_cr = False
                if char == "\n":
                    start = index + 1
                    continue

            if self._in_object and self._expect_member and not char.isspace():
                self._expect_member = False
                if char not in _MEMBER_STARTS:
                    # Not a pretty-printed object after all: treat it as text.
                    yield from self._abandon_object(text[start:index])
                    start = index

            if self._in_object:
                if self._advance_object(char):
                    self._append(text[start : index + 1])
                    start = index + 1
                    self._reset_object_state()
                    yield self._take()
                elif char in "\r\n":
                    self._append(text[start:index] + "\n")
                    start = index + 1
                    self._last_was_cr = char == "\r"
                    self._expect_member = self._depth == 1 and not self._in_string
                elif self._pending_len + (index + 1 - start) > self.max_record_size:
                    log.warning(
                        "Structured record exceeded maximum size, releasing as text lines",
                        max_record_size=self.max_record_size,
                    )
                    yield from self._abandon_object(text[start : index + 1])
                    start = index + 1
                continue

            if char in "\r\n":
                self._append(text[start:index])
                start = index + 1
                self._last_was_cr = char == "\r"
                yield self._take()
            elif self._objects and char == "{" and self._at_record_start(text, start, index):
                self._in_object = True
                self._depth = 1

        if start < len(text):
            self._append(text[start:])

    def _advance_object(self, char: str) -> bool:
        """Updates the nesting scanner; returns True when the object closes."""
        if self._in_string:
            if self._escaped:
                self._escaped = False
            elif char == "\\":
                self._escaped = True
            elif char == '"':
                self._in_string = False
            return False
        if char == '"':
            self._in_string = True
        elif char in _OPENERS:
            self._depth += 1
        elif char in _CLOSERS:
            self._depth -= 1
            return self._depth == 0
        return False

    def _at_record_start(self, text: str, start: int, index: int) -> bool:
        """True when only whitespace precedes ``index`` in the current record."""
        if text[start:index].strip():
            return False
        return not self._pending_len or not "".join(self._pending).strip()

    def _abandon_object(self, tail: str) -> list[str]:
        """Stops object scanning and splits everything collected into lines."""
        self._append(tail)
        self._reset_object_state()
        *complete, remainder = self._take().split("\n")
        self._append(remainder)
        return complete

    def _drain_ready(self) -> Iterator[str]:
        while self._ready:
            yield self._ready.pop(0)

    def _append(self, piece: str) -> None:
        if piece:
            self._pending.append(piece)
            self._pending_len += len(piece)

    def _take(self) -> str:
        record = "".join(self._pending)
        self._pending.clear()
        self._pending_len = 0
        return record

    def _reset_object_state(self) -> None:
        self._in_object = False
        self._depth = 0
        self._in_string = False
        self._escaped = False
        self._expect_member = False

# 🔼⚙️
