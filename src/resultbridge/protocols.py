#
# src/resultbridge/protocols.py
#
"""
Defines the runtime protocols and data structures shared by the result
correlation pipeline and its collaborators.
"""
from collections.abc import Iterable
from enum import Enum
from typing import Protocol, TypeAlias, runtime_checkable

import attrs

DEFAULT_LABEL_SEPARATOR = " > "


class DialectTag(Enum):
    """Output grammar of a run, decided once from the first records."""

    UNDETECTED = "undetected"
    ANNOTATED_TEXT = "annotated-text"
    STRUCTURED = "structured"
    UNRECOGNIZED = "unrecognized"


class Verdict(Enum):
    """Terminal classification of a single test's execution."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@attrs.define(frozen=True, slots=True, order=True)
class TestIdentifier:
    """
    Opaque, hashable key for a discoverable test: suite path plus test name.

    Identifiers are created by the test tree and only ever referenced by the
    pipeline.
    """

    __test__ = False  # not a pytest test class

    path: tuple[str, ...] = attrs.field(converter=tuple)
    name: str

    @classmethod
    def from_label(cls, label: str, separator: str = DEFAULT_LABEL_SEPARATOR) -> "TestIdentifier":
        parts = [part.strip() for part in label.split(separator)]
        parts = [part for part in parts if part]
        if not parts:
            raise ValueError(f"Cannot build a test identifier from empty label {label!r}")
        return cls(path=tuple(parts[:-1]), name=parts[-1])

    @property
    def components(self) -> tuple[str, ...]:
        return (*self.path, self.name)

    @property
    def leaf(self) -> str:
        return self.name

    def label(self, separator: str = DEFAULT_LABEL_SEPARATOR) -> str:
        """Canonical hierarchical label, e.g. ``auth > login works``."""
        return separator.join(self.components)

    def __str__(self) -> str:
        return self.label()


@attrs.define(frozen=True, slots=True)
class RawOutcomeRecord:
    """A single parsed result, before its label is matched to a known test."""

    raw_label: str
    verdict: Verdict
    duration_ms: float | None = None
    message: str | None = None


@attrs.define(frozen=True, slots=True)
class RawStartRecord:
    """A structured runner event announcing that a test began executing."""

    raw_label: str


RawRecord: TypeAlias = RawOutcomeRecord | RawStartRecord


@attrs.define(frozen=True, slots=True)
class ResolvedOutcome:
    """A parsed result bound to the identifier it belongs to."""

    identifier: TestIdentifier
    verdict: Verdict
    duration_ms: float | None = None
    message: str | None = None

    @classmethod
    def from_raw(cls, identifier: TestIdentifier, record: RawOutcomeRecord) -> "ResolvedOutcome":
        return cls(
            identifier=identifier,
            verdict=record.verdict,
            duration_ms=record.duration_ms,
            message=record.message,
        )


@attrs.define(frozen=True, slots=True)
class RunSummary:
    """
    Structured result emitted once per run, after the process has exited.
    """

    passed: int = 0
    failed: int = 0
    skipped: int = 0
    unresolved: int = 0
    malformed: int = 0
    rejected: int = 0
    dialect: str = "unknown"
    exit_code: int | None = None
    cancelled: bool = False

    @property
    def total(self) -> int:
        return self.passed + self.failed + self.skipped

    @property
    def success(self) -> bool:
        return not self.cancelled and self.failed == 0


@runtime_checkable
class RunReportingSink(Protocol):
    """
    Protocol for the external "run" object that displays live test results.

    The pipeline guarantees at most one terminal call per identifier; a sink is
    still free to ignore duplicates.
    """

    def mark_running(self, identifier: TestIdentifier) -> None: ...

    def mark_passed(self, identifier: TestIdentifier, duration_ms: float | None) -> None: ...

    def mark_failed(
        self,
        identifier: TestIdentifier,
        message: str | None,
        duration_ms: float | None,
    ) -> None: ...

    def mark_skipped(self, identifier: TestIdentifier, message: str | None) -> None: ...


@runtime_checkable
class TestTree(Protocol):
    """
    Protocol for the discoverable test tree, read-only during a run.
    """

    __test__ = False

    def identifiers_for(self, selection: Iterable[str] | None = None) -> frozenset[TestIdentifier]:
        """
        Returns the identifiers a run request covers.

        Args:
            selection: Labels or suite prefixes chosen by the user; ``None``
                selects every test in the tree.
        """
        ...

# 🔼⚙️
