# src/resultbridge/state.py
#
"""
Per-run state: the session record and the state machine that drives the
external reporting sink through valid per-test transitions.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum, auto

import structlog
from attrs import field, mutable

from resultbridge.protocols import (
    DialectTag,
    ResolvedOutcome,
    RunReportingSink,
    TestIdentifier,
    Verdict,
)
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("state")

NO_RESULT_MESSAGE = "no result reported"
SUCCESS_UNREPORTED_MESSAGE = "not reported; run reported success"
CANCELLED_MESSAGE = "cancelled"


class TestState(Enum):
    """Lifecycle of a single test within one run."""

    __test__ = False

    PENDING = auto()
    RUNNING = auto()
    PASSED = auto()  # Terminal.
    FAILED = auto()  # Terminal.
    SKIPPED = auto()  # Terminal.

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({TestState.PASSED, TestState.FAILED, TestState.SKIPPED})

VERDICT_STATE_MAP = {
    Verdict.PASSED: TestState.PASSED,
    Verdict.FAILED: TestState.FAILED,
    Verdict.SKIPPED: TestState.SKIPPED,
}


@mutable(slots=True)
class RunSession:
    """
    Holds the mutable state of one execution.

    A session is owned by the pipeline invocation that created it and is
    never shared between runs.
    """

    requested: frozenset[TestIdentifier] = field(converter=frozenset)
    run_id: str = field(factory=lambda: uuid.uuid4().hex[:12])
    dialect: DialectTag = field(default=DialectTag.UNDETECTED)
    started_at: datetime = field(factory=lambda: datetime.now(UTC))
    states: dict[TestIdentifier, TestState] = field(init=False)
    reported: set[TestIdentifier] = field(factory=set, init=False)
    unresolved_labels: list[str] = field(factory=list, init=False)
    malformed: int = field(default=0, init=False)
    rejected: int = field(default=0, init=False)
    exit_code: int | None = field(default=None, init=False)
    closed: bool = field(default=False, init=False)
    cancelled: bool = field(default=False, init=False)

    def __attrs_post_init__(self):
        self.states = {identifier: TestState.PENDING for identifier in self.requested}
        log.debug(
            "Initialized run session",
            run_id=self.run_id,
            requested=len(self.requested),
        )

    @property
    def unresolved(self) -> int:
        return len(self.unresolved_labels)

    def set_dialect(self, dialect: DialectTag) -> None:
        """Records the detected dialect; it can be set only once per run."""
        if self.dialect is not DialectTag.UNDETECTED:
            if dialect is not self.dialect:
                log.warning(
                    "Ignoring dialect change during run",
                    run_id=self.run_id,
                    current=self.dialect.value,
                    requested=dialect.value,
                )
            return
        self.dialect = dialect

    def record_unresolved(self, raw_label: str) -> None:
        self.unresolved_labels.append(raw_label)

    def unfinished(self) -> list[TestIdentifier]:
        """Identifiers not yet in a terminal state, in stable order."""
        return sorted(identifier for identifier, state in self.states.items() if not state.is_terminal)


class RunStateMachine:
    """
    Applies validated transitions for one session to a reporting sink.

    Every requested identifier receives at most one terminal call. Rejected
    transitions are logged and counted, never raised.
    """

    def __init__(self, session: RunSession, sink: RunReportingSink):
        self.session = session
        self.sink = sink
        self._log = log.bind(run_id=session.run_id)

    def mark_running(self, identifier: TestIdentifier) -> bool:
        state = self._current(identifier)
        if state is not TestState.PENDING:
            self._log.debug(
                "Ignoring start event for test that is not pending",
                identifier=str(identifier),
                state=state.name if state else None,
            )
            return False
        self.session.states[identifier] = TestState.RUNNING
        self._notify("mark_running", identifier)
        return True

    def apply(self, outcome: ResolvedOutcome) -> bool:
        """Drives the terminal transition for a resolved outcome."""
        identifier = outcome.identifier
        state = self._current(identifier)
        if state is None or state.is_terminal or self.session.closed:
            self.session.rejected += 1
            self._log.warning(
                "Rejected invalid terminal transition",
                identifier=str(identifier),
                current_state=state.name if state else "UNKNOWN",
                verdict=outcome.verdict.value,
                session_closed=self.session.closed,
            )
            return False
        self._terminate(identifier, outcome.verdict, outcome.message, outcome.duration_ms)
        self.session.reported.add(identifier)
        return True

    def finalize(self, exit_code: int | None) -> list[TestIdentifier]:
        """
        Forces every unfinished identifier into a terminal state.

        A zero exit code leaves unreported tests skipped; anything else,
        including an unknown exit code, fails them.
        """
        session = self.session
        session.exit_code = exit_code
        unfinished = session.unfinished()
        if exit_code == 0:
            verdict, message = Verdict.SKIPPED, SUCCESS_UNREPORTED_MESSAGE
        else:
            verdict, message = Verdict.FAILED, NO_RESULT_MESSAGE
        for identifier in unfinished:
            self._terminate(identifier, verdict, message, None)
        session.closed = True
        self._log.info(
            "Run finalized",
            exit_code=exit_code,
            reported=len(session.reported),
            fallback=len(unfinished),
            fallback_verdict=verdict.value if unfinished else None,
        )
        return unfinished

    def cancel(self) -> list[TestIdentifier]:
        """Skips every unfinished identifier and closes the session."""
        session = self.session
        unfinished = session.unfinished()
        for identifier in unfinished:
            self._terminate(identifier, Verdict.SKIPPED, CANCELLED_MESSAGE, None)
        session.cancelled = True
        session.closed = True
        self._log.warning("Run cancelled", skipped=len(unfinished))
        return unfinished

    def _current(self, identifier: TestIdentifier) -> TestState | None:
        return self.session.states.get(identifier)

    def _terminate(
        self,
        identifier: TestIdentifier,
        verdict: Verdict,
        message: str | None,
        duration_ms: float | None,
    ) -> None:
        old_state = self.session.states[identifier]
        new_state = VERDICT_STATE_MAP[verdict]
        self.session.states[identifier] = new_state
        self._log.debug(
            "Test state changed",
            identifier=str(identifier),
            old_state=old_state.name,
            new_state=new_state.name,
            emoji_key=verdict.value,
        )
        if verdict is Verdict.PASSED:
            self._notify("mark_passed", identifier, duration_ms)
        elif verdict is Verdict.FAILED:
            self._notify("mark_failed", identifier, message, duration_ms)
        else:
            self._notify("mark_skipped", identifier, message)

    def _notify(self, method: str, identifier: TestIdentifier, *args) -> None:
        # Sink failures do not roll back the recorded state.
        try:
            getattr(self.sink, method)(identifier, *args)
        except Exception:
            self._log.exception("Reporting sink call failed", method=method, identifier=str(identifier))


# 🔼⚙️
