#
# tests/unit/test_state.py
#
"""
Tests for the per-test state machine and its finalization policy.
"""

from unittest.mock import MagicMock

import pytest

from resultbridge.protocols import DialectTag, ResolvedOutcome, TestIdentifier, Verdict
from resultbridge.reporting import FinalResult, RecordingSink
from resultbridge.state import (
    CANCELLED_MESSAGE,
    NO_RESULT_MESSAGE,
    SUCCESS_UNREPORTED_MESSAGE,
    RunSession,
    RunStateMachine,
    TestState,
)

LOGIN = TestIdentifier(path=("auth",), name="login works")
LOGOUT = TestIdentifier(path=("auth",), name="logout works")


@pytest.fixture
def machine(sink: RecordingSink) -> RunStateMachine:
    return RunStateMachine(RunSession(requested={LOGIN, LOGOUT}), sink)


def test_new_session_is_all_pending(machine: RunStateMachine) -> None:
    assert set(machine.session.states.values()) == {TestState.PENDING}
    assert machine.session.unfinished() == [LOGIN, LOGOUT]
    assert not TestState.RUNNING.is_terminal
    assert TestState.SKIPPED.is_terminal


def test_terminal_transition_happens_once(machine: RunStateMachine, sink: RecordingSink) -> None:
    assert machine.apply(ResolvedOutcome(LOGIN, Verdict.FAILED, message="x≠y"))
    assert not machine.apply(ResolvedOutcome(LOGIN, Verdict.PASSED))

    assert machine.session.states[LOGIN] is TestState.FAILED
    assert machine.session.rejected == 1
    assert sink.results[LOGIN] == FinalResult(Verdict.FAILED, "x≠y")
    assert sink.duplicates == []


def test_outcome_for_unrequested_test_is_rejected(machine: RunStateMachine, sink: RecordingSink) -> None:
    stranger = TestIdentifier(path=("other",), name="test")
    assert not machine.apply(ResolvedOutcome(stranger, Verdict.PASSED))
    assert machine.session.rejected == 1
    assert sink.events == []


def test_mark_running_only_from_pending(machine: RunStateMachine, sink: RecordingSink) -> None:
    assert machine.mark_running(LOGIN)
    assert not machine.mark_running(LOGIN)
    assert machine.apply(ResolvedOutcome(LOGIN, Verdict.PASSED, duration_ms=4.0))
    assert not machine.mark_running(LOGIN)
    assert [event.kind for event in sink.events] == ["running", "passed"]


@pytest.mark.parametrize(
    ("exit_code", "expected"),
    [
        (0, FinalResult(Verdict.SKIPPED, SUCCESS_UNREPORTED_MESSAGE)),
        (1, FinalResult(Verdict.FAILED, NO_RESULT_MESSAGE)),
        (139, FinalResult(Verdict.FAILED, NO_RESULT_MESSAGE)),
        (None, FinalResult(Verdict.FAILED, NO_RESULT_MESSAGE)),
    ],
)
def test_finalize_policy(machine: RunStateMachine, sink: RecordingSink, exit_code, expected) -> None:
    machine.apply(ResolvedOutcome(LOGIN, Verdict.PASSED, duration_ms=12.0))
    machine.mark_running(LOGOUT)

    assert machine.finalize(exit_code) == [LOGOUT]

    assert sink.results[LOGIN] == FinalResult(Verdict.PASSED, duration_ms=12.0)
    assert sink.results[LOGOUT] == expected
    assert machine.session.closed
    assert machine.session.exit_code == exit_code


def test_nothing_applies_after_finalize(machine: RunStateMachine) -> None:
    machine.finalize(0)
    assert not machine.apply(ResolvedOutcome(LOGIN, Verdict.PASSED))
    assert machine.session.rejected == 1


def test_cancel_skips_unfinished(machine: RunStateMachine, sink: RecordingSink) -> None:
    machine.apply(ResolvedOutcome(LOGIN, Verdict.PASSED))
    assert machine.cancel() == [LOGOUT]
    assert sink.results[LOGOUT] == FinalResult(Verdict.SKIPPED, CANCELLED_MESSAGE)
    assert machine.session.cancelled
    assert machine.session.closed


def test_sink_failure_does_not_undo_transition() -> None:
    sink = MagicMock()
    sink.mark_passed.side_effect = RuntimeError("display went away")
    machine = RunStateMachine(RunSession(requested={LOGIN}), sink)

    assert machine.apply(ResolvedOutcome(LOGIN, Verdict.PASSED))

    assert machine.session.states[LOGIN] is TestState.PASSED
    assert machine.finalize(1) == []
    sink.mark_failed.assert_not_called()


def test_dialect_is_set_once() -> None:
    session = RunSession(requested=set())
    session.set_dialect(DialectTag.STRUCTURED)
    session.set_dialect(DialectTag.ANNOTATED_TEXT)
    assert session.dialect is DialectTag.STRUCTURED
