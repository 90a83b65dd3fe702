# src/resultbridge/pipeline/aggregator.py

"""
Computes the once-per-run summary from a finished session.
"""

from collections import Counter

import structlog

from resultbridge.protocols import RunSummary
from resultbridge.state import RunSession, TestState
from resultbridge.telemetry import StructLogger

log: StructLogger = structlog.get_logger("pipeline.aggregator")


def summarize(session: RunSession) -> RunSummary:
    """
    Builds the run summary for a closed session.

    Counts come from the final per-test states, so tests resolved by the
    finalization policy are included alongside reported ones.
    """
    if not session.closed:
        log.warning("Summarizing a run that has not been finalized", run_id=session.run_id)
    counts = Counter(session.states.values())
    summary = RunSummary(
        passed=counts[TestState.PASSED],
        failed=counts[TestState.FAILED],
        skipped=counts[TestState.SKIPPED],
        unresolved=session.unresolved,
        malformed=session.malformed,
        rejected=session.rejected,
        dialect=session.dialect.value,
        exit_code=session.exit_code,
        cancelled=session.cancelled,
    )
    log.info(
        "Run summary",
        run_id=session.run_id,
        passed=summary.passed,
        failed=summary.failed,
        skipped=summary.skipped,
        unresolved=summary.unresolved,
        malformed=summary.malformed,
        rejected=summary.rejected,
        dialect=summary.dialect,
        emoji_key="summary",
    )
    return summary

# 🔼⚙️
