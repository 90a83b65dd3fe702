#
# src/resultbridge/__init__.py
#
"""
resultbridge: correlates streamed test-runner output into live, per-test
run results.
"""
from .protocols import (
    DialectTag,
    RawOutcomeRecord,
    ResolvedOutcome,
    RunReportingSink,
    RunSummary,
    TestIdentifier,
    TestTree,
    Verdict,
)
from .runtime import ResultCorrelator, RunOrchestrator
from .tree import StaticTestTree

__all__ = [
    "DialectTag",
    "RawOutcomeRecord",
    "ResolvedOutcome",
    "ResultCorrelator",
    "RunOrchestrator",
    "RunReportingSink",
    "RunSummary",
    "StaticTestTree",
    "TestIdentifier",
    "TestTree",
    "Verdict",
]

# 🔼⚙️
