#
# src/resultbridge/runtime/__init__.py
#
"""
Runtime components: the per-run correlator and the async orchestrator.
"""
from .correlator import ResultCorrelator
from .orchestrator import START_FAILURE_EXIT_CODE, RunOrchestrator

__all__ = ["START_FAILURE_EXIT_CODE", "ResultCorrelator", "RunOrchestrator"]

# 🔼⚙️
