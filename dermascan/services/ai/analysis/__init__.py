"""Multi-image skin/hair analysis: orchestration, validation, aggregation, fallback."""

from .contracts import AnalysisKind, AnalysisOutcome, ProgressEvent
from .orchestrator import AnalysisOrchestrator, OrchestratorState, analyze_batch

__all__ = [
    "AnalysisKind",
    "AnalysisOrchestrator",
    "AnalysisOutcome",
    "OrchestratorState",
    "ProgressEvent",
    "analyze_batch",
]
