"""Workflow execution engine."""

from .engine import (
    Done,
    Errored,
    ExecutionEngine,
    RunResult,
    RunState,
    RunTotals,
    Running,
    Stopped,
)

__all__ = [
    "ExecutionEngine",
    "RunResult",
    "RunTotals",
    "RunState",
    "Running",
    "Stopped",
    "Errored",
    "Done",
]
