"""Execution traces and delivery sinks."""

from .recorder import (
    GUARDRAIL_VIOLATION,
    TraceCeilings,
    TraceEntry,
    TraceEnvelope,
    TraceRecorder,
    TraceTotals,
    load_trace,
)
from .sinks import FileTraceSink, HttpTraceSink, TraceSink, TraceSinkError, deliver_trace

__all__ = [
    "GUARDRAIL_VIOLATION",
    "TraceCeilings",
    "TraceEntry",
    "TraceEnvelope",
    "TraceRecorder",
    "TraceTotals",
    "load_trace",
    "TraceSink",
    "TraceSinkError",
    "FileTraceSink",
    "HttpTraceSink",
    "deliver_trace",
]
