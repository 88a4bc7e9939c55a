"""Append-only execution trace with a replayable run envelope.

Every agent attempt becomes one TraceEntry (not one per step). The envelope
keeps what is needed to reproduce the run's starting conditions: task text,
initial memory payload, and the workflow configuration snapshot.

On the wire the envelope uses camelCase keys:
  {"taskId": ..., "steps": [{"agent": ..., "loop": 1, "attempt": 1, ...}], ...}
"""

import copy
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..core.agent import AgentInput, AgentResult
from ..core.config import WorkflowConfig, WorkflowLimits, parse_workflow
from ..errors import GuardrailViolation

logger = logging.getLogger(__name__)

GUARDRAIL_VIOLATION = "GUARDRAIL_VIOLATION"

TraceStatus = Literal["running", "ok", "error", "stopped"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class _TraceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class TraceEntry(_TraceModel):
    """One agent attempt."""
    at: datetime = Field(default_factory=_now)
    agent: str
    input: AgentInput
    output: AgentResult
    loop: int
    attempt: int  # 1..retries.count

    @property
    def is_guardrail_violation(self) -> bool:
        return (self.output.payload or {}).get("error") == GUARDRAIL_VIOLATION


class TraceCeilings(_TraceModel):
    max_duration_ms: Optional[int] = Field(default=None, alias="maxDurationMs")
    max_cost: Optional[float] = Field(default=None, alias="maxCost")


class TraceTotals(_TraceModel):
    cost: float = 0.0
    duration_ms: float = Field(default=0.0, alias="durationMs")


class TraceEnvelope(_TraceModel):
    task_id: str = Field(alias="taskId")
    workflow_name: Optional[str] = Field(default=None, alias="workflowName")
    started_at: datetime = Field(default_factory=_now, alias="startedAt")
    finished_at: Optional[datetime] = Field(default=None, alias="finishedAt")
    status: TraceStatus = "running"
    error: Optional[str] = None
    ceilings: TraceCeilings = Field(default_factory=TraceCeilings)
    totals: TraceTotals = Field(default_factory=TraceTotals)
    memory_namespaces: List[str] = Field(default_factory=list, alias="memoryNamespaces")
    workflow_config: Optional[Dict[str, Any]] = Field(default=None, alias="workflowConfig")
    initial_task: Optional[str] = Field(default=None, alias="initialTask")
    initial_memory: Optional[Dict[str, Any]] = Field(default=None, alias="initialMemory")
    steps: List[TraceEntry] = Field(default_factory=list)
    is_replay: bool = Field(default=False, alias="isReplay")
    original_trace_id: Optional[str] = Field(default=None, alias="originalTraceId")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def agent_sequence(self) -> List[str]:
        """Agent name of every recorded attempt, in order."""
        return [step.agent for step in self.steps]

    def workflow(self) -> Optional[WorkflowConfig]:
        """The workflow configuration the run executed against, if recorded."""
        if self.workflow_config is None:
            return None
        return parse_workflow(self.workflow_config)


class TraceRecorder:
    """Builds the trace for a single run. Appends happen in execution order."""

    def __init__(
        self,
        task_id: str,
        workflow: WorkflowConfig,
        initial_task: str,
        initial_memory: Optional[Dict[str, Any]] = None,
        memory_namespaces: Optional[List[str]] = None,
        *,
        workflow_name: Optional[str] = None,
        original_trace_id: Optional[str] = None,
    ):
        limits: WorkflowLimits = workflow.limits
        self._envelope = TraceEnvelope(
            task_id=task_id,
            workflow_name=workflow_name or workflow.name,
            ceilings=TraceCeilings(
                max_duration_ms=limits.max_duration_ms,
                max_cost=limits.max_cost,
            ),
            memory_namespaces=list(memory_namespaces or []),
            workflow_config=workflow.snapshot(),
            initial_task=initial_task,
            initial_memory=copy.deepcopy(dict(initial_memory)) if initial_memory is not None else None,
            is_replay=original_trace_id is not None,
            original_trace_id=original_trace_id,
        )

    @property
    def envelope(self) -> TraceEnvelope:
        return self._envelope

    @property
    def steps(self) -> List[TraceEntry]:
        return self._envelope.steps

    def record_attempt(
        self,
        agent: str,
        agent_input: AgentInput,
        output: AgentResult,
        loop: int,
        attempt: int,
    ) -> TraceEntry:
        entry = TraceEntry(agent=agent, input=agent_input, output=output, loop=loop, attempt=attempt)
        self._envelope.steps.append(entry)
        self._envelope.totals.cost += output.reported_cost
        return entry

    def record_guardrail_violation(
        self,
        agent_input: AgentInput,
        violation: GuardrailViolation,
        loop: int,
        attempt: int,
    ) -> TraceEntry:
        """Stand-in entry for an attempt whose cost broke its guardrail.

        The attempt's cost still counts toward the run total.
        """
        output = AgentResult(
            ok=False,
            message=f"Agent cost ceiling exceeded: {violation.actual_cost:g} > {violation.ceiling:g}",
            payload={
                "error": GUARDRAIL_VIOLATION,
                "actualCost": violation.actual_cost,
                "ceiling": violation.ceiling,
            },
        )
        entry = TraceEntry(
            agent=violation.agent, input=agent_input, output=output, loop=loop, attempt=attempt
        )
        self._envelope.steps.append(entry)
        self._envelope.totals.cost += violation.actual_cost
        return entry

    def end(self, status: TraceStatus, error: Optional[str] = None) -> TraceEnvelope:
        env = self._envelope
        env.status = status
        env.finished_at = _now()
        env.totals.duration_ms = (env.finished_at - env.started_at).total_seconds() * 1000.0
        if error:
            env.error = error
        return env


def load_trace(source: Union[TraceEnvelope, Dict[str, Any], str, Path]) -> TraceEnvelope:
    """Load a trace envelope from a model, a dict, or a JSON file path."""
    if isinstance(source, TraceEnvelope):
        return source
    if isinstance(source, dict):
        return TraceEnvelope.model_validate(source)
    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Trace file not found: {path}")
    return TraceEnvelope.model_validate(json.loads(path.read_text()))
