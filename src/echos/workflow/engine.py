"""Execution engine driving the orchestrator <-> worker state machine.

A run is a sequence of explicit states:

  Running(agent, input) -> Running(...) | Stopped(reason) | Errored(reason) | Done(result)

Each Running step resolves the agent, checks ceilings, invokes it with
retries, checks the attempt's guardrail and ceilings, applies its memory
write and computes the next state. Every terminal cause is a state value, so
``run()`` always resolves to ``ok``, ``stopped`` or ``error``.

Replay re-runs a recorded trace's task and initial memory against a
different configuration. The configuration is an explicit per-run argument;
the engine's base configuration is never swapped, so one engine can serve
concurrent runs and replays.
"""

import asyncio
import copy
import logging
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field

from ..core.agent import (
    WORKFLOW_COMPLETE,
    Agent,
    AgentContext,
    AgentInput,
    AgentResult,
    coerce_result,
)
from ..core.config import ORCHESTRATOR, RuntimeSettings, WorkflowConfig, parse_workflow
from ..core.registry import AgentRegistry
from ..errors import (
    STATUS_ERROR,
    STATUS_OK,
    STATUS_STOPPED,
    AgentFailure,
    AgentNotFound,
    RouteViolation,
    RunTermination,
)
from ..memory.memory_store import MemoryStore
from ..safeguards.policy_enforcer import ClockFn, PolicyEnforcer
from ..safeguards.retry_handler import RetryHandler, SleepFn
from ..tracing.recorder import TraceEnvelope, TraceRecorder, load_trace
from ..tracing.sinks import FileTraceSink, HttpTraceSink, TraceSink, deliver_trace
from ..utils.error_handling import describe_exception
from ..utils.rich_logging import RunLogger, get_run_logger

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_NAME = "embedded-workflow"
UNKNOWN_TASK = "Unknown task"


@dataclass(frozen=True)
class Running:
    agent: str
    input: AgentInput


@dataclass(frozen=True)
class Stopped:
    reason: str


@dataclass(frozen=True)
class Errored:
    reason: str


@dataclass(frozen=True)
class Done:
    result: AgentInput


RunState = Union[Running, Stopped, Errored, Done]


def _terminal_state(termination: RunTermination) -> RunState:
    if termination.status == STATUS_STOPPED:
        return Stopped(termination.reason)
    return Errored(termination.reason)


class RunTotals(BaseModel):
    cost: float = 0.0


class RunResult(BaseModel):
    """Outcome of one run (or replay)."""

    task_id: str
    status: str
    error: Optional[str] = None
    result: AgentInput
    totals: RunTotals = Field(default_factory=RunTotals)
    is_replay: bool = False
    original_trace_id: Optional[str] = None
    trace: Optional[TraceEnvelope] = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


@dataclass
class _RunContext:
    """Mutable per-run state. Never shared between runs."""
    task_id: str
    task: str
    workflow: WorkflowConfig
    store: MemoryStore
    enforcer: PolicyEnforcer
    recorder: TraceRecorder
    log: RunLogger
    loops: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


class ExecutionEngine:
    """Runs tasks through a workflow of registered agents.

    Args:
        workflow: Base configuration used when a run does not supply one.
        agents: Registry, or an iterable of agents to build one from.
        sinks: Destinations for each run's finalized trace (best-effort).
        settings: Runtime settings; ``settings.logs`` gates agent log output.
        clock: Monotonic clock in seconds, used for the duration ceiling.
        sleep: Awaitable sleep used for retry backoff.
    """

    def __init__(
        self,
        workflow: Union[WorkflowConfig, Mapping[str, Any]],
        agents: Union[AgentRegistry, Iterable[Agent], None] = None,
        sinks: Iterable[TraceSink] = (),
        settings: Optional[RuntimeSettings] = None,
        clock: ClockFn = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.workflow = _as_workflow(workflow)
        if isinstance(agents, AgentRegistry):
            self.registry = agents
        else:
            self.registry = AgentRegistry(agents or ())
        self.sinks = list(sinks)
        self.settings = settings or RuntimeSettings()
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        workflow: Union[WorkflowConfig, Mapping[str, Any]],
        agents: Union[AgentRegistry, Iterable[Agent], None] = None,
        settings: Optional[RuntimeSettings] = None,
        **kwargs: Any,
    ) -> "ExecutionEngine":
        """Engine with sinks derived from settings: a trace directory, plus the
        trace API when both ``api_url`` and ``api_key`` are set."""
        settings = settings or RuntimeSettings()
        sinks: list = [FileTraceSink(settings.trace_dir)]
        if settings.api_url and settings.api_key:
            sinks.append(HttpTraceSink(settings.api_url, settings.api_key, settings.workflow_name))
        return cls(workflow, agents, sinks=sinks, settings=settings, **kwargs)

    async def run(
        self,
        task: Union[str, Mapping[str, Any]],
        memory: Optional[Mapping[str, Any]] = None,
        *,
        workflow: Union[WorkflowConfig, Mapping[str, Any], None] = None,
        task_id: Optional[str] = None,
    ) -> RunResult:
        """Execute one task.

        ``task`` is either the task text or a mapping ``{"task": ..., "memory": ...}``.
        ``memory`` becomes the orchestrator's initial input payload. ``workflow``
        replaces the base configuration for this run only.
        """
        if isinstance(task, Mapping):
            memory = task.get("memory", memory)
            task = task.get("task", "")
        effective = _as_workflow(workflow) if workflow is not None else self.workflow
        return await self._execute(str(task), memory, effective, task_id or str(uuid.uuid4()))

    async def replay(
        self,
        original_trace: Union[TraceEnvelope, Mapping[str, Any]],
        workflow: Union[WorkflowConfig, Mapping[str, Any], None] = None,
        *,
        task_id: Optional[str] = None,
    ) -> RunResult:
        """Time-travel replay: re-run a trace's original task and memory.

        Without ``workflow`` the trace's own recorded configuration is used
        (falling back to the engine's base configuration).
        """
        envelope = load_trace(dict(original_trace) if isinstance(original_trace, Mapping) else original_trace)
        if workflow is not None:
            effective = _as_workflow(workflow)
        else:
            effective = envelope.workflow() or self.workflow

        logger.info(f"Replaying trace {envelope.task_id} against workflow '{effective.name or DEFAULT_WORKFLOW_NAME}'")
        return await self._execute(
            envelope.initial_task or UNKNOWN_TASK,
            envelope.initial_memory or {},
            effective,
            task_id or str(uuid.uuid4()),
            original_trace_id=envelope.task_id,
        )

    async def _execute(
        self,
        task: str,
        memory: Optional[Mapping[str, Any]],
        workflow: WorkflowConfig,
        task_id: str,
        original_trace_id: Optional[str] = None,
    ) -> RunResult:
        workflow_name = workflow.name or self.settings.workflow_name or DEFAULT_WORKFLOW_NAME
        store = MemoryStore(workflow.seed_memory())
        initial_memory = copy.deepcopy(dict(memory)) if memory is not None else None
        run = _RunContext(
            task_id=task_id,
            task=task,
            workflow=workflow,
            store=store,
            enforcer=PolicyEnforcer(workflow.limits, clock=self._clock),
            recorder=TraceRecorder(
                task_id,
                workflow,
                task,
                initial_memory,
                store.namespaces(),
                workflow_name=workflow_name,
                original_trace_id=original_trace_id,
            ),
            log=get_run_logger(task_id, agent_logs=self.settings.logs),
        )
        run.log.run_started(task, workflow_name)

        start = AgentInput(message=task, payload=copy.deepcopy(dict(memory or {})))
        state: RunState = Running(ORCHESTRATOR, start)
        last_input = state.input
        try:
            while isinstance(state, Running):
                last_input = state.input
                run.log.set_agent(state.agent)
                state = await self._step(run, state)
        except Exception as e:
            run.log.exception(f"Engine failure: {e}")
            state = Errored(describe_exception(e))
        finally:
            run.log.set_agent(None)

        status, error, result = _resolve(state, last_input)
        envelope = run.recorder.end(status, error)
        run.log.run_finished(status, run.enforcer.total_cost, error)

        await deliver_trace(envelope, self.sinks)

        return RunResult(
            task_id=task_id,
            status=status,
            error=error,
            result=result,
            totals=RunTotals(cost=run.enforcer.total_cost),
            is_replay=original_trace_id is not None,
            original_trace_id=original_trace_id,
            trace=envelope,
        )

    async def _step(self, run: _RunContext, state: Running) -> RunState:
        name = state.agent
        agent = self.registry.get(name)
        if agent is None:
            return Errored(AgentNotFound(name).reason)

        workflow = run.workflow
        policy = workflow.policy_for(name)
        run.loops[name] += 1
        loop = run.loops[name]

        violation = run.enforcer.check_pre_step(name, loop, workflow.max_loops_for(name))
        if violation:
            return _terminal_state(violation)

        # agents get their own copy; run.workflow drives routing and limits
        agent_workflow = workflow.model_copy(deep=True)
        ctx = AgentContext(
            task_id=run.task_id,
            workflow=agent_workflow,
            memory=run.store.read_view(policy.memory_policy.read_from),
            log=run.log.agent_log,
            put_memory=run.store.writer_for(policy.memory_policy.write_to),
            guardrails=agent_workflow.policy_for(name).guardrails,
            loop=loop,
        )

        retry = RetryHandler.from_policy(policy.retries, sleep=self._sleep)
        output: Optional[AgentResult] = None
        last_error: Optional[str] = None
        succeeded = False

        for attempt in range(1, retry.max_attempts + 1):
            output, last_error = await self._attempt(agent, ctx, state.input)
            cost = output.reported_cost if output is not None else 0.0
            run.enforcer.record_cost(cost)

            guardrail = run.enforcer.check_guardrail(name, cost, policy.guardrails)
            if guardrail:
                run.recorder.record_guardrail_violation(state.input, guardrail, loop, attempt)
                return _terminal_state(guardrail)

            recorded = output if output is not None else AgentResult(ok=False, message=last_error or "unknown error")
            run.recorder.record_attempt(name, state.input, recorded, loop, attempt)

            ceiling = run.enforcer.check_post_attempt(name)
            if ceiling:
                return _terminal_state(ceiling)

            succeeded = output is not None and output.ok
            if succeeded:
                break
            if retry.should_retry(attempt):
                run.log.debug(f"Attempt {attempt}/{retry.max_attempts} failed: {last_error}")
                await retry.wait_before_retry(attempt)

        if not succeeded:
            if policy.fallback:
                # Fallback edges bypass the route table and keep the same input
                run.log.fallback(name, policy.fallback)
                return Running(policy.fallback, state.input)
            return _terminal_state(AgentFailure(name, last_error))

        write_to = policy.memory_policy.write_to
        if write_to and isinstance(output.payload, dict):
            run.store.write(write_to, output.payload)

        payload = output.payload if output.payload is not None else state.input.payload
        decl = workflow.get_agent(name)
        kind = decl.type if decl is not None else agent.kind

        if kind == ORCHESTRATOR:
            target = output.next
            next_input = AgentInput(message=state.input.message, payload=payload)
            if not target or target == WORKFLOW_COMPLETE:
                return Done(next_input)
            if target not in workflow.allowed_targets(name):
                route_violation = RouteViolation(name, target)
                run.log.error(route_violation.reason)
                return _terminal_state(route_violation)
            return Running(target, next_input)

        orchestrator_loops = run.loops[ORCHESTRATOR]
        if output.next is None and orchestrator_loops < workflow.max_loops_for(ORCHESTRATOR):
            run.log.info(f"Worker {name} completed, returning to orchestrator")
            return Running(
                ORCHESTRATOR,
                AgentInput(
                    message=f"Previous step completed: {output.message or 'Success'}. Original task: {run.task}",
                    payload=payload,
                ),
            )
        return Done(AgentInput(message=output.message, payload=output.payload or {}))

    async def _attempt(
        self, agent: Agent, ctx: AgentContext, agent_input: AgentInput
    ) -> Tuple[Optional[AgentResult], Optional[str]]:
        """One invocation. Returns (result, failure message)."""
        try:
            result = coerce_result(await agent.handle(ctx, agent_input))
        except Exception as e:
            return None, describe_exception(e)

        if result is None:
            return None, f"Agent {agent.name} returned ok=false"
        if not result.ok:
            return result, result.message or f"Agent {agent.name} returned ok=false"
        return result, None


def _resolve(state: RunState, last_input: AgentInput) -> Tuple[str, Optional[str], AgentInput]:
    if isinstance(state, Done):
        return STATUS_OK, None, state.result
    if isinstance(state, Stopped):
        return STATUS_STOPPED, state.reason, last_input
    if isinstance(state, Errored):
        return STATUS_ERROR, state.reason, last_input
    raise TypeError(f"Run ended in non-terminal state {state!r}")


def _as_workflow(workflow: Union[WorkflowConfig, Mapping[str, Any]]) -> WorkflowConfig:
    if isinstance(workflow, WorkflowConfig):
        return workflow
    return parse_workflow(dict(workflow))
