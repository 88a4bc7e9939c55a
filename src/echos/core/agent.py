"""Agent contract: what the engine hands an agent and what it expects back."""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .config import AgentGuardrails, WorkflowConfig

AgentKind = Literal["orchestrator", "worker"]

# A worker returning this as ``next`` ends the workflow instead of handing back
WORKFLOW_COMPLETE = "__complete__"


class AgentInput(BaseModel):
    """Message and payload passed into an agent."""
    model_config = ConfigDict(frozen=True)

    message: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class AgentResult(BaseModel):
    """Outcome of one agent attempt.

    Business failures are reported with ``ok=False``; raising is treated the
    same way for retry purposes but loses the message payload.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    ok: bool
    message: str = ""
    payload: Optional[Dict[str, Any]] = None
    next: Optional[str] = None
    cost: Optional[float] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def reported_cost(self) -> float:
        return float(self.cost) if self.cost is not None else 0.0


LogFn = Callable[..., None]
MemoryWriter = Callable[[Mapping[str, Any]], None]


@dataclass(frozen=True)
class AgentContext:
    """Per-invocation view of the run handed to an agent.

    ``memory`` only contains ``namespace.key`` entries from the namespaces the
    agent may read. ``put_memory`` merges into the agent's single write
    namespace and is ``None`` when the agent has none.
    """
    task_id: str
    workflow: WorkflowConfig
    memory: Mapping[str, Any]
    log: LogFn
    put_memory: Optional[MemoryWriter] = None
    guardrails: AgentGuardrails = field(default_factory=AgentGuardrails)
    loop: int = 1

    def __post_init__(self):
        if not isinstance(self.memory, MappingProxyType):
            object.__setattr__(self, "memory", MappingProxyType(dict(self.memory)))


class Agent(ABC):
    """Named capability the engine can invoke."""

    name: str
    kind: AgentKind = "worker"

    @abstractmethod
    async def handle(self, ctx: AgentContext, agent_input: AgentInput) -> AgentResult:
        """Run one attempt. Signal business failures with ``ok=False``."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, kind={self.kind!r})"


HandlerFn = Callable[
    [AgentContext, AgentInput],
    Union[AgentResult, Dict[str, Any], Awaitable[Union[AgentResult, Dict[str, Any]]]],
]


class FunctionAgent(Agent):
    """Adapts a plain (sync or async) function to the Agent contract.

    The function may return an AgentResult or a dict with the same keys.
    """

    def __init__(self, name: str, fn: HandlerFn, kind: AgentKind = "worker"):
        self.name = name
        self.kind = kind
        self._fn = fn

    async def handle(self, ctx: AgentContext, agent_input: AgentInput) -> AgentResult:
        result = self._fn(ctx, agent_input)
        if inspect.isawaitable(result):
            result = await result
        return coerce_result(result)


def coerce_result(raw: Any) -> Optional[AgentResult]:
    """Normalize an agent's return value; ``None`` stays ``None``."""
    if raw is None or isinstance(raw, AgentResult):
        return raw
    return AgentResult.model_validate(raw)
