"""Error taxonomy for workflow loading and execution.

Configuration problems are raised before a run starts. Everything that can
end a run is a ``RunTermination`` subclass carrying the terminal status it
maps to; the engine turns these into result values instead of letting them
escape ``run()``.
"""

from typing import Optional

STATUS_OK = "ok"
STATUS_ERROR = "error"
STATUS_STOPPED = "stopped"


class EchosError(Exception):
    """Base class for all runtime errors."""


class ConfigError(EchosError):
    """Workflow configuration violates a naming or value invariant."""


class RunTermination(EchosError):
    """A condition that ends a run with a non-ok status."""

    status: str = STATUS_ERROR

    def __init__(self, reason: str, agent: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.agent = agent


class AgentNotFound(RunTermination):
    """Current agent pointer names an agent missing from the registry."""

    def __init__(self, agent: str):
        super().__init__(f"Agent not found: {agent}", agent)


class RouteViolation(RunTermination):
    """Orchestrator asked for a next agent outside its route list."""

    def __init__(self, source: str, target: str):
        super().__init__(f"Route not permitted: {source} -> {target}", source)
        self.target = target


class AgentFailure(RunTermination):
    """Agent exhausted its retries and has no fallback."""

    def __init__(self, agent: str, last_error: Optional[str] = None):
        super().__init__(last_error or f"Agent {agent} failed", agent)


class LoopLimitExceeded(RunTermination):
    status = STATUS_STOPPED

    def __init__(self, agent: str, max_loops: int):
        super().__init__(f"Loop limit exceeded for {agent} (max {max_loops})", agent)
        self.max_loops = max_loops


class DurationExceeded(RunTermination):
    status = STATUS_STOPPED

    def __init__(self, max_duration_ms: int, agent: Optional[str] = None):
        super().__init__(f"Duration ceiling exceeded ({max_duration_ms}ms)", agent)
        self.max_duration_ms = max_duration_ms


class CostExceeded(RunTermination):
    status = STATUS_STOPPED

    def __init__(self, max_cost: float, agent: Optional[str] = None):
        super().__init__(f"Cost ceiling exceeded ({max_cost:g})", agent)
        self.max_cost = max_cost


class GuardrailViolation(RunTermination):
    """Single attempt broke its agent's per-invocation guardrail."""

    status = STATUS_STOPPED

    def __init__(self, agent: str, actual_cost: float, ceiling: float):
        super().__init__(
            f"Agent {agent} cost ceiling exceeded: {actual_cost:g} > {ceiling:g}", agent
        )
        self.actual_cost = actual_cost
        self.ceiling = ceiling
