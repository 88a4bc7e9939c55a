"""Ceiling and guardrail evaluation for a single run.

Ceilings (loop count, wall-clock duration, cumulative cost) end a run as
``stopped``. They are evaluated at two fixed checkpoints: before an agent is
invoked and after every attempt. Evaluation order is loop, then duration,
then cost; the first breach wins.

Guardrails are per-agent and per-attempt. A breach is always terminal and is
never retried or redirected to a fallback.
"""

import logging
import time
from typing import Callable, Optional

from ..core.config import AgentGuardrails, WorkflowLimits
from ..errors import (
    CostExceeded,
    DurationExceeded,
    GuardrailViolation,
    LoopLimitExceeded,
    RunTermination,
)

logger = logging.getLogger(__name__)

ClockFn = Callable[[], float]


class PolicyEnforcer:
    """Tracks elapsed time and cumulative cost against a workflow's limits."""

    def __init__(self, limits: WorkflowLimits, clock: ClockFn = time.monotonic):
        self.limits = limits
        self._clock = clock
        self._started_at = clock()
        self._total_cost = 0.0

    @property
    def total_cost(self) -> float:
        return self._total_cost

    @property
    def elapsed_ms(self) -> float:
        return (self._clock() - self._started_at) * 1000.0

    def record_cost(self, cost: float) -> None:
        self._total_cost += cost

    def check_loop(self, agent: str, loop: int, max_loops: int) -> Optional[LoopLimitExceeded]:
        if loop > max_loops:
            return LoopLimitExceeded(agent, max_loops)
        return None

    def check_ceilings(self, agent: Optional[str] = None) -> Optional[RunTermination]:
        """Duration then cumulative cost."""
        max_duration = self.limits.max_duration_ms
        if max_duration is not None and self.elapsed_ms > max_duration:
            return DurationExceeded(max_duration, agent)

        max_cost = self.limits.max_cost
        if max_cost is not None and self._total_cost > max_cost:
            return CostExceeded(max_cost, agent)
        return None

    def check_pre_step(self, agent: str, loop: int, max_loops: int) -> Optional[RunTermination]:
        """Checkpoint before invoking ``agent`` for its ``loop``-th time."""
        violation = self.check_loop(agent, loop, max_loops) or self.check_ceilings(agent)
        if violation:
            logger.warning(f"Pre-step check stopped {agent}: {violation.reason}")
        return violation

    def check_post_attempt(self, agent: str) -> Optional[RunTermination]:
        """Checkpoint after every attempt, successful or not."""
        violation = self.check_ceilings(agent)
        if violation:
            logger.warning(f"Post-attempt check stopped {agent}: {violation.reason}")
        return violation

    def check_guardrail(
        self, agent: str, attempt_cost: float, guardrails: AgentGuardrails
    ) -> Optional[GuardrailViolation]:
        """Per-attempt cost against the agent's ``max_cost_per_invocation``."""
        ceiling = guardrails.max_cost_per_invocation
        if ceiling is not None and attempt_cost > ceiling:
            logger.warning(f"Agent {agent} exceeded cost ceiling: {attempt_cost} > {ceiling}")
            return GuardrailViolation(agent, attempt_cost, ceiling)
        return None
