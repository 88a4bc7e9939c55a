"""Built-in deterministic agents.

KeywordOrchestrator routes on keywords in the task text and needs no model
access, which makes it the default orchestrator for dry runs and replays.
"""

import re
from typing import List, Optional, Tuple

from ..core.agent import Agent, AgentContext, AgentInput, AgentResult
from ..core.config import ORCHESTRATOR

# Checked in order; first match wins
_KEYWORD_ROUTES: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"sql|db|query|database", re.IGNORECASE), "db_agent"),
    (re.compile(r"search|find|lookup|google", re.IGNORECASE), "search_agent"),
    (re.compile(r"api|http|fetch|request", re.IGNORECASE), "api_agent"),
    (re.compile(r"code|script|program|execute", re.IGNORECASE), "code_agent"),
    (re.compile(r"analy|chart|summary|report", re.IGNORECASE), "data_agent"),
]
DEFAULT_ROUTE = "data_agent"

STEP_COMPLETED_MARKER = "Previous step completed"
ROUTING_COST = 0.001


def choose_route(text: str) -> str:
    for pattern, target in _KEYWORD_ROUTES:
        if pattern.search(text):
            return target
    return DEFAULT_ROUTE


class KeywordOrchestrator(Agent):
    """Routes to the first worker whose keywords appear in the message.

    Ends the workflow once a worker has reported back, or when the chosen
    worker is not in this orchestrator's route list.
    """

    kind = "orchestrator"

    def __init__(self, name: str = ORCHESTRATOR, cost: float = ROUTING_COST):
        self.name = name
        self.cost = cost

    async def handle(self, ctx: AgentContext, agent_input: AgentInput) -> AgentResult:
        if STEP_COMPLETED_MARKER in agent_input.message:
            ctx.log("keyword orchestrator completed task")
            return AgentResult(
                ok=True,
                message="Task completed successfully",
                payload=dict(agent_input.payload),
                cost=self.cost,
            )

        target: Optional[str] = choose_route(agent_input.message)
        allowed = ctx.workflow.allowed_targets(self.name)
        if target not in allowed:
            ctx.log("keyword route not permitted, ending workflow", {"next": target, "allowed": allowed})
            target = None

        ctx.log("keyword orchestrator routed task", {"next": target})
        return AgentResult(
            ok=True,
            message=f"Routing to {target} (keyword matching)" if target else "No eligible worker",
            payload=dict(agent_input.payload),
            next=target,
            cost=self.cost,
        )


class EchoWorker(Agent):
    """Worker that hands its input message back unchanged."""

    kind = "worker"

    def __init__(self, name: str, cost: float = 0.0):
        self.name = name
        self.cost = cost

    async def handle(self, ctx: AgentContext, agent_input: AgentInput) -> AgentResult:
        ctx.log(f"{self.name} echoing input")
        return AgentResult(
            ok=True,
            message=agent_input.message,
            payload=dict(agent_input.payload),
            cost=self.cost,
        )


def builtin_agents(worker_names: Optional[List[str]] = None) -> List[Agent]:
    """Keyword orchestrator plus an echo worker per name (defaults to every keyword target)."""
    names = worker_names if worker_names is not None else sorted(
        {target for _, target in _KEYWORD_ROUTES} | {DEFAULT_ROUTE}
    )
    return [KeywordOrchestrator()] + [EchoWorker(name) for name in names if name != ORCHESTRATOR]
