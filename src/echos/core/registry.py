"""Name-to-agent lookup shared (read-only) by concurrent runs."""

import logging
from typing import Dict, Iterable, List, Optional

from .agent import Agent

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Registry mapping agent names to Agent implementations."""

    def __init__(self, agents: Optional[Iterable[Agent]] = None):
        self._agents: Dict[str, Agent] = {}
        for agent in agents or ():
            self.register(agent)

    def register(self, agent: Agent) -> None:
        """Register an agent. A later registration under the same name wins."""
        if agent.name in self._agents:
            logger.warning(f"Replacing registered agent '{agent.name}' with {agent!r}")
        self._agents[agent.name] = agent

    def get(self, name: str) -> Optional[Agent]:
        return self._agents.get(name)

    def names(self) -> List[str]:
        return sorted(self._agents)

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def merged(self, agents: Iterable[Agent]) -> "AgentRegistry":
        """New registry with ``agents`` layered over this one's entries."""
        combined = AgentRegistry(self._agents.values())
        for agent in agents:
            combined.register(agent)
        return combined
