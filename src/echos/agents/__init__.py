"""Built-in agents."""

from .keyword_router import EchoWorker, KeywordOrchestrator, builtin_agents, choose_route

__all__ = ["KeywordOrchestrator", "EchoWorker", "builtin_agents", "choose_route"]
