"""Core models: agent contract, registry and workflow configuration."""

from .agent import (
    WORKFLOW_COMPLETE,
    Agent,
    AgentContext,
    AgentInput,
    AgentResult,
    FunctionAgent,
)
from .config import (
    AgentDeclaration,
    AgentGuardrails,
    AgentPolicy,
    MemoryPolicy,
    RetryPolicy,
    RouteDefinition,
    RuntimeSettings,
    WorkflowConfig,
    WorkflowLimits,
    load_workflow,
    load_workflow_or_default,
    parse_workflow,
)
from .registry import AgentRegistry

__all__ = [
    "WORKFLOW_COMPLETE",
    "Agent",
    "AgentContext",
    "AgentInput",
    "AgentResult",
    "FunctionAgent",
    "AgentRegistry",
    "AgentDeclaration",
    "AgentGuardrails",
    "AgentPolicy",
    "MemoryPolicy",
    "RetryPolicy",
    "RouteDefinition",
    "RuntimeSettings",
    "WorkflowConfig",
    "WorkflowLimits",
    "load_workflow",
    "load_workflow_or_default",
    "parse_workflow",
]
