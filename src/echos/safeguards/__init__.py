"""Run safeguards: ceilings, guardrails and retry policy."""

from .policy_enforcer import PolicyEnforcer
from .retry_handler import RetryHandler

__all__ = ["PolicyEnforcer", "RetryHandler"]
