"""Error taxonomy and user-facing translation."""

from .exceptions import (
    STATUS_ERROR,
    STATUS_OK,
    STATUS_STOPPED,
    AgentFailure,
    AgentNotFound,
    ConfigError,
    CostExceeded,
    DurationExceeded,
    EchosError,
    GuardrailViolation,
    LoopLimitExceeded,
    RouteViolation,
    RunTermination,
)
from .translator import ErrorTranslator, UserFriendlyError

__all__ = [
    "STATUS_OK",
    "STATUS_ERROR",
    "STATUS_STOPPED",
    "EchosError",
    "ConfigError",
    "RunTermination",
    "AgentNotFound",
    "RouteViolation",
    "AgentFailure",
    "LoopLimitExceeded",
    "DurationExceeded",
    "CostExceeded",
    "GuardrailViolation",
    "ErrorTranslator",
    "UserFriendlyError",
]
