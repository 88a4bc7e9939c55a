"""Standardized error handling utilities."""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def log_and_ignore(
    error: Exception,
    message: str,
    *,
    logger_instance: Optional[logging.Logger] = None,
    level: int = logging.WARNING,
) -> None:
    """
    Log an error and ignore it (don't re-raise).

    For side channels such as trace delivery, which must not change the
    outcome of the run they accompany.
    """
    (logger_instance or logger).log(level, f"{message}: {error}")


def describe_exception(error: BaseException) -> str:
    """Message recorded for an agent that raised instead of returning ok=false."""
    return str(error) or type(error).__name__


class ErrorContext:
    """
    Context manager that logs an ``Exception`` and optionally suppresses it.

    Usage:
        with ErrorContext("loading trace", raise_on_error=False) as err:
            envelope = load_trace(path)
        if err.error is not None:
            ...

    ``BaseException`` subclasses such as ``KeyboardInterrupt`` always propagate.
    """

    def __init__(
        self,
        operation: str,
        *,
        raise_on_error: bool = True,
        default_value: Any = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.operation = operation
        self.raise_on_error = raise_on_error
        self.default_value = default_value
        self._logger = logger_instance or logger
        self.error: Optional[Exception] = None

    def __enter__(self) -> "ErrorContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_val is None or not isinstance(exc_val, Exception):
            return False
        self.error = exc_val
        self._logger.error(f"Error during {self.operation}: {exc_val}")
        return not self.raise_on_error

    def get_result(self, result: Any = None) -> Any:
        """``result`` on success, otherwise ``default_value``."""
        return self.default_value if self.error is not None else result
