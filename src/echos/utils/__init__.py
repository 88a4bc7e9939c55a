"""Shared utility functions."""

from .atomic_io import atomic_write_model, atomic_write_text
from .error_handling import ErrorContext, describe_exception, log_and_ignore
from .rich_logging import RunLogFormatter, RunLogger, get_run_logger, setup_rich_logging

__all__ = [
    # Atomic I/O
    "atomic_write_text",
    "atomic_write_model",
    # Error handling
    "log_and_ignore",
    "describe_exception",
    "ErrorContext",
    # Logging
    "RunLogFormatter",
    "RunLogger",
    "get_run_logger",
    "setup_rich_logging",
]
