"""Run-scoped logging with task/agent context and readable formatting."""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

ROOT_LOGGER_NAME = "echos"


class RunLogFormatter(logging.Formatter):
    """Formatter that prefixes records with run context."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        task_context = ""
        if hasattr(record, "task_id"):
            task_context = f"[{record.task_id[:8]}] "

        agent_context = ""
        if hasattr(record, "agent"):
            agent_context = f"[{record.agent}] "

        if self.use_colors:
            level_colors = {
                "DEBUG": "\033[36m",      # Cyan
                "INFO": "\033[32m",       # Green
                "WARNING": "\033[33m",    # Yellow
                "ERROR": "\033[31m",      # Red
                "CRITICAL": "\033[35m",   # Magenta
            }
            reset = "\033[0m"
            level_color = level_colors.get(record.levelname, "")
        else:
            level_color = ""
            reset = ""

        return (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"{task_context}{agent_context}{record.getMessage()}"
        )


class RunLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every record with the run's task id and current agent."""

    def __init__(self, logger: logging.Logger, task_id: str, agent_logs: bool = True):
        super().__init__(logger, {})
        self.task_id = task_id
        self.agent_logs = agent_logs
        self.current_agent: Optional[str] = None

    def set_agent(self, agent: Optional[str]) -> None:
        self.current_agent = agent

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["task_id"] = self.task_id
        if self.current_agent:
            extra["agent"] = self.current_agent
        kwargs["extra"] = extra
        return msg, kwargs

    def agent_log(self, msg: str, data: Any = None) -> None:
        """Log callback handed to agents through their context."""
        if not self.agent_logs:
            return
        if data is not None:
            self.info(f"{msg} {data}")
        else:
            self.info(msg)

    def run_started(self, task: str, workflow_name: str) -> None:
        self.info(f"▶️ Starting run of '{workflow_name}': {task}")

    def fallback(self, source: str, target: str) -> None:
        self.warning(f"🔁 Attempting fallback {source} -> {target}")

    def run_finished(self, status: str, cost: float, error: Optional[str] = None) -> None:
        if status == "ok":
            self.info(f"✅ Run finished ok (cost {cost:.4f})")
        elif status == "stopped":
            self.warning(f"⏹️ Run stopped: {error} (cost {cost:.4f})")
        else:
            self.error(f"❌ Run failed: {error} (cost {cost:.4f})")


def get_run_logger(task_id: str, agent_logs: bool = True) -> RunLogger:
    return RunLogger(logging.getLogger(f"{ROOT_LOGGER_NAME}.run"), task_id, agent_logs=agent_logs)


def setup_rich_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    use_colors: bool = True,
) -> logging.Logger:
    """
    Configure handlers on the package's root logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file to mirror output into (no ANSI codes)
        use_colors: Colorize console output

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper()))

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(RunLogFormatter(use_colors=use_colors and sys.stderr.isatty()))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(RunLogFormatter(use_colors=False))
        logger.addHandler(file_handler)

    return logger
