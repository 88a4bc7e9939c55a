"""Translate configuration and run errors into CLI-friendly messages."""

import re
from dataclasses import dataclass
from typing import List, Optional

from rich.markup import escape


@dataclass
class UserFriendlyError:
    """User-friendly error representation."""
    original_error: Exception
    title: str
    explanation: str
    actions: List[str]
    show_technical: bool = False


class ErrorTranslator:
    """Translate technical errors to user-friendly messages."""

    ERROR_PATTERNS = {
        r"validation error for RuntimeSettings": {
            "title": "Invalid runtime settings",
            "explanation": "An ECHOS_* environment variable or command-line option has an invalid value.",
            "actions": [
                "Check the ECHOS_* variables in your environment and .env file",
                "ECHOS_API_URL must start with http:// or https://",
            ],
        },
        r"not found|no such file": {
            "title": "File missing",
            "explanation": "The workflow or trace file could not be found.",
            "actions": ["Check the path passed on the command line"],
        },
        r"route references unknown agent|fallback references unknown agent": {
            "title": "Workflow references an undeclared agent",
            "explanation": "A route or fallback names an agent that is not in the workflow's agent list.",
            "actions": [
                "Add the agent under 'agents:' in the workflow file",
                "Or remove it from 'routes' / 'policy.fallback'",
            ],
        },
        r"orchestrator": {
            "title": "Workflow entry point is misconfigured",
            "explanation": "Every workflow needs exactly one agent named 'orchestrator' of type 'orchestrator'.",
            "actions": [
                "Declare '- name: orchestrator' with 'type: orchestrator'",
                "Make sure no worker is declared with type 'orchestrator'",
            ],
        },
        r"retries|backoff": {
            "title": "Invalid retry policy",
            "explanation": "retries.count must be at least 1 and retries.backoffMs cannot be negative.",
            "actions": ["Fix the 'policy.retries' block of the agent named in the error"],
        },
        r"yaml|scanner|mapping values": {
            "title": "Workflow file is not valid YAML",
            "explanation": "The workflow file could not be parsed.",
            "actions": ["Check indentation and quoting in the workflow file"],
        },
    }

    def translate(self, error: Exception) -> UserFriendlyError:
        """Convert exception to user-friendly format."""
        full_error = f"{type(error).__name__}: {error}"

        for pattern, translation in self.ERROR_PATTERNS.items():
            if re.search(pattern, full_error, re.IGNORECASE):
                return UserFriendlyError(
                    original_error=error,
                    title=translation["title"],
                    explanation=translation["explanation"],
                    actions=translation["actions"],
                    show_technical=True,
                )

        return UserFriendlyError(
            original_error=error,
            title="Unexpected error",
            explanation=str(error),
            actions=["Re-run with --log-level DEBUG for details"],
            show_technical=False,
        )

    def format_for_cli(self, friendly_error: UserFriendlyError, detail: Optional[str] = None) -> str:
        """Format error for rich console display."""
        output = f"[bold red]{friendly_error.title}[/]\n\n"
        output += f"{escape(friendly_error.explanation)}\n\n"

        output += "[bold]How to fix:[/]\n"
        for i, action in enumerate(friendly_error.actions, 1):
            output += f"  {i}. {action}\n"

        if friendly_error.show_technical:
            output += f"\n[dim]Technical details:[/]\n[dim]{escape(str(detail or friendly_error.original_error))}[/]"

        return output
