"""Trace sinks: where finalized run envelopes are delivered.

Delivery is best-effort. A failing sink is logged and skipped; it never
changes the status a run reports.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional

import httpx

from ..utils.atomic_io import atomic_write_model
from ..utils.error_handling import log_and_ignore
from .recorder import TraceEnvelope

logger = logging.getLogger(__name__)


class TraceSinkError(Exception):
    """Raised when a sink rejects a trace."""


class TraceSink(ABC):
    """Destination for finalized trace envelopes."""

    @abstractmethod
    async def emit(self, envelope: TraceEnvelope) -> None:
        """Persist or transmit one finalized envelope."""


class FileTraceSink(TraceSink):
    """Writes ``<taskId>.json`` into a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, task_id: str) -> Path:
        return self.directory / f"{task_id}.json"

    async def emit(self, envelope: TraceEnvelope) -> None:
        path = self.path_for(envelope.task_id)
        await asyncio.to_thread(atomic_write_model, path, envelope)
        logger.debug(f"Wrote trace {envelope.task_id} to {path}")


class HttpTraceSink(TraceSink):
    """POSTs ``{workflowName, data}`` to ``<api_url>/traces`` with a bearer token.

    Args:
        api_url: Base URL of the trace API.
        api_key: Bearer token.
        workflow_name: Used when the envelope carries no workflow name.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        workflow_name: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self._api_key = api_key
        self.workflow_name = workflow_name
        self._timeout = timeout
        self._transport = transport

    async def emit(self, envelope: TraceEnvelope) -> None:
        body = {
            "workflowName": envelope.workflow_name or self.workflow_name or "embedded-workflow",
            "data": envelope.to_json_dict(),
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.post(f"{self.api_url}/traces", json=body, headers=headers)
        if resp.status_code >= 400:
            raise TraceSinkError(f"Failed to save trace ({resp.status_code}): {resp.text[:200]}")


async def deliver_trace(envelope: TraceEnvelope, sinks: Iterable[TraceSink]) -> int:
    """Send ``envelope`` to every sink. Returns how many succeeded."""
    delivered = 0
    for sink in sinks:
        try:
            await sink.emit(envelope)
            delivered += 1
        except Exception as e:
            log_and_ignore(e, f"Trace delivery via {type(sink).__name__} failed", logger_instance=logger)
    return delivered
