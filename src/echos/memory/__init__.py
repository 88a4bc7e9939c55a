"""Run-scoped shared memory."""

from .memory_store import MemoryStore

__all__ = ["MemoryStore"]
