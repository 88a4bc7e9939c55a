"""Run-scoped namespaced memory.

One store per run, seeded from the workflow's pre-seeded namespaces:
  {namespace: {key: value}}

Agents never see the store directly. Reads go through ``read_view``, which
flattens only the granted namespaces into ``namespace.key`` entries. Writes go
through a writer bound to a single namespace. Runs execute agents one at a
time, so no locking is needed.
"""

import copy
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

logger = logging.getLogger(__name__)


class MemoryStore:
    """Mutable namespace -> key -> value mapping owned by one run."""

    def __init__(self, seed: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._namespaces: Dict[str, Dict[str, Any]] = {
            ns: dict(kv) for ns, kv in copy.deepcopy(dict(seed or {})).items()
        }

    def namespaces(self) -> List[str]:
        return list(self._namespaces)

    def read_view(self, read_from: Optional[Iterable[str]]) -> Dict[str, Any]:
        """Flatten the allowed namespaces into ``namespace.key`` entries.

        Namespaces not listed are invisible, including their names. Values are
        copies; the store itself changes only through ``write``.
        """
        view: Dict[str, Any] = {}
        for ns in read_from or ():
            for key, value in self._namespaces.get(ns, {}).items():
                view[f"{ns}.{key}"] = copy.deepcopy(value)
        return view

    def write(self, namespace: str, values: Mapping[str, Any]) -> None:
        """Shallow-merge ``values`` into ``namespace`` (last write wins per key)."""
        if not isinstance(values, Mapping):
            raise TypeError(f"memory writes must be mappings, got {type(values).__name__}")
        self._namespaces.setdefault(namespace, {}).update(values)

    def writer_for(self, namespace: Optional[str]) -> Optional[Callable[[Mapping[str, Any]], None]]:
        """Write callback bound to ``namespace``, or None when there is none."""
        if not namespace:
            return None

        def put_memory(values: Mapping[str, Any]) -> None:
            self.write(namespace, values)

        return put_memory

    def get(self, namespace: str, key: str, default: Any = None) -> Any:
        return self._namespaces.get(namespace, {}).get(key, default)

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        """Deep copy of the current contents."""
        return copy.deepcopy(self._namespaces)
