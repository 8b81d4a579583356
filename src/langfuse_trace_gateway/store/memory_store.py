"""In-memory trace cache for testing and embedded usage."""

import json
from typing import Any

from langfuse_trace_gateway.errors import CacheWriteError


class MemoryTraceCache:
    """Ephemeral in-memory cache.  Useful for tests and short-lived processes.

    Entries are kept as JSON text, so they behave like the persistent
    backends: callers never share mutable state with the cache and
    non-serialisable snapshots are rejected.
    """

    def __init__(self) -> None:
        # trace_id -> serialised snapshot
        self._traces: dict[str, str] = {}

    async def get_trace(self, trace_id: str) -> dict[str, Any] | None:
        raw = self._traces.get(trace_id)
        if raw is None:
            return None
        return json.loads(raw)

    async def store_trace(self, trace_id: str, data: dict[str, Any]) -> None:
        try:
            raw = json.dumps(data)
        except (TypeError, ValueError) as exc:
            raise CacheWriteError(f"Failed to cache trace {trace_id}: {exc}") from exc
        self._traces[trace_id] = raw

    async def delete_trace(self, trace_id: str) -> bool:
        return self._traces.pop(trace_id, None) is not None

    def __len__(self) -> int:
        return len(self._traces)

    async def flush(self) -> None:
        """No-op for in-memory cache."""

    async def close(self) -> None:
        """No-op for in-memory cache."""
