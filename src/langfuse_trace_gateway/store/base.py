"""TraceCache protocol: the abstract interface for the local trace cache."""

from typing import Any, Protocol


class TraceCache(Protocol):
    """Key-value persistence for full trace snapshots, keyed by trace ID.

    Implementations must be async.  Values are plain dicts exactly as the
    Langfuse API returned them.  ``store_trace`` replaces any prior entry
    wholesale and must never leave a half-written entry behind; on failure it
    raises :class:`~langfuse_trace_gateway.errors.CacheWriteError`.
    """

    async def get_trace(self, trace_id: str) -> dict[str, Any] | None:
        """Get a cached trace.  Returns ``None`` on a miss."""
        ...

    async def store_trace(self, trace_id: str, data: dict[str, Any]) -> None:
        """Store (or replace) the snapshot for *trace_id*."""
        ...

    async def delete_trace(self, trace_id: str) -> bool:
        """Drop the entry for *trace_id*.  Returns whether one existed."""
        ...

    async def flush(self) -> None:
        """Flush any buffered writes to durable storage."""
        ...

    async def close(self) -> None:
        """Release any resources held by the cache."""
        ...
