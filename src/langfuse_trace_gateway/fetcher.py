"""Cache-first trace retrieval.

A request resolves in one of three ways:

- ``cache``: the snapshot was found locally; no remote call is made.
- ``remote``: cache miss (or forced refresh); exactly one Langfuse call, then
  a best-effort cache write.
- failure: :class:`RemoteFetchError` or :class:`MalformedTraceError`.

Cached snapshots are trusted unconditionally (no TTL, no freshness check).
Concurrent misses for the same trace are not de-duplicated; the last cache
write wins.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Literal

from langfuse_trace_gateway.backend import TraceBackend
from langfuse_trace_gateway.errors import MalformedTraceError
from langfuse_trace_gateway.store.base import TraceCache

logger = logging.getLogger(__name__)

TraceSource = Literal["cache", "remote"]


@dataclass(frozen=True)
class FetchedTrace:
    trace_id: str
    data: dict[str, Any]
    source: TraceSource

    @property
    def observations(self) -> list[dict[str, Any]]:
        return self.data["observations"]


def validate_trace(trace_id: str, data: Any) -> dict[str, Any]:
    """Return *data* if it carries an ``observations`` list of objects, else raise."""
    observations = data.get("observations") if isinstance(data, dict) else None
    if not isinstance(observations, list) or not all(isinstance(obs, dict) for obs in observations):
        logger.error("Trace data or observations missing/invalid for trace %s", trace_id)
        raise MalformedTraceError(trace_id)
    return data


class TraceFetcher:
    """Resolve traces from a :class:`TraceCache`, falling back to Langfuse.

    With ``sync_writes=False`` cache writes run as background tasks so the
    caller gets the trace without waiting on disk; :meth:`drain` awaits them.
    Until a background write lands, later requests for the same trace are
    served from the in-flight snapshot.
    """

    def __init__(
        self,
        backend: TraceBackend,
        cache: TraceCache,
        *,
        sync_writes: bool = False,
    ) -> None:
        self.backend = backend
        self.cache = cache
        self.sync_writes = sync_writes
        self._pending_writes: set[asyncio.Task[None]] = set()
        self._in_flight: dict[str, tuple[asyncio.Task[None], dict[str, Any]]] = {}

    async def fetch(self, trace_id: str, refresh: bool = False) -> FetchedTrace:
        if not refresh:
            pending = self._in_flight.get(trace_id)
            if pending is not None:
                logger.info("Cache hit for trace %s (write in flight)", trace_id)
                return FetchedTrace(trace_id, pending[1], "cache")
            cached = await self._read_cache(trace_id)
            if cached is not None:
                logger.info("Cache hit for trace %s", trace_id)
                return FetchedTrace(trace_id, validate_trace(trace_id, cached), "cache")
            logger.info("Cache miss for trace %s. Fetching from API.", trace_id)
        else:
            logger.info("Refreshing trace %s from API", trace_id)

        # RemoteFetchError propagates untouched; nothing is cached on failure
        data = validate_trace(trace_id, await self.backend.get_trace(trace_id))
        await self._persist(trace_id, data)
        return FetchedTrace(trace_id, data, "remote")

    @property
    def pending_writes(self) -> int:
        return len(self._pending_writes)

    async def drain(self) -> None:
        """Wait for all in-flight cache writes."""
        if self._pending_writes:
            logger.info("Draining %d pending cache writes...", len(self._pending_writes))
            await asyncio.gather(*self._pending_writes, return_exceptions=True)
            self._pending_writes.clear()
            self._in_flight = {tid: p for tid, p in self._in_flight.items() if not p[0].done()}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _read_cache(self, trace_id: str) -> dict[str, Any] | None:
        try:
            return await self.cache.get_trace(trace_id)
        except Exception:
            logger.warning("Unreadable cache entry for trace %s; treating as a miss", trace_id, exc_info=True)
            return None

    async def _persist(self, trace_id: str, data: dict[str, Any]) -> None:
        if self.sync_writes:
            await self._safe_store(trace_id, data)
            return
        task = asyncio.create_task(self._safe_store(trace_id, data))
        self._pending_writes.add(task)
        self._in_flight[trace_id] = (task, data)
        task.add_done_callback(functools.partial(self._write_done, trace_id))

    def _write_done(self, trace_id: str, task: asyncio.Task[None]) -> None:
        self._pending_writes.discard(task)
        # A newer write for the same trace may have replaced this one
        pending = self._in_flight.get(trace_id)
        if pending is not None and pending[0] is task:
            del self._in_flight[trace_id]

    async def _safe_store(self, trace_id: str, data: dict[str, Any]) -> None:
        try:
            await self.cache.store_trace(trace_id, data)
        except Exception:
            logger.exception("Error writing cache for trace %s", trace_id)
        else:
            logger.debug("Cached trace %s successfully.", trace_id)
