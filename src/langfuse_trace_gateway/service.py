"""Request-level orchestration for trace retrieval.

``get_trace`` ties the pieces together: fetch (cache or Langfuse), then either
resolve a selector with the navigator or hand the whole trace to the payload
guard.  Only remote failures and malformed trace data produce an
:class:`ErrorResult`; every other outcome is a structured result the caller
can act on.
"""

import logging
from typing import Any

from langfuse_trace_gateway import navigator, payload_guard
from langfuse_trace_gateway.errors import MalformedTraceError, RemoteFetchError
from langfuse_trace_gateway.fetcher import TraceFetcher
from langfuse_trace_gateway.models import ErrorResult, Selector, TraceResult

logger = logging.getLogger(__name__)


class TraceService:
    def __init__(self, fetcher: TraceFetcher) -> None:
        self.fetcher = fetcher

    async def get_trace(
        self,
        trace_id: str,
        index: int | None = None,
        name: str | None = None,
        refresh: bool = False,
    ) -> TraceResult:
        """Return the trace, one observation, or guidance for narrowing down.

        When both ``index`` and ``name`` are given, ``index`` is used and
        ``name`` is ignored.
        """
        try:
            fetched = await self.fetcher.fetch(trace_id, refresh=refresh)
        except RemoteFetchError as exc:
            logger.error("Error fetching trace %s: %s", trace_id, exc)
            return ErrorResult(
                reason="remote_fetch_failed",
                trace_id=trace_id,
                error=f"Error fetching trace {trace_id}: {exc}",
                status_code=exc.status_code,
            )
        except MalformedTraceError as exc:
            return ErrorResult(reason="malformed_trace", trace_id=trace_id, error=str(exc))

        selector = Selector.from_params(index=index, name=name)
        if selector is not None:
            return navigator.resolve(fetched.observations, selector)
        return payload_guard.decide(fetched.data)

    async def get_trace_details(self, trace_id: str) -> dict[str, Any]:
        """Summarise a trace's metadata, metrics, and observations without payloads."""
        fetched = await self.fetcher.fetch(trace_id)
        trace = fetched.data
        observations = fetched.observations
        return {
            "trace": {
                "id": trace.get("id"),
                "name": trace.get("name"),
                "timestamp": trace.get("timestamp"),
                "version": trace.get("version"),
                "release": trace.get("release"),
                "public": trace.get("public"),
            },
            "user_context": {
                "user_id": trace.get("userId"),
                "session_id": trace.get("sessionId"),
                "tags": trace.get("tags") or [],
            },
            "content": {
                "input": trace.get("input"),
                "output": trace.get("output"),
                "metadata": trace.get("metadata") or {},
            },
            "metrics": {
                "latency": trace.get("latency"),
                "total_cost": trace.get("totalCost"),
                "observations_count": len(observations),
            },
            "observations": {
                "count": len(observations),
                "summary": [
                    {
                        "index": i,
                        "id": obs.get("id"),
                        "name": obs.get("name"),
                        "type": obs.get("type"),
                        "start_time": obs.get("startTime"),
                        "end_time": obs.get("endTime"),
                        "level": obs.get("level"),
                        "model": obs.get("model"),
                        "usage": obs.get("usage"),
                        "has_input": bool(obs.get("input")),
                        "has_output": bool(obs.get("output")),
                    }
                    for i, obs in enumerate(observations)
                ],
            },
            "source": fetched.source,
        }
