"""httpx-based client for the Langfuse public REST API.

Only the calls the gateway makes decisions on are wrapped here: full trace
retrieval, trace listing (for activity analysis), and prompt retrieval.
"""

import logging
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from langfuse_trace_gateway.errors import RemoteFetchError

logger = logging.getLogger(__name__)

DEFAULT_LANGFUSE_HOST = "https://cloud.langfuse.com"


class TraceBackend(Protocol):
    """The single remote operation the trace fetcher consumes."""

    async def get_trace(self, trace_id: str) -> dict[str, Any]: ...


class LangfuseClient:
    """Async Langfuse API client authenticated with a public/secret key pair.

    The underlying ``httpx.AsyncClient`` is created lazily so the client can
    be constructed outside a running event loop.  Every non-2xx response or
    transport failure is raised as :class:`RemoteFetchError`; nothing is
    retried.
    """

    def __init__(
        self,
        public_key: str | None,
        secret_key: str | None,
        host: str = DEFAULT_LANGFUSE_HOST,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self._auth = httpx.BasicAuth(public_key or "", secret_key or "")
        self._timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def start(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self.host,
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # -- Traces ------------------------------------------------------------

    async def get_trace(self, trace_id: str) -> dict[str, Any]:
        """Fetch a trace with all of its observations."""
        return await self._get(f"/api/public/traces/{quote(trace_id, safe='')}")

    async def list_traces(
        self,
        page: int = 1,
        limit: int = 10,
        user_id: str | None = None,
        name: str | None = None,
        session_id: str | None = None,
        from_timestamp: str | None = None,
        to_timestamp: str | None = None,
        order_by: str | None = None,
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "page": page,
            "limit": limit,
            "userId": user_id,
            "name": name,
            "sessionId": session_id,
            "fromTimestamp": from_timestamp,
            "toTimestamp": to_timestamp,
            "orderBy": order_by,
            "tags": tags or None,
        }
        params = {k: v for k, v in params.items() if v is not None}
        return await self._get("/api/public/traces", params=params)

    # -- Prompts -----------------------------------------------------------

    async def list_prompts(self, page: int = 1, limit: int = 100, label: str | None = "production") -> dict[str, Any]:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if label:
            params["label"] = label
        return await self._get("/api/public/v2/prompts", params=params)

    async def get_prompt(self, name: str, label: str | None = "production") -> dict[str, Any]:
        params = {"label": label} if label else None
        return await self._get(f"/api/public/v2/prompts/{quote(name, safe='')}", params=params)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        await self.start()
        assert self._http is not None
        try:
            resp = await self._http.get(path, params=params)
        except httpx.HTTPError as exc:
            raise RemoteFetchError(f"Langfuse request {path} failed: {exc}") from exc

        if resp.is_error:
            raise RemoteFetchError(
                f"Langfuse returned HTTP {resp.status_code} for {path}: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteFetchError(f"Langfuse returned a non-JSON body for {path}") from exc
