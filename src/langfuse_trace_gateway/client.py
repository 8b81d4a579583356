"""Tool-side client for interacting with the trace gateway."""

from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter

from langfuse_trace_gateway.models import CompiledPrompt, PromptList, TraceResult

_TRACE_RESULT = TypeAdapter(TraceResult)


def _trace_params(index: int | None, name: str | None, refresh: bool) -> dict[str, Any]:
    params: dict[str, Any] = {}
    if index is not None:
        params["index"] = index
    if name:
        params["name"] = name
    if refresh:
        params["refresh"] = "true"
    return params


def _parse_trace_result(resp: httpx.Response) -> TraceResult:
    # Error results come back with a non-2xx status but a structured body
    if resp.is_error:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if not (isinstance(body, dict) and body.get("kind") == "error"):
            resp.raise_for_status()
        return _TRACE_RESULT.validate_python(body)
    return _TRACE_RESULT.validate_python(resp.json())


class GatewayClient:
    """Synchronous client for the langfuse-trace-gateway REST API."""

    def __init__(
        self,
        gateway_url: str,
        timeout: float = 30.0,
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self._http = httpx.Client(timeout=timeout)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # -- Traces ------------------------------------------------------------

    def get_trace(
        self,
        trace_id: str,
        index: int | None = None,
        name: str | None = None,
        refresh: bool = False,
    ) -> TraceResult:
        resp = self._http.get(
            f"{self.gateway_url}/traces/{quote(trace_id, safe='')}",
            params=_trace_params(index, name, refresh),
        )
        return _parse_trace_result(resp)

    def get_trace_details(self, trace_id: str) -> dict[str, Any]:
        resp = self._http.get(f"{self.gateway_url}/traces/{quote(trace_id, safe='')}/details")
        resp.raise_for_status()
        return resp.json()

    def analyze_user_activity(
        self,
        user_id: str,
        limit: int | None = None,
        from_timestamp: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if from_timestamp is not None:
            params["from_timestamp"] = from_timestamp
        resp = self._http.get(f"{self.gateway_url}/users/{quote(user_id, safe='')}/activity", params=params)
        resp.raise_for_status()
        return resp.json()

    # -- Prompts -----------------------------------------------------------

    def list_prompts(self, cursor: str | None = None) -> PromptList:
        params = {"cursor": cursor} if cursor is not None else None
        resp = self._http.get(f"{self.gateway_url}/prompts", params=params)
        resp.raise_for_status()
        return PromptList(**resp.json())

    def get_prompt(self, name: str, arguments: dict[str, str] | None = None) -> CompiledPrompt:
        resp = self._http.post(f"{self.gateway_url}/prompts/{quote(name, safe='')}", json={"arguments": arguments})
        resp.raise_for_status()
        return CompiledPrompt(**resp.json())

    # -- Lifecycle ---------------------------------------------------------

    def flush(self, timeout: float = 30.0) -> bool:
        resp = self._http.post(f"{self.gateway_url}/admin/flush", timeout=timeout)
        resp.raise_for_status()
        return resp.json().get("status") == "flushed"

    def health(self) -> dict[str, Any]:
        resp = self._http.get(f"{self.gateway_url}/health")
        resp.raise_for_status()
        return resp.json()


class AsyncGatewayClient:
    """Async variant of :class:`GatewayClient` using ``httpx.AsyncClient``."""

    def __init__(
        self,
        gateway_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    # -- Traces ------------------------------------------------------------

    async def get_trace(
        self,
        trace_id: str,
        index: int | None = None,
        name: str | None = None,
        refresh: bool = False,
    ) -> TraceResult:
        resp = await self._http.get(
            f"{self.gateway_url}/traces/{quote(trace_id, safe='')}",
            params=_trace_params(index, name, refresh),
        )
        return _parse_trace_result(resp)

    async def get_trace_details(self, trace_id: str) -> dict[str, Any]:
        resp = await self._http.get(f"{self.gateway_url}/traces/{quote(trace_id, safe='')}/details")
        resp.raise_for_status()
        return resp.json()

    async def analyze_user_activity(
        self,
        user_id: str,
        limit: int | None = None,
        from_timestamp: str | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if limit is not None:
            params["limit"] = limit
        if from_timestamp is not None:
            params["from_timestamp"] = from_timestamp
        resp = await self._http.get(f"{self.gateway_url}/users/{quote(user_id, safe='')}/activity", params=params)
        resp.raise_for_status()
        return resp.json()

    # -- Prompts -----------------------------------------------------------

    async def list_prompts(self, cursor: str | None = None) -> PromptList:
        params = {"cursor": cursor} if cursor is not None else None
        resp = await self._http.get(f"{self.gateway_url}/prompts", params=params)
        resp.raise_for_status()
        return PromptList(**resp.json())

    async def get_prompt(self, name: str, arguments: dict[str, str] | None = None) -> CompiledPrompt:
        resp = await self._http.post(f"{self.gateway_url}/prompts/{quote(name, safe='')}", json={"arguments": arguments})
        resp.raise_for_status()
        return CompiledPrompt(**resp.json())

    # -- Lifecycle ---------------------------------------------------------

    async def flush(self, timeout: float = 30.0) -> bool:
        resp = await self._http.post(f"{self.gateway_url}/admin/flush", timeout=timeout)
        resp.raise_for_status()
        return resp.json().get("status") == "flushed"

    async def health(self) -> dict[str, Any]:
        resp = await self._http.get(f"{self.gateway_url}/health")
        resp.raise_for_status()
        return resp.json()
