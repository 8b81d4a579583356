"""Shared fixtures for langfuse-trace-gateway tests."""

import base64
import threading
import time
from typing import Any

import pytest
import pytest_asyncio
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from langfuse_trace_gateway.backend import LangfuseClient
from langfuse_trace_gateway.errors import CacheWriteError, RemoteFetchError
from langfuse_trace_gateway.store.memory_store import MemoryTraceCache

PUBLIC_KEY = "pk-lf-test"
SECRET_KEY = "sk-lf-test"

# ------------------------------------------------------------------
# Sample data
# ------------------------------------------------------------------


def make_observation(name: str, i: int, **extra: Any) -> dict[str, Any]:
    obs = {
        "id": f"obs-{i}",
        "traceId": "t1",
        "type": "SPAN",
        "name": name,
        "startTime": f"2024-01-01T00:00:0{i % 10}Z",
        "endTime": f"2024-01-01T00:00:0{i % 10}Z",
        "level": "DEFAULT",
        "model": None,
        "usage": None,
        "input": {"step": i, "name": name},
        "output": {"result": f"{name}-{i}"},
    }
    obs.update(extra)
    return obs


def make_trace(trace_id: str = "t1", names: list[str] | None = None, **extra: Any) -> dict[str, Any]:
    if names is None:
        names = ["parse", "exec", "parse"]
    trace = {
        "id": trace_id,
        "name": "agent-run",
        "timestamp": "2024-01-01T00:00:00Z",
        "userId": "user-1",
        "sessionId": "session-1",
        "tags": ["prod"],
        "input": {"question": "hi"},
        "output": {"answer": "hello"},
        "metadata": {},
        "latency": 1.5,
        "totalCost": 0.002,
        "observations": [make_observation(n, i) for i, n in enumerate(names)],
    }
    trace.update(extra)
    return trace


_LIST_TRACES = [
    {
        "id": "t3",
        "name": "chat",
        "timestamp": "2024-01-03T00:00:00Z",
        "userId": "user-1",
        "sessionId": "s-b",
        "tags": ["prod", "beta"],
        "latency": 3.0,
        "totalCost": 0.3,
    },
    {
        "id": "t2",
        "name": "search",
        "timestamp": "2024-01-02T00:00:00Z",
        "userId": "user-1",
        "sessionId": "s-a",
        "tags": ["prod"],
        "latency": 2.0,
        "totalCost": 0.2,
    },
    {
        "id": "t1",
        "name": "chat",
        "timestamp": "2024-01-01T00:00:00Z",
        "userId": "user-1",
        "sessionId": "s-a",
        "tags": [],
        "latency": 1.0,
        "totalCost": None,
    },
]

_PROMPTS = {
    "greeting": {
        "name": "greeting",
        "version": 1,
        "type": "text",
        "prompt": "Hello {{name}}, welcome to {{ place }}. Bye {{name}}!",
        "labels": ["production"],
    },
    "support-chat": {
        "name": "support-chat",
        "version": 3,
        "type": "chat",
        "prompt": [
            {"role": "system", "content": "You help with {{product}}."},
            {"role": "ai", "content": "How can I help?"},
            {"role": "user", "content": "{{question}}"},
        ],
        "labels": ["production"],
    },
}


# ------------------------------------------------------------------
# Mock Langfuse API server
# ------------------------------------------------------------------


def _build_mock_langfuse_app(traces: dict[str, dict[str, Any]]) -> FastAPI:
    """Create a minimal mock of the Langfuse public API."""
    app = FastAPI()
    app.state.request_log = []
    expected = "Basic " + base64.b64encode(f"{PUBLIC_KEY}:{SECRET_KEY}".encode()).decode()

    @app.middleware("http")
    async def check_auth(request: Request, call_next):
        app.state.request_log.append((request.url.path, dict(request.query_params)))
        if request.headers.get("authorization") != expected:
            return JSONResponse(status_code=401, content={"message": "Invalid credentials"})
        return await call_next(request)

    @app.get("/api/public/traces")
    async def list_traces(request: Request):
        user_id = request.query_params.get("userId")
        data = [t for t in _LIST_TRACES if user_id is None or t["userId"] == user_id]
        return {"data": data, "meta": {"page": 1, "limit": 50, "totalItems": len(data), "totalPages": 1}}

    @app.get("/api/public/traces/{trace_id}")
    async def get_trace(trace_id: str):
        if trace_id not in traces:
            return JSONResponse(status_code=404, content={"message": f"Trace {trace_id} not found"})
        return traces[trace_id]

    @app.get("/api/public/v2/prompts")
    async def list_prompts(request: Request):
        page = int(request.query_params.get("page", "1"))
        data = [{"name": name, "labels": p["labels"]} for name, p in _PROMPTS.items()]
        return {"data": data, "meta": {"page": page, "limit": 100, "totalItems": len(data), "totalPages": 2}}

    @app.get("/api/public/v2/prompts/{name}")
    async def get_prompt(name: str):
        if name not in _PROMPTS:
            return JSONResponse(status_code=404, content={"message": "Prompt not found"})
        return _PROMPTS[name]

    return app


class MockLangfuseServer:
    """Run a mock Langfuse API in a background thread."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0) -> None:
        self.host = host
        self.port = port
        self.traces: dict[str, dict[str, Any]] = {}
        self.app = _build_mock_langfuse_app(self.traces)
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def request_log(self) -> list[tuple[str, dict[str, str]]]:
        return self.app.state.request_log

    def trace_requests(self, trace_id: str) -> int:
        return sum(1 for path, _ in self.request_log if path == f"/api/public/traces/{trace_id}")

    def start(self) -> None:
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level="error",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(target=self._server.run, daemon=True)
        self._thread.start()
        # Wait for server to be ready
        deadline = time.time() + 5.0
        while time.time() < deadline:
            if self._server.started:
                # Grab the actual port if 0 was passed
                for sock in self._server.servers:
                    self.port = sock.sockets[0].getsockname()[1]
                return
            time.sleep(0.05)
        raise RuntimeError("Mock Langfuse server failed to start")

    def stop(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5.0)


# ------------------------------------------------------------------
# In-process fakes
# ------------------------------------------------------------------


class FakeBackend:
    """Counts ``get_trace`` calls and serves canned traces."""

    def __init__(self, traces: dict[str, Any] | None = None) -> None:
        self.traces: dict[str, Any] = dict(traces or {})
        self.calls: list[str] = []
        self.fail_with: RemoteFetchError | None = None

    async def get_trace(self, trace_id: str) -> Any:
        self.calls.append(trace_id)
        if self.fail_with is not None:
            raise self.fail_with
        if trace_id not in self.traces:
            raise RemoteFetchError(f"Trace {trace_id} not found", status_code=404)
        return self.traces[trace_id]


class FailingCache(MemoryTraceCache):
    """A cache whose writes always fail."""

    def __init__(self) -> None:
        super().__init__()
        self.write_attempts = 0

    async def store_trace(self, trace_id: str, data: dict[str, Any]) -> None:
        self.write_attempts += 1
        raise CacheWriteError("disk full")


class BrokenReadCache(MemoryTraceCache):
    """A cache whose reads raise."""

    async def get_trace(self, trace_id: str) -> dict[str, Any] | None:
        raise OSError("permission denied")


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def memory_cache():
    return MemoryTraceCache()


@pytest.fixture
def sample_trace() -> dict[str, Any]:
    return make_trace()


@pytest.fixture
def fake_backend(sample_trace) -> FakeBackend:
    return FakeBackend({"t1": sample_trace})


@pytest.fixture
def mock_langfuse():
    """Start a mock Langfuse server and yield it."""
    server = MockLangfuseServer(port=0)
    server.traces["t1"] = make_trace()
    server.traces["broken"] = {"id": "broken", "name": "no observations"}
    server.start()
    yield server
    server.stop()


@pytest_asyncio.fixture
async def langfuse_client(mock_langfuse: MockLangfuseServer):
    client = LangfuseClient(PUBLIC_KEY, SECRET_KEY, host=mock_langfuse.url)
    yield client
    await client.close()


@pytest.fixture
def trace_factory():
    return make_trace


@pytest.fixture
def failing_cache() -> FailingCache:
    return FailingCache()


@pytest.fixture
def broken_read_cache() -> BrokenReadCache:
    return BrokenReadCache()


@pytest.fixture
def langfuse_credentials() -> tuple[str, str]:
    return PUBLIC_KEY, SECRET_KEY
