"""FastAPI application factory and CLI entrypoint for langfuse-trace-gateway."""

import argparse
import logging
import os
from contextlib import asynccontextmanager
from typing import Any

import yaml
from fastapi import Body, FastAPI, Query
from fastapi.responses import JSONResponse

from langfuse_trace_gateway._version import __version__
from langfuse_trace_gateway.analysis import MAX_TRACE_LIMIT, analyze_user_activity
from langfuse_trace_gateway.backend import LangfuseClient
from langfuse_trace_gateway.errors import MalformedTraceError, RemoteFetchError
from langfuse_trace_gateway.fetcher import TraceFetcher
from langfuse_trace_gateway.models import ErrorResult, GatewayConfig
from langfuse_trace_gateway.prompts import PromptService
from langfuse_trace_gateway.service import TraceService
from langfuse_trace_gateway.store.base import TraceCache

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Cache factory
# ------------------------------------------------------------------


def create_cache(config: GatewayConfig) -> TraceCache:
    backend = config.cache_backend
    if backend == "file":
        from langfuse_trace_gateway.store.file_store import FileTraceCache

        return FileTraceCache(cache_dir=config.cache_dir)
    elif backend == "sqlite":
        from langfuse_trace_gateway.store.sqlite_store import SqliteTraceCache

        return SqliteTraceCache(db_path=config.db_path)
    elif backend == "memory":
        from langfuse_trace_gateway.store.memory_store import MemoryTraceCache

        return MemoryTraceCache()
    else:
        raise ValueError(f"Unknown cache backend: {backend}")


# ------------------------------------------------------------------
# App factory
# ------------------------------------------------------------------


def create_app(
    config: GatewayConfig | None = None,
    cache: TraceCache | None = None,
    client: LangfuseClient | None = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application."""
    if config is None:
        config = GatewayConfig()

    if cache is None:
        cache = create_cache(config)

    if client is None:
        client = LangfuseClient(
            public_key=config.public_key,
            secret_key=config.secret_key,
            host=config.langfuse_host,
            timeout=config.request_timeout,
        )

    fetcher = TraceFetcher(client, cache, sync_writes=config.sync_cache_writes)
    traces = TraceService(fetcher)
    prompts = PromptService(client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await client.start()
        yield
        await fetcher.drain()
        await client.close()
        await cache.close()

    app = FastAPI(title="langfuse-trace-gateway", version=__version__, lifespan=lifespan)

    # -- Health endpoints --------------------------------------------------

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/health/auth")
    async def health_auth():
        try:
            await prompts.check_auth()
        except RemoteFetchError as exc:
            return JSONResponse(
                status_code=502,
                content={"status": "error", "error": f"Langfuse authentication failed: {exc}"},
            )
        return {"status": "ok", "message": "Langfuse authentication successful"}

    # -- Trace endpoints ---------------------------------------------------

    @app.get("/traces/{trace_id}")
    async def get_trace(
        trace_id: str,
        index: int | None = Query(None, description="0-based observation index; takes priority over name"),
        name: str | None = Query(None, description="Exact observation name to filter by"),
        refresh: bool = Query(False, description="Bypass the cache and refetch from Langfuse"),
    ):
        result = await traces.get_trace(trace_id, index=index, name=name, refresh=refresh)
        if isinstance(result, ErrorResult):
            return JSONResponse(status_code=_error_status(result), content=result.model_dump())
        return result.model_dump()

    @app.get("/traces/{trace_id}/details")
    async def get_trace_details(trace_id: str):
        try:
            return await traces.get_trace_details(trace_id)
        except RemoteFetchError as exc:
            return _remote_error(exc, f"Error fetching trace details for {trace_id}")
        except MalformedTraceError as exc:
            return JSONResponse(status_code=422, content={"error": str(exc)})

    # -- Analysis endpoints ------------------------------------------------

    @app.get("/users/{user_id}/activity")
    async def user_activity(
        user_id: str,
        limit: int | None = Query(None, ge=1, le=MAX_TRACE_LIMIT),
        from_timestamp: str | None = Query(None),
    ):
        try:
            return await analyze_user_activity(client, user_id, limit=limit, from_timestamp=from_timestamp)
        except RemoteFetchError as exc:
            return _remote_error(exc, f"Error analyzing user activity for {user_id}")

    # -- Prompt endpoints --------------------------------------------------

    @app.get("/prompts")
    async def list_prompts(cursor: str | None = Query(None)):
        try:
            result = await prompts.list_prompts(cursor)
        except ValueError as exc:
            return JSONResponse(status_code=400, content={"error": str(exc)})
        except RemoteFetchError as exc:
            return _remote_error(exc, "Failed to fetch prompts")
        return result.model_dump()

    @app.post("/prompts/{name}")
    async def get_prompt(name: str, arguments: dict[str, str] | None = Body(None, embed=True)):
        try:
            result = await prompts.get_prompt(name, arguments)
        except ValueError as exc:
            return JSONResponse(status_code=422, content={"error": str(exc)})
        except RemoteFetchError as exc:
            return _remote_error(exc, f"Failed to get prompt for '{name}'")
        return result.model_dump()

    # -- Admin endpoints ---------------------------------------------------

    @app.post("/admin/flush")
    async def flush():
        await fetcher.drain()
        await cache.flush()
        return {"status": "flushed"}

    # Store references on app for external access
    app.state.config = config  # type: ignore[attr-defined]
    app.state.cache = cache  # type: ignore[attr-defined]
    app.state.client = client  # type: ignore[attr-defined]
    app.state.fetcher = fetcher  # type: ignore[attr-defined]

    return app


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _error_status(result: ErrorResult) -> int:
    if result.reason == "malformed_trace":
        return 422
    if result.status_code == 404:
        return 404
    return 502


def _remote_error(exc: RemoteFetchError, context: str) -> JSONResponse:
    logger.error("%s: %s", context, exc)
    status = 404 if exc.status_code == 404 else 502
    return JSONResponse(status_code=status, content={"error": f"{context}: {exc}"})


# ------------------------------------------------------------------
# Config loading
# ------------------------------------------------------------------


def _load_config(args: argparse.Namespace) -> GatewayConfig:
    """Build a ``GatewayConfig`` from CLI args, env vars, and optional YAML file."""
    data: dict[str, Any] = {}

    # 1. YAML file (lowest priority)
    config_path = getattr(args, "config", None)
    if config_path:
        with open(config_path) as f:
            data.update(yaml.safe_load(f) or {})

    # 2. Env vars
    env_map = {
        "LANGFUSE_PUBLIC_KEY": "public_key",
        "LANGFUSE_SECRET_KEY": "secret_key",
        "LANGFUSE_HOST": "langfuse_host",
        "LANGFUSE_BASEURL": "langfuse_host",
        "LANGFUSE_GATEWAY_HOST": "host",
        "LANGFUSE_GATEWAY_PORT": "port",
        "LANGFUSE_GATEWAY_CACHE": "cache_backend",
        "LANGFUSE_GATEWAY_CACHE_DIR": "cache_dir",
        "LANGFUSE_GATEWAY_DB_PATH": "db_path",
        "LANGFUSE_GATEWAY_LOG_LEVEL": "log_level",
    }
    for env_key, config_key in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            if config_key == "port":
                data[config_key] = int(val)
            else:
                data[config_key] = val

    # 3. CLI args (highest priority)
    cli_map = {
        "host": "host",
        "port": "port",
        "langfuse_host": "langfuse_host",
        "cache": "cache_backend",
        "cache_dir": "cache_dir",
        "db_path": "db_path",
        "log_level": "log_level",
    }
    for arg_name, config_key in cli_map.items():
        val = getattr(args, arg_name, None)
        if val is not None:
            data[config_key] = val
    if getattr(args, "sync_cache_writes", False):
        data["sync_cache_writes"] = True

    return GatewayConfig(**data)


# ------------------------------------------------------------------
# CLI entrypoint
# ------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(description="langfuse-trace-gateway: cached, size-bounded access to Langfuse traces")
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config")
    parser.add_argument("--langfuse-host", type=str, default=None, help="Langfuse API base URL")
    parser.add_argument("--cache", type=str, default=None, choices=["file", "sqlite", "memory"])
    parser.add_argument("--cache-dir", type=str, default=None)
    parser.add_argument("--db-path", type=str, default=None)
    parser.add_argument("--sync-cache-writes", action="store_true", help="Await cache writes before responding")
    parser.add_argument("--log-level", type=str, default=None)

    args = parser.parse_args()
    config = _load_config(args)

    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO))
    logger.info(
        "Initializing Langfuse client: public_key=%s secret_key=%s host=%s",
        "[SET]" if config.public_key else "[NOT SET]",
        "[SET]" if config.secret_key else "[NOT SET]",
        config.langfuse_host,
    )

    app = create_app(config)

    import uvicorn

    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
