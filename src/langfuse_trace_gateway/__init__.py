"""langfuse-trace-gateway: cached, size-bounded access to Langfuse traces for tool-calling agents."""

from langfuse_trace_gateway._version import __version__
from langfuse_trace_gateway.backend import LangfuseClient
from langfuse_trace_gateway.client import AsyncGatewayClient, GatewayClient
from langfuse_trace_gateway.fetcher import FetchedTrace, TraceFetcher
from langfuse_trace_gateway.models import (
    AmbiguousMatches,
    ErrorResult,
    FullPayload,
    GatewayConfig,
    IndexOutOfRange,
    NoMatches,
    Selector,
    SingleObservation,
    StructuralSummary,
)
from langfuse_trace_gateway.server import create_app
from langfuse_trace_gateway.service import TraceService

__all__ = [
    "__version__",
    "create_app",
    "GatewayClient",
    "AsyncGatewayClient",
    "LangfuseClient",
    "GatewayConfig",
    "TraceFetcher",
    "FetchedTrace",
    "TraceService",
    "Selector",
    "FullPayload",
    "StructuralSummary",
    "SingleObservation",
    "AmbiguousMatches",
    "NoMatches",
    "IndexOutOfRange",
    "ErrorResult",
]
