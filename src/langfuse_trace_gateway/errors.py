"""Exceptions raised by the gateway core."""


class GatewayError(Exception):
    """Base class for gateway errors."""


class RemoteFetchError(GatewayError):
    """The Langfuse API was unreachable or answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedTraceError(GatewayError):
    """A trace payload has no usable ``observations`` list."""

    def __init__(self, trace_id: str) -> None:
        super().__init__(f"Invalid trace data structure for trace {trace_id}. Cannot process filters.")
        self.trace_id = trace_id


class CacheWriteError(GatewayError):
    """A cache backend could not persist an entry."""
