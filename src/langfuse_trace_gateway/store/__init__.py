from langfuse_trace_gateway.store.base import TraceCache
from langfuse_trace_gateway.store.file_store import FileTraceCache
from langfuse_trace_gateway.store.memory_store import MemoryTraceCache
from langfuse_trace_gateway.store.sqlite_store import SqliteTraceCache

__all__ = ["TraceCache", "FileTraceCache", "MemoryTraceCache", "SqliteTraceCache"]
