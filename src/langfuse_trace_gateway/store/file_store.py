"""Directory-backed trace cache: one JSON file per trace.

Layout is ``<cache_dir>/<trace_id>.json``.  Trace IDs that are not safe
filenames are replaced by their SHA-256 hex digest.  Writes go to a temporary
file in the same directory and are moved into place with :func:`os.replace`,
so a reader sees either the old file or the complete new one.
"""

import asyncio
import hashlib
import json
import logging
import os
import re
import tempfile
from typing import Any

from langfuse_trace_gateway.errors import CacheWriteError

logger = logging.getLogger(__name__)

_SAFE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,199}$")


class FileTraceCache:
    """Persistent trace cache storing pretty-printed JSON files on disk."""

    def __init__(self, cache_dir: str = "cache_data") -> None:
        self.cache_dir = os.path.abspath(os.path.expanduser(cache_dir))

    def path_for(self, trace_id: str) -> str:
        if _SAFE_NAME_RE.match(trace_id):
            filename = trace_id
        else:
            filename = hashlib.sha256(trace_id.encode("utf-8")).hexdigest()
        return os.path.join(self.cache_dir, f"{filename}.json")

    # ------------------------------------------------------------------
    # TraceCache protocol
    # ------------------------------------------------------------------

    async def get_trace(self, trace_id: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read, self.path_for(trace_id))

    async def store_trace(self, trace_id: str, data: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, self.path_for(trace_id), data)

    async def delete_trace(self, trace_id: str) -> bool:
        path = self.path_for(trace_id)
        try:
            await asyncio.to_thread(os.remove, path)
        except FileNotFoundError:
            return False
        return True

    async def flush(self) -> None:
        """No-op (every write is complete once ``store_trace`` returns)."""

    async def close(self) -> None:
        """No-op for file cache."""

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    @staticmethod
    def _read(path: str) -> dict[str, Any] | None:
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None

    def _write(self, path: str, data: dict[str, Any]) -> None:
        tmp_path: str | None = None
        try:
            payload = json.dumps(data, indent=2, ensure_ascii=False)
            os.makedirs(self.cache_dir, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, path)
            tmp_path = None
        except (TypeError, ValueError, OSError) as exc:
            raise CacheWriteError(f"Failed to write cache file {path}: {exc}") from exc
        finally:
            if tmp_path is not None:
                try:
                    os.remove(tmp_path)
                except OSError:
                    logger.warning("Could not remove temporary cache file %s", tmp_path)
