"""Size check for unfiltered trace responses.

A trace whose canonical JSON text fits in :data:`SIZE_THRESHOLD_BYTES` is
returned verbatim.  Anything larger is replaced by a structural summary that
lists every observation's index and name, so the caller can drill in with a
selector instead.
"""

import json
from typing import Any

from langfuse_trace_gateway.models import FullPayload, ObservationRef, StructuralSummary

SIZE_THRESHOLD_BYTES = 40 * 1024


def serialize_trace(trace: dict[str, Any]) -> str:
    """Compact JSON, non-ASCII kept as-is."""
    return json.dumps(trace, separators=(",", ":"), ensure_ascii=False)


def summarize(observations: list[dict[str, Any]]) -> list[ObservationRef]:
    return [ObservationRef(index=i, name=obs.get("name")) for i, obs in enumerate(observations)]


def decide(trace: dict[str, Any]) -> FullPayload | StructuralSummary:
    text = serialize_trace(trace)
    size = len(text.encode("utf-8"))
    if size <= SIZE_THRESHOLD_BYTES:
        return FullPayload(trace=text, size_bytes=size)
    return StructuralSummary(
        size_bytes=size,
        threshold_bytes=SIZE_THRESHOLD_BYTES,
        observations=summarize(trace.get("observations") or []),
    )
