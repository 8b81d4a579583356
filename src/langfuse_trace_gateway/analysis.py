"""User activity analysis over a user's recent traces."""

import math
from collections import Counter
from datetime import UTC, datetime
from typing import Any

from langfuse_trace_gateway.backend import LangfuseClient

DEFAULT_TRACE_LIMIT = 20
MAX_TRACE_LIMIT = 50


def most_common(items: list[str], n: int = 5) -> list[dict[str, Any]]:
    # Counter.most_common keeps first-seen order among ties
    return [{"item": item, "count": count} for item, count in Counter(items).most_common(n)]


def average(numbers: list[float]) -> float:
    if not numbers:
        return 0
    return sum(numbers) / len(numbers)


def _finite(values: list[Any]) -> list[float]:
    return [v for v in values if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)]


def group_by_session(traces: list[dict[str, Any]], n: int = 3) -> list[dict[str, Any]]:
    sessions: dict[str, dict[str, Any]] = {}
    for trace in traces:
        sid = trace.get("sessionId")
        if not sid:
            continue
        ts = trace.get("timestamp")
        group = sessions.setdefault(
            sid,
            {"session_id": sid, "trace_count": 0, "first_trace": ts, "last_trace": ts},
        )
        group["trace_count"] += 1
        if ts is not None:
            if group["first_trace"] is None or ts < group["first_trace"]:
                group["first_trace"] = ts
            if group["last_trace"] is None or ts > group["last_trace"]:
                group["last_trace"] = ts
    return list(sessions.values())[:n]


def analyze_traces(user_id: str, traces: list[dict[str, Any]]) -> dict[str, Any]:
    """Build the activity report for *traces* (newest first)."""
    names = [t["name"] for t in traces if t.get("name")]
    session_ids = list(dict.fromkeys(t["sessionId"] for t in traces if t.get("sessionId")))
    costs = _finite([t.get("totalCost") for t in traces])
    return {
        "user_profile": {
            "user_id": user_id,
            "analysis_timestamp": datetime.now(UTC).isoformat(),
            "total_traces_analyzed": len(traces),
        },
        "activity_summary": {
            "first_trace_time": traces[-1].get("timestamp"),
            "last_trace_time": traces[0].get("timestamp"),
            "unique_trace_names": list(dict.fromkeys(names)),
            "unique_sessions": session_ids,
            "total_sessions": len(session_ids),
        },
        "patterns": {
            "most_common_trace_names": most_common(names),
            "tag_usage": most_common([tag for t in traces for tag in (t.get("tags") or [])]),
            "sessions_activity": group_by_session(traces),
        },
        "performance": {
            "average_latency": average(_finite([t.get("latency") for t in traces])),
            "total_cost": sum(costs),
            "average_cost": average(costs),
        },
        "recent_traces": [
            {
                "id": t.get("id"),
                "name": t.get("name"),
                "timestamp": t.get("timestamp"),
                "session_id": t.get("sessionId"),
                "latency": t.get("latency"),
                "cost": t.get("totalCost"),
                "tags": t.get("tags"),
            }
            for t in traces[:5]
        ],
    }


async def analyze_user_activity(
    client: LangfuseClient,
    user_id: str,
    limit: int | None = None,
    from_timestamp: str | None = None,
) -> dict[str, Any]:
    limit = max(1, min(limit or DEFAULT_TRACE_LIMIT, MAX_TRACE_LIMIT))
    res = await client.list_traces(
        limit=limit,
        user_id=user_id,
        from_timestamp=from_timestamp,
        order_by="timestamp.desc",
    )
    traces = res.get("data") or []
    if not traces:
        return {"user_id": user_id, "message": f"No traces found for user ID: {user_id}"}
    return analyze_traces(user_id, traces)
