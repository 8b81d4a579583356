"""Tests for user activity analysis."""

import pytest
from langfuse_trace_gateway.analysis import (
    analyze_traces,
    analyze_user_activity,
    average,
    group_by_session,
    most_common,
)


class TestHelpers:
    def test_most_common(self):
        items = ["a", "b", "a", "c", "b", "a", "d", "e", "f"]
        result = most_common(items)
        assert result[0] == {"item": "a", "count": 3}
        assert result[1] == {"item": "b", "count": 2}
        assert len(result) == 5

    def test_average(self):
        assert average([]) == 0
        assert average([1.0, 2.0, 3.0]) == 2.0

    def test_group_by_session(self):
        traces = [
            {"sessionId": "s1", "timestamp": "2024-01-03"},
            {"sessionId": "s1", "timestamp": "2024-01-01"},
            {"sessionId": None, "timestamp": "2024-01-02"},
            {"sessionId": "s2", "timestamp": "2024-01-02"},
        ]
        groups = group_by_session(traces)
        assert groups[0] == {
            "session_id": "s1",
            "trace_count": 2,
            "first_trace": "2024-01-01",
            "last_trace": "2024-01-03",
        }
        assert groups[1]["session_id"] == "s2"

    def test_group_by_session_caps_at_three(self):
        traces = [{"sessionId": f"s{i}", "timestamp": "t"} for i in range(5)]
        assert len(group_by_session(traces)) == 3


class TestAnalyzeTraces:
    def test_report(self):
        traces = [
            {"id": "t2", "name": "chat", "timestamp": "2", "sessionId": "a", "tags": ["x"], "latency": 4, "totalCost": 1.0},
            {"id": "t1", "name": "chat", "timestamp": "1", "sessionId": "a", "tags": ["x", "y"], "latency": None, "totalCost": 3.0},
        ]
        report = analyze_traces("u", traces)
        assert report["user_profile"]["total_traces_analyzed"] == 2
        assert report["activity_summary"]["first_trace_time"] == "1"
        assert report["activity_summary"]["last_trace_time"] == "2"
        assert report["activity_summary"]["unique_trace_names"] == ["chat"]
        assert report["activity_summary"]["total_sessions"] == 1
        assert report["patterns"]["tag_usage"][0] == {"item": "x", "count": 2}
        assert report["performance"] == {"average_latency": 4, "total_cost": 4.0, "average_cost": 2.0}
        assert [t["id"] for t in report["recent_traces"]] == ["t2", "t1"]


class TestAnalyzeUserActivity:
    @pytest.mark.asyncio
    async def test_against_mock_langfuse(self, langfuse_client, mock_langfuse):
        report = await analyze_user_activity(langfuse_client, "user-1")
        assert report["user_profile"]["total_traces_analyzed"] == 3
        assert report["activity_summary"]["unique_sessions"] == ["s-b", "s-a"]
        assert report["patterns"]["most_common_trace_names"][0] == {"item": "chat", "count": 2}

        path, params = mock_langfuse.request_log[-1]
        assert path == "/api/public/traces"
        assert params["userId"] == "user-1"
        assert params["limit"] == "20"

    @pytest.mark.asyncio
    async def test_no_traces(self, langfuse_client):
        report = await analyze_user_activity(langfuse_client, "ghost")
        assert report["message"] == "No traces found for user ID: ghost"

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, langfuse_client, mock_langfuse):
        await analyze_user_activity(langfuse_client, "user-1", limit=500)
        assert mock_langfuse.request_log[-1][1]["limit"] == "50"
