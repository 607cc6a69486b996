"""Tests for the fire-and-forget analytics emitter and trace properties."""

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from repostalker.configs.system import TelemetryConfig
from repostalker.core.service.models import ConversationTrace, LoopResult, TokenUsage
from repostalker.infra.analytics import AI_GENERATION_EVENT, AnalyticsEmitter


def _config(**overrides) -> TelemetryConfig:
    values = {"api_key": "phc_test", "host": "https://ph.example"}
    values.update(overrides)
    return TelemetryConfig(**values)


class TestAnalyticsEmitter:
    @pytest.mark.asyncio
    async def test_posts_capture_payload(self):
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200, json={"status": 1})

        emitter = AnalyticsEmitter(_config(), transport=httpx.MockTransport(handler))
        emitter.capture("user-1", {"$ai_model": "m"})
        assert emitter.pending == 1
        await emitter.aclose()

        assert len(received) == 1
        assert str(received[0].url) == "https://ph.example/capture/"
        body = json.loads(received[0].content)
        assert body["api_key"] == "phc_test"
        assert body["event"] == AI_GENERATION_EVENT
        assert body["properties"] == {"$ai_model": "m", "distinct_id": "user-1"}
        assert "timestamp" in body
        assert emitter.pending == 0

    @pytest.mark.asyncio
    async def test_without_api_key_is_noop(self):
        emitter = AnalyticsEmitter(TelemetryConfig(api_key=""))
        assert not emitter.enabled
        emitter.capture("user-1", {"a": 1})
        assert emitter.pending == 0
        await emitter.aclose()

    @pytest.mark.asyncio
    async def test_send_without_client_is_noop(self):
        emitter = AnalyticsEmitter(TelemetryConfig(api_key=""))
        await emitter._send({"event": AI_GENERATION_EVENT})
        assert emitter.pending == 0

    @pytest.mark.asyncio
    async def test_disabled_flag_is_noop(self):
        emitter = AnalyticsEmitter(_config(enabled=False))
        emitter.capture("user-1", {"a": 1})
        assert emitter.pending == 0

    @pytest.mark.asyncio
    async def test_transport_failure_is_swallowed(self, caplog):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        emitter = AnalyticsEmitter(_config(), transport=httpx.MockTransport(handler))
        emitter.capture("user-1", {})
        await emitter.aclose()
        assert "Analytics capture failed" in caplog.text

    @pytest.mark.asyncio
    async def test_server_error_is_swallowed(self):
        emitter = AnalyticsEmitter(
            _config(),
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        emitter.capture("user-1", {})
        await emitter.aclose()
        assert emitter.pending == 0

    @pytest.mark.asyncio
    async def test_capture_does_not_wait_for_delivery(self):
        release = asyncio.Event()

        async def slow(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(200)

        emitter = AnalyticsEmitter(
            _config(shutdown_grace=timedelta(seconds=1)),
            transport=httpx.MockTransport(slow),
        )
        emitter.capture("user-1", {})
        await asyncio.sleep(0)
        assert emitter.pending == 1
        release.set()
        await emitter.aclose()
        assert emitter.pending == 0


class TestConversationTrace:
    def test_success_properties(self):
        trace = ConversationTrace(
            trace_id="trace_1",
            generation_id="gen_1",
            model="google/gemini-2.5-flash",
            input="hello",
            span_name="repo_issue_summary_acme_widgets",
            session_id="s-1",
            extra={"chat_type": "repo"},
        )
        trace.succeed(
            LoopResult(
                answer="hi there",
                iterations=2,
                usage=TokenUsage(input_tokens=3, output_tokens=4, total_tokens=7),
            ),
            latency_ms=1500,
        )
        props = trace.to_properties()

        assert props["$ai_trace_id"] == "trace_1"
        assert props["$ai_output"] == "hi there"
        assert props["$ai_latency"] == 1.5
        assert props["$ai_total_tokens"] == 7
        assert props["$ai_is_error"] is False
        assert props["$ai_span_name"] == "repo_issue_summary_acme_widgets"
        assert props["$ai_session_id"] == "s-1"
        assert props["iterations"] == 2
        assert props["chat_type"] == "repo"
        assert "$ai_error" not in props

    def test_failure_properties(self):
        trace = ConversationTrace(trace_id="t", generation_id="g", model="m")
        trace.fail(RuntimeError("AI API error: 500"), latency_ms=20)
        props = trace.to_properties()

        assert props["success"] is False
        assert props["$ai_is_error"] is True
        assert props["$ai_error"] == "AI API error: 500"
        assert "$ai_output" not in props

    @pytest.mark.asyncio
    async def test_emit_sends_trace_properties(self):
        received: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(request)
            return httpx.Response(200)

        emitter = AnalyticsEmitter(_config(), transport=httpx.MockTransport(handler))
        trace = ConversationTrace(
            trace_id="trace_9", generation_id="gen_9", model="m", distinct_id="u-9"
        )
        trace.fail(RuntimeError("boom"), latency_ms=5)
        emitter.emit(trace)
        await emitter.aclose()

        body = json.loads(received[0].content)
        assert body["properties"]["distinct_id"] == "u-9"
        assert body["properties"]["$ai_trace_id"] == "trace_9"
        assert body["properties"]["$ai_is_error"] is True
