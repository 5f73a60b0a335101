"""Tests for operation spans."""

import asyncio

import pytest

from core import tracing
from core.tracing import Tracer, current_ids, trace_operation, trace_operation_async


@pytest.fixture
def tracer(monkeypatch):
    tracer = Tracer("test", slow_after=60.0)
    monkeypatch.setattr(tracing, "_tracer", tracer)
    return tracer


@pytest.mark.unit
class TestTraceOperation:
    def test_noop_without_tracer(self, monkeypatch):
        monkeypatch.setattr(tracing, "_tracer", None)

        with trace_operation("render") as span:
            assert span is None
            assert current_ids() == ("", "")

    def test_ids_bound_inside_span(self, tracer):
        with trace_operation("render", component="root") as span:
            assert current_ids() == (span.trace_id, span.span_id)
            assert span.tags == {"component": "root"}

        assert current_ids() == ("", "")
        assert span.status == "ok"
        assert span.duration >= 0

    def test_nested_spans_share_trace(self, tracer):
        with trace_operation("generate") as outer:
            with trace_operation("render") as inner:
                pass

        assert inner.trace_id == outer.trace_id
        assert inner.parent_id == outer.span_id

    def test_failure_recorded_and_raised(self, tracer):
        with pytest.raises(RuntimeError):
            with trace_operation("autosave_write") as span:
                raise RuntimeError("disk full")

        assert span.status == "error"
        assert span.error == "RuntimeError: disk full"
        assert tracer.recent_notable()[0]["operation"] == "autosave_write"

    def test_slow_span_kept(self, tracer):
        tracer.slow_after = -1.0

        with trace_operation("render"):
            pass

        notable = tracer.recent_notable()
        assert len(notable) == 1
        assert notable[0]["status"] == "ok"

    def test_fast_span_not_kept(self, tracer):
        with trace_operation("render"):
            pass

        assert tracer.recent_notable() == []


@pytest.mark.unit
class TestTraceOperationAsync:
    async def test_cancellation_propagates(self, tracer):
        captured = {}

        async def work():
            async with trace_operation_async("render") as span:
                captured["span"] = span
                await asyncio.sleep(10)

        task = asyncio.create_task(work())
        await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert captured["span"].status == "cancelled"
        assert tracer.recent_notable() == []
