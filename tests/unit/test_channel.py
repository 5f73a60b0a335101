"""Tests for the sandbox execution channel."""

import asyncio
import time

import pytest

from fakes import FakeContext
from sandbox import (
    ChannelBusyError,
    ChannelState,
    ContextNotReadyError,
    ExecutionChannel,
    ExecutionError,
    ProtocolError,
    SandboxError,
    SandboxMessage,
    SandboxTimeoutError,
)
from sandbox import protocol


def respond_with(make_message):
    def responder(context, message):
        context.deliver(make_message(message))

    return responder


@pytest.mark.unit
async def test_success_resolves_with_result(bus, context, channel):
    result = await channel.execute(context, "<div />")

    assert result["html"] == "<div>ok</div>"
    assert context.posted[0].type == protocol.RENDER_COMPONENT
    assert context.posted[0].payload == {"code": "<div />", "framework": "react"}
    assert channel.state is ChannelState.IDLE
    assert bus.listener_count == 0


@pytest.mark.unit
async def test_response_without_id_accepted(bus):
    context = FakeContext(bus, respond_with(lambda m: SandboxMessage(type=protocol.RENDER_RESULT, payload=42)))
    await context.start()

    assert await ExecutionChannel(bus).execute(context, "code") == 42


@pytest.mark.unit
async def test_timeout_then_stray_result_ignored(bus):
    context = FakeContext(bus, responder=None)
    await context.start()
    channel = ExecutionChannel(bus, timeout_ms=50)

    started = time.monotonic()
    with pytest.raises(SandboxTimeoutError) as exc:
        await channel.execute(context, "code")
    elapsed = time.monotonic() - started

    assert isinstance(exc.value, TimeoutError)
    assert exc.value.timeout_ms == 50
    assert elapsed >= 0.045
    assert bus.listener_count == 0

    # A late answer for the abandoned request must go nowhere
    request_id = context.posted[0].id
    context.deliver(protocol.render_result({"html": "late"}, request_id))
    assert channel.state is ChannelState.IDLE


@pytest.mark.unit
async def test_stray_result_does_not_resolve_next_request(bus):
    context = FakeContext(bus, responder=None)
    await context.start()
    channel = ExecutionChannel(bus, timeout_ms=50)

    with pytest.raises(SandboxTimeoutError):
        await channel.execute(context, "first")
    stale_id = context.posted[0].id

    task = asyncio.create_task(channel.execute(context, "second"))
    await asyncio.sleep(0)
    context.deliver(protocol.render_result({"html": "stale"}, stale_id))
    await asyncio.sleep(0)
    assert not task.done()

    context.deliver(protocol.render_result({"html": "fresh"}, context.posted[1].id))
    assert (await task) == {"html": "fresh"}


@pytest.mark.unit
async def test_error_carries_detail(bus):
    context = FakeContext(bus, respond_with(lambda m: protocol.error("boom", m.id)))
    await context.start()

    with pytest.raises(ExecutionError) as exc:
        await ExecutionChannel(bus).execute(context, "code")

    assert str(exc.value) == "boom"
    assert exc.value.detail == "boom"


@pytest.mark.unit
async def test_unknown_message_type_is_protocol_error(bus):
    context = FakeContext(bus, respond_with(lambda m: SandboxMessage(type="telemetry", id=m.id)))
    await context.start()

    with pytest.raises(ProtocolError):
        await ExecutionChannel(bus).execute(context, "code")


@pytest.mark.unit
async def test_ready_message_ignored_while_waiting(bus):
    def responder(context, message):
        context.deliver(protocol.ready())
        context.deliver(protocol.render_result({"ok": True}, message.id))

    context = FakeContext(bus, responder)
    await context.start()

    assert await ExecutionChannel(bus).execute(context, "code") == {"ok": True}


@pytest.mark.unit
async def test_foreign_source_ignored(bus):
    target = FakeContext(bus, responder=None)
    intruder = FakeContext(bus, responder=None)
    await target.start()
    await intruder.start()
    channel = ExecutionChannel(bus, timeout_ms=1000)

    task = asyncio.create_task(channel.execute(target, "code"))
    await asyncio.sleep(0)
    request_id = target.posted[0].id

    intruder.deliver(protocol.render_result({"html": "forged"}, request_id))
    await asyncio.sleep(0)
    assert not task.done()

    target.deliver(protocol.render_result({"html": "real"}, request_id))
    assert (await task) == {"html": "real"}


@pytest.mark.unit
async def test_busy_channel_rejects_second_request(bus):
    context = FakeContext(bus, responder=None)
    await context.start()
    channel = ExecutionChannel(bus, timeout_ms=1000)

    task = asyncio.create_task(channel.execute(context, "first"))
    await asyncio.sleep(0)

    assert channel.busy
    with pytest.raises(ChannelBusyError):
        await channel.execute(context, "second")

    channel.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.unit
async def test_cancel_releases_without_resolving(bus):
    context = FakeContext(bus, responder=None)
    await context.start()
    channel = ExecutionChannel(bus, timeout_ms=1000)

    task = asyncio.create_task(channel.execute(context, "code"))
    await asyncio.sleep(0)

    assert channel.cancel() is True
    assert channel.cancel() is False
    assert channel.state is ChannelState.IDLE
    assert bus.listener_count == 0

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.unit
async def test_task_cancellation_resets_channel(bus):
    context = FakeContext(bus, responder=None)
    await context.start()
    channel = ExecutionChannel(bus, timeout_ms=1000)

    task = asyncio.create_task(channel.execute(context, "code"))
    await asyncio.sleep(0)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert channel.state is ChannelState.IDLE
    assert channel.pending_request_id is None


@pytest.mark.unit
async def test_context_must_be_ready(bus):
    context = FakeContext(bus)

    with pytest.raises(ContextNotReadyError):
        await ExecutionChannel(bus).execute(context, "code")
    assert context.posted == []


@pytest.mark.unit
async def test_post_failure_settles_request(bus):
    class DeadContext(FakeContext):
        async def post(self, message):
            raise SandboxError("pipe closed")

    context = DeadContext(bus)
    await context.start()
    channel = ExecutionChannel(bus)

    with pytest.raises(SandboxError, match="pipe closed"):
        await channel.execute(context, "code")
    assert not channel.busy
    assert bus.listener_count == 0


@pytest.mark.unit
async def test_channels_share_bus_independently(bus):
    first = FakeContext(bus, responder=None)
    second = FakeContext(bus, responder=None)
    await first.start()
    await second.start()
    a, b = ExecutionChannel(bus, timeout_ms=1000), ExecutionChannel(bus, timeout_ms=1000)

    task_a = asyncio.create_task(a.execute(first, "a"))
    task_b = asyncio.create_task(b.execute(second, "b"))
    await asyncio.sleep(0)

    second.deliver(protocol.render_result("B", second.posted[0].id))
    first.deliver(protocol.render_result("A", first.posted[0].id))

    assert (await task_a, await task_b) == ("A", "B")


@pytest.mark.unit
def test_timeout_must_be_positive(bus):
    with pytest.raises(ValueError):
        ExecutionChannel(bus, timeout_ms=0)
