"""Tests for the sandbox wire protocol and message bus."""

import pytest

from sandbox import Envelope, MessageBus, ProtocolError, SandboxMessage, decode_message, encode_message
from sandbox import protocol


@pytest.mark.unit
class TestCodec:
    def test_encode_is_one_line(self):
        line = encode_message(protocol.render_request("<div />", "react", "req_1"))

        assert line.endswith(b"\n")
        assert line.count(b"\n") == 1
        assert decode_message(line) == SandboxMessage(
            type="render-component", payload={"code": "<div />", "framework": "react"}, id="req_1"
        )

    def test_id_and_payload_omitted_when_absent(self):
        assert encode_message(protocol.ready()) == b'{"type":"sandbox-ready"}\n'

    def test_decode_without_id(self):
        message = decode_message('{"type": "render-result", "payload": {"html": "x"}}')

        assert message.id is None
        assert message.payload == {"html": "x"}

    @pytest.mark.parametrize("line", [b"not json", b"[]", b'{"payload": 1}', b'{"type": 5}'])
    def test_decode_rejects_malformed(self, line):
        with pytest.raises(ProtocolError):
            decode_message(line)

    def test_timeout_never_encoded(self):
        with pytest.raises(ProtocolError):
            encode_message(SandboxMessage(type=protocol.TIMEOUT))

    def test_error_payload(self):
        message = protocol.error("boom", "req_2")
        assert message.payload == {"error": "boom"}
        assert message.id == "req_2"


@pytest.mark.unit
class TestMessageBus:
    def test_fan_out_in_order(self):
        bus = MessageBus()
        seen = []
        bus.subscribe(lambda e: seen.append(("a", e.message.type)))
        bus.subscribe(lambda e: seen.append(("b", e.message.type)))

        bus.post(Envelope(source="ctx", message=protocol.ready()))

        assert seen == [("a", "sandbox-ready"), ("b", "sandbox-ready")]

    def test_unsubscribe_is_idempotent(self):
        bus = MessageBus()
        unsubscribe = bus.subscribe(lambda e: None)

        unsubscribe()
        unsubscribe()

        assert bus.listener_count == 0

    def test_failing_listener_isolated(self):
        bus = MessageBus()
        seen = []

        def explode(envelope):
            raise RuntimeError("bad listener")

        bus.subscribe(explode)
        bus.subscribe(seen.append)
        bus.post(Envelope(source=None, message=protocol.ready()))

        assert len(seen) == 1
