import pytest
from unittest.mock import AsyncMock

from voice_bridge.bridge.audio_relay import AudioRelay
from voice_bridge.bridge.multiplexer import OutboundMultiplexer
from voice_bridge.models.upstream_events import OpaqueEvent, ResponseDone


@pytest.fixture
def sent():
    return []


@pytest.fixture
def multiplexer(sent):
    async def send_client(event):
        sent.append(event)

    return OutboundMultiplexer(send_client, AudioRelay(), {})


@pytest.mark.asyncio
async def test_events_forwarded_verbatim_in_order(multiplexer, sent):
    payloads = [
        {"type": "session.created", "session": {"id": "up_1"}},
        {"type": "rate_limits.updated", "rate_limits": []},
        {"type": "response.done", "response": {"id": "r1"}},
    ]
    for payload in payloads:
        await multiplexer.relay(payload)

    assert sent == payloads
    assert multiplexer.forwarded == 3


@pytest.mark.asyncio
async def test_audio_is_forwarded_with_markers(multiplexer, sent):
    await multiplexer.relay({"type": "response.audio.delta", "item_id": "i1", "delta": "AAAA"})
    assert sent[0]["seq"] == 0
    assert sent[0]["delta"] == "AAAA"


@pytest.mark.asyncio
async def test_intercept_handler_runs_after_forwarding(sent):
    order = []

    async def send_client(event):
        order.append("forward")

    async def on_done(event):
        order.append("handler")
        assert isinstance(event, ResponseDone)

    multiplexer = OutboundMultiplexer(send_client, AudioRelay(), {ResponseDone: on_done})
    event = await multiplexer.relay({"type": "response.done", "response": {"id": "r1"}})

    assert order == ["forward", "handler"]
    assert event.response_id == "r1"


@pytest.mark.asyncio
async def test_unhandled_events_have_no_handler():
    handler = AsyncMock()
    multiplexer = OutboundMultiplexer(AsyncMock(), AudioRelay(), {ResponseDone: handler})

    event = await multiplexer.relay({"type": "something.new"})

    assert isinstance(event, OpaqueEvent)
    handler.assert_not_awaited()
