import asyncio
import json
import logging

import pytest

from voice_bridge.config.settings import Settings
from voice_bridge.exceptions import UpstreamConnectionError


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class MockWebSocket:
    """Client websocket double that records every event sent to the client."""

    def __init__(self):
        self.sent_messages = []
        self.accepted = False
        self.closed = False
        self.close_code = None
        self.client = None
        self.fail_send = False
        self.incoming = asyncio.Queue()

    async def accept(self):
        self.accepted = True

    async def receive(self):
        return await self.incoming.get()

    async def send_text(self, text):
        if self.fail_send:
            raise RuntimeError("socket gone")
        self.sent_messages.append(json.loads(text))

    async def close(self, code=1000):
        self.closed = True
        self.close_code = code

    def feed_text(self, text):
        self.incoming.put_nowait({"type": "websocket.receive", "text": text})

    def feed_bytes(self, data):
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": data})

    def disconnect(self, code=1000):
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    def sent_types(self):
        return [message.get("type") for message in self.sent_messages]


class FakeUpstream:
    """Upstream link double: records sent events, replays pushed ones."""

    def __init__(self, fail_connect=False):
        self.fail_connect = fail_connect
        self.fail_send = False
        self.connected = False
        self.closed = False
        self.close_calls = 0
        self.sent = []
        self._incoming = asyncio.Queue()

    async def connect(self):
        if self.fail_connect:
            raise UpstreamConnectionError("connection refused")
        self.connected = True

    async def send(self, event):
        if self.fail_send:
            raise UpstreamConnectionError("send failed")
        self.sent.append(event)

    async def receive(self):
        while True:
            payload = await self._incoming.get()
            if payload is None:
                return
            yield payload

    def push(self, payload):
        self._incoming.put_nowait(payload)

    def finish(self):
        self._incoming.put_nowait(None)

    async def close(self):
        self.close_calls += 1
        self.closed = True
        self._incoming.put_nowait(None)

    def sent_types(self):
        return [event.get("type") for event in self.sent]


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.callback()


class FakeScheduler:
    """Deterministic replacement for loop.call_later."""

    def __init__(self):
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def last(self):
        return self.timers[-1]

    @property
    def armed(self):
        return [timer for timer in self.timers if not timer.cancelled]


class StubExecutor:
    """Tool executor double; results may be dicts or exceptions to raise."""

    definitions = []

    def __init__(self, results=None):
        self.results = dict(results or {})
        self.calls = []

    def has_tool(self, name):
        return name in self.results

    async def execute(self, name, args):
        self.calls.append((name, args))
        result = self.results[name]
        if isinstance(result, Exception):
            raise result
        return result


class TaskRecorder:
    """Spawn function that keeps the tasks it creates so tests can await them."""

    def __init__(self):
        self.tasks = []

    def __call__(self, coro):
        task = asyncio.ensure_future(coro)
        self.tasks.append(task)
        return task

    async def wait(self):
        await asyncio.gather(*self.tasks)


async def drain(supervisor):
    """Apply every queued session event without blocking."""
    while not supervisor._events.empty():
        await supervisor.dispatch(supervisor._events.get_nowait())


@pytest.fixture
def settings():
    return Settings(openai_api_key="test-key")


@pytest.fixture
def mock_websocket():
    return MockWebSocket()


@pytest.fixture
def fake_upstream():
    return FakeUpstream()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def spawn():
    return TaskRecorder()
