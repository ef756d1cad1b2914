"""Shared fixtures and a fake upstream websocket transport."""

import asyncio
import json
from typing import Any, Optional

import pytest

from ais_stream_server.config import Settings
from ais_stream_server.dispatcher import RequestDispatcher
from ais_stream_server.registry import ConnectionRegistry
from ais_stream_server.supervisor import StreamSupervisor

_CLOSE = object()


class FakeWebSocket:
    """Stand-in for a websockets ClientConnection."""

    def __init__(self):
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.send_error: Optional[BaseException] = None
        self._frames: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True

    def push(self, frame: str | bytes) -> None:
        """Queue an inbound frame."""
        self._frames.put_nowait(frame)

    def finish(self, error: Optional[BaseException] = None) -> None:
        """End the inbound stream cleanly, or with ``error``."""
        self._frames.put_nowait(error if error is not None else _CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._frames.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """Replacement for ``websockets.asyncio.client.connect``."""

    def __init__(self):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.websockets: list[FakeWebSocket] = []
        self.open_error: Optional[BaseException] = None
        self.send_error: Optional[BaseException] = None
        self.frames: list[str | bytes] = []
        self.close_after_frames = False

    def __call__(self, uri: str, **kwargs: Any) -> "_FakeConnection":
        self.calls.append((uri, kwargs))
        return _FakeConnection(self)

    @property
    def last(self) -> FakeWebSocket:
        return self.websockets[-1]


class _FakeConnection:
    def __init__(self, connector: FakeConnector):
        self._connector = connector
        self._websocket: Optional[FakeWebSocket] = None

    async def __aenter__(self) -> FakeWebSocket:
        connector = self._connector
        if connector.open_error is not None:
            raise connector.open_error

        websocket = FakeWebSocket()
        websocket.send_error = connector.send_error
        for frame in connector.frames:
            websocket.push(frame)
        if connector.close_after_frames:
            websocket.finish()

        connector.websockets.append(websocket)
        self._websocket = websocket
        return websocket

    async def __aexit__(self, *exc_info) -> bool:
        await self._websocket.close()
        return False


async def wait_for_status(record, status, timeout: float = 1.0) -> None:
    """Poll a record until it reaches ``status``."""

    async def _poll():
        while record.status != status:
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def settings():
    """Create test settings."""
    return Settings(
        ais_stream_url="wss://stream.example.test/v0/stream",
        message_buffer_capacity=100,
        status_recent_messages=10,
        shutdown_timeout=1.0,
    )


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def registry(settings):
    return ConnectionRegistry(settings)


@pytest.fixture
async def supervisor(settings, connector):
    supervisor = StreamSupervisor(settings, connect_factory=connector)
    yield supervisor
    await supervisor.close_all(timeout=1.0)


@pytest.fixture
def dispatcher(registry, supervisor, settings):
    return RequestDispatcher(registry, supervisor, settings)


@pytest.fixture
def subscription_body():
    return {"boundingBoxes": [[[25.6, -80.2], [25.8, -79.9]]]}
