import asyncio
from types import SimpleNamespace

import aiohttp
import orjson
import pytest

from book_stream.types import ServerInfo

TOPIC = "/contractMarket/level2Depth5:ETHUSDTM"


def text_frame(payload) -> SimpleNamespace:
    data = payload if isinstance(payload, str) else orjson.dumps(payload).decode()
    return SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data, extra=None)


def binary_frame(data: bytes) -> SimpleNamespace:
    return SimpleNamespace(type=aiohttp.WSMsgType.BINARY, data=data, extra=None)


def closed_frame(kind=aiohttp.WSMsgType.CLOSED) -> SimpleNamespace:
    return SimpleNamespace(type=kind, data=None, extra=None)


def welcome(conn_id: str = "conn-1") -> SimpleNamespace:
    return text_frame({"id": conn_id, "type": "welcome"})


def market(bids=(), asks=(), ts: int = 1, topic: str = TOPIC) -> SimpleNamespace:
    return text_frame({
        "type": "message",
        "topic": topic,
        "subject": "level2",
        "data": {"bids": [list(b) for b in bids], "asks": [list(a) for a in asks], "ts": ts},
    })


class FakeWebSocket:
    """
    Stand-in for aiohttp.ClientWebSocketResponse.

    Frames are served in order. Exceptions in the frame list are raised from
    receive(). Once drained, a CLOSED frame is returned unless `hang` is set,
    in which case receive() blocks until close().
    """

    def __init__(self, frames=(), *, delay: float = 0.0, hang: bool = False, fail_send: bool = False):
        self.inbox: asyncio.Queue = asyncio.Queue()
        for frame in frames:
            self.inbox.put_nowait(frame)
        if not hang:
            self.inbox.put_nowait(closed_frame())
        self.delay = delay
        self.fail_send = fail_send
        self.sent: list[str] = []
        self.closed = False
        self.timeouts: list = []

    async def receive(self, timeout=None):
        self.timeouts.append(timeout)
        if self.delay:
            await asyncio.sleep(self.delay)
        frame = await self.inbox.get()
        if isinstance(frame, BaseException):
            raise frame
        return frame

    async def send_str(self, data: str) -> None:
        if self.fail_send:
            raise ConnectionResetError("Cannot write to closing transport")
        self.sent.append(data)

    async def close(self) -> None:
        self.closed = True
        self.inbox.put_nowait(closed_frame(aiohttp.WSMsgType.CLOSING))

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False


class FakeHttp:
    """Stand-in for aiohttp.ClientSession handing out prepared websockets."""

    sockets: list = []
    urls: list = []

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def ws_connect(self, url, **kwargs):
        FakeHttp.urls.append(url)
        if not FakeHttp.sockets:
            raise aiohttp.ClientConnectionError("no more sockets")
        return FakeHttp.sockets.pop(0)


@pytest.fixture
def server_info() -> ServerInfo:
    return ServerInfo(
        token="tok",
        endpoint="wss://ws-api-futures.kucoin.com/",
        keepalive_interval_ms=18000,
        keepalive_timeout_ms=10000,
    )


@pytest.fixture
def fake_http(monkeypatch):
    FakeHttp.sockets = []
    FakeHttp.urls = []
    monkeypatch.setattr(aiohttp, "ClientSession", FakeHttp)
    return FakeHttp
