"""
KuCoin Futures level2 websocket client with async orchestration.

Handles:
1. Bullet bootstrap for token + endpoint (see bootstrap.py)
2. Welcome handshake and topic subscription
3. Keepalive pings interleaved with the read loop
4. Delta application and a snapshot per applied message

Session states:
    CONNECTING -> AWAITING_WELCOME -> SUBSCRIBING -> STREAMING -> TERMINATED

Notes:
- The socket and the OrderBook are owned by the session task alone
- Each loop iteration services at most one due ping, then blocks on a read
- Decode failures are logged and skipped; transport failures end the session
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import aiohttp

from .bootstrap import bootstrap, build_ws_url
from .decoder import decode, encode_ping, encode_subscribe
from .keepalive import KeepaliveCoordinator
from .orderbook import OrderBook
from ..config import FeedConfig
from ..errors import DecodeError, HandshakeError, TransportError
from ..types import Ack, BookSnapshot, MarketDelta, ServerInfo, Session, SessionState, Welcome

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[BookSnapshot], None]
T = TypeVar("T")

CLOSED_TYPES = frozenset({
    aiohttp.WSMsgType.CLOSE,
    aiohttp.WSMsgType.CLOSING,
    aiohttp.WSMsgType.CLOSED,
    aiohttp.WSMsgType.ERROR,
})


class KucoinSession:
    """
    Drives one websocket connection from welcome to termination.

    `ws` is an already connected aiohttp.ClientWebSocketResponse (or anything
    with the same receive/send_str/close coroutines).
    """

    def __init__(
        self,
        ws: Any,
        book: OrderBook,
        topic: str,
        keepalive_interval: float,
        on_snapshot: SnapshotCallback | None = None,
        read_timeout: float | None = None,
    ) -> None:
        if keepalive_interval <= 0:
            raise ValueError(f"keepalive interval must be > 0, got {keepalive_interval}")
        self._ws = ws
        self.book = book
        self.topic = topic
        self.keepalive_interval = keepalive_interval
        self.on_snapshot = on_snapshot
        self.read_timeout = read_timeout

        self.state = SessionState.CONNECTING
        self.session: Session | None = None
        self.keepalive: KeepaliveCoordinator | None = None
        self._running = True

        # Counters
        self.pings_sent: int = 0
        self.messages_applied: int = 0
        self.decode_errors: int = 0

    async def _receive(self) -> aiohttp.WSMessage:
        try:
            return await self._ws.receive(timeout=self.read_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(f"no message within {self.read_timeout}s") from exc
        except aiohttp.ClientError as exc:
            raise TransportError(f"websocket read failed: {exc}") from exc

    async def _send(self, text: str) -> None:
        try:
            await self._ws.send_str(text)
        except (ConnectionError, aiohttp.ClientError) as exc:
            raise TransportError(f"websocket write failed: {exc}") from exc

    async def handshake(self) -> Session:
        """Read the welcome message and record the connection id."""
        self.state = SessionState.AWAITING_WELCOME

        msg = await self._receive()
        if msg.type != aiohttp.WSMsgType.TEXT:
            raise HandshakeError(f"expected a text welcome, got {msg.type.name}")

        try:
            welcome = decode(msg.data)
        except DecodeError as exc:
            raise HandshakeError(f"undecodable welcome: {exc}") from exc
        if not isinstance(welcome, Welcome):
            raise HandshakeError(f"expected welcome, got {type(welcome).__name__}")

        self.session = Session(
            connection_id=welcome.connection_id,
            keepalive_interval=self.keepalive_interval,
        )
        self.state = SessionState.SUBSCRIBING
        logger.info("Connected: connection id %s", welcome.connection_id)
        return self.session

    async def subscribe(self) -> None:
        """Send the subscription request for the configured topic."""
        if self.session is None:
            raise HandshakeError("subscribe before handshake")
        await self._send(encode_subscribe(self.session.connection_id, self.topic))
        self.state = SessionState.STREAMING
        logger.info("Subscribed to %s", self.topic)

    async def _service_keepalive(self) -> None:
        """Send at most one ping if the coordinator says one is due."""
        if self.keepalive is None:
            return
        ticket = self.keepalive.poll()
        if ticket is None:
            return

        logger.debug("Sending ping #%d", ticket.sequence)
        await self._send(encode_ping(self.session.connection_id))
        self.pings_sent += 1
        self.keepalive.confirm(ticket)

    def _handle_text(self, raw: str) -> None:
        try:
            decoded = decode(raw)
        except DecodeError as exc:
            self.decode_errors += 1
            logger.warning("Failed to decode message: %s\nError: %s", raw, exc)
            return

        if isinstance(decoded, MarketDelta):
            if decoded.topic != self.topic:
                logger.debug("Ignoring message for topic %s", decoded.topic)
                return
            self.book.apply(decoded)
            self.messages_applied += 1
            if self.on_snapshot is not None:
                self.on_snapshot(self.book.snapshot())
        elif isinstance(decoded, Ack):
            logger.debug("Received %s for %s", decoded.type, decoded.id)
        else:
            logger.warning("Unexpected welcome mid-stream (id %s)", decoded.connection_id)

    async def stream(self) -> None:
        """
        Steady-state loop: keepalive poll, blocking read, dispatch.

        Returns only after stop(); otherwise ends with TransportError.
        """
        while True:
            await self._service_keepalive()
            msg = await self._receive()

            if msg.type == aiohttp.WSMsgType.TEXT:
                self._handle_text(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                logger.debug("Ignoring %d byte binary frame", len(msg.data))
            elif msg.type in CLOSED_TYPES:
                if not self._running:
                    return
                raise TransportError(f"websocket closed: {msg.type.name} {msg.data!r}")

    async def run(self) -> None:
        """Handshake, subscribe, then stream until the transport fails."""
        try:
            session = await self.handshake()
            await self.subscribe()
            self.keepalive = KeepaliveCoordinator(session.keepalive_interval)
            self.keepalive.start()
            await self.stream()
        finally:
            if self.keepalive is not None:
                await self.keepalive.stop()
            self.state = SessionState.TERMINATED

    async def stop(self) -> None:
        """Close the socket; the read loop then returns instead of raising."""
        self._running = False
        await self._ws.close()


class KucoinClient:
    """
    Bootstrap + connect + run one KucoinSession, optionally reconnecting.

    Usage:
        client = KucoinClient(FeedConfig(symbol="ETHUSDTM"), on_snapshot=render)
        await client.run()

    Without `on_snapshot`, snapshots are pushed to `snapshot_queue` for a UI.
    """

    def __init__(self, config: FeedConfig, on_snapshot: SnapshotCallback | None = None) -> None:
        self.config = config
        self.on_snapshot = on_snapshot or self._push_snapshot

        self.orderbook: OrderBook | None = None
        self.session: KucoinSession | None = None
        self._running = False
        self._stopped = asyncio.Event()

        # Output queue for UI, newest wins when full
        self.snapshot_queue: asyncio.Queue[BookSnapshot] = asyncio.Queue(maxsize=5)

    def _push_snapshot(self, snapshot: BookSnapshot) -> None:
        """Non-blocking put; drop the oldest snapshot if the queue is full."""
        if self.snapshot_queue.full():
            self.snapshot_queue.get_nowait()
        self.snapshot_queue.put_nowait(snapshot)

    async def _connect_and_stream(self, http: aiohttp.ClientSession, info: ServerInfo) -> None:
        # Fresh book per connection, no resync across reconnects
        self.orderbook = OrderBook(self.config.symbol, self.config.depth)
        try:
            async with http.ws_connect(build_ws_url(info), autoping=True) as ws:
                self.session = KucoinSession(
                    ws,
                    self.orderbook,
                    topic=self.config.topic,
                    keepalive_interval=info.keepalive_interval_ms / 1000,
                    on_snapshot=self.on_snapshot,
                    read_timeout=self.config.read_timeout,
                )
                await self.session.run()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"websocket connection failed: {exc}") from exc

    async def _until_stopped(self, aw: Awaitable[T]) -> T | None:
        """Await `aw`, abandoning it if stop() is called first. None when abandoned."""
        task = asyncio.ensure_future(aw)
        stopper = asyncio.ensure_future(self._stopped.wait())
        try:
            await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stopper.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
        if task.cancelled():
            return None
        return task.result()

    async def run(self) -> None:
        """
        Main run loop.

        Raises BootstrapError, HandshakeError or TransportError; the last two
        are retried from bootstrap when config.reconnect is set. Returns quietly
        if stop() lands during bootstrap or the reconnect delay.
        """
        self._running = True
        self._stopped.clear()
        cfg = self.config

        async with aiohttp.ClientSession() as http:
            while self._running:
                info = await self._until_stopped(
                    bootstrap(
                        http,
                        url=cfg.bootstrap_url,
                        attempts=cfg.bootstrap_attempts,
                        delay=cfg.bootstrap_delay,
                    )
                )
                if info is None or not self._running:
                    return
                try:
                    await self._connect_and_stream(http, info)
                except (HandshakeError, TransportError) as exc:
                    if not self._running:
                        return
                    if not cfg.reconnect:
                        raise
                    logger.warning(
                        "Session ended (%s); reconnecting in %.1fs", exc, cfg.reconnect_delay
                    )
                    await self._until_stopped(asyncio.sleep(cfg.reconnect_delay))
                else:
                    return

    async def stop(self) -> None:
        """Signal the client to stop and close the live socket."""
        self._running = False
        self._stopped.set()
        if self.session is not None:
            await self.session.stop()
