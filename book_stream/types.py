"""
Data types for Book Stream.

Notes:
- Using NamedTuple for immutable, memory-efficient structures
- Prices are Decimal so that "100", "100.0" and 100 key the same level
- These are the renderer-facing structures; the aggregator keeps raw dicts internally
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import NamedTuple


class Side(str, Enum):
    """Book side."""
    BID = "bid"
    ASK = "ask"


class SessionState(str, Enum):
    """Lifecycle of one websocket session."""
    CONNECTING = "connecting"
    AWAITING_WELCOME = "awaiting_welcome"
    SUBSCRIBING = "subscribing"
    STREAMING = "streaming"
    TERMINATED = "terminated"


class PriceLevel(NamedTuple):
    """Single price level. quantity 0 on the wire means "remove this level"."""
    price: Decimal
    quantity: int


class BookSnapshot(NamedTuple):
    """
    Top-of-book snapshot for rendering.

    Produced after a full delta batch has been applied; safe to hand off.
    """
    symbol: str
    bids: tuple[PriceLevel, ...]  # Descending (best bid first)
    asks: tuple[PriceLevel, ...]  # Ascending (best ask first)
    timestamp_ms: int
    best_bid: Decimal | None
    best_ask: Decimal | None
    spread: Decimal | None     # None unless both sides have levels


class ServerInfo(NamedTuple):
    """Connection credentials from the bullet endpoint."""
    token: str
    endpoint: str
    keepalive_interval_ms: int
    keepalive_timeout_ms: int


class Session(NamedTuple):
    """Negotiated once per connection, after the welcome message."""
    connection_id: str
    keepalive_interval: float  # seconds


class Welcome(NamedTuple):
    connection_id: str
    type: str


class Ack(NamedTuple):
    """Generic server acknowledgement (subscribe ack or pong)."""
    id: str
    type: str


class MarketDelta(NamedTuple):
    """One level2 market message, already normalized."""
    topic: str
    subject: str
    bids: tuple[PriceLevel, ...]
    asks: tuple[PriceLevel, ...]
    timestamp_ms: int


class KeepaliveTicket(NamedTuple):
    """A ping is due. Consumed exactly once by the session driver."""
    sequence: int
    due_at: float  # loop.time() when issued
