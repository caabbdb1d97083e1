"""
Bounded top-N order book for a level2 delta stream.

HOT PATH: apply() is called for every market message on the socket.

Strategy:
1. dict[Decimal, int] for O(1) lookup/update of individual prices
2. One ascending sorted price list per side, kept in step with bisect
3. Trim by price rank only after the whole batch is applied
4. Snapshots are tuples of NamedTuples, so the renderer never sees live state

Every message is treated as absolute quantities per level: there are no
sequence numbers and no resync. A reconnect means a fresh OrderBook.
"""

from __future__ import annotations

from bisect import bisect_left, insort
from decimal import Decimal
from typing import Iterable

from ..types import BookSnapshot, MarketDelta, PriceLevel, Side

DEFAULT_DEPTH = 5


class BookSide:
    """
    One side of the book, capped at `depth` levels.

    Bids keep the `depth` highest prices, asks the `depth` lowest.

    Thread-safety: NOT thread-safe. Single writer, read after a full apply.
    """

    __slots__ = ('side', 'depth', '_levels', '_prices')

    def __init__(self, side: Side, depth: int = DEFAULT_DEPTH) -> None:
        if depth < 1:
            raise ValueError(f"depth must be >= 1, got {depth}")
        self.side = side
        self.depth = depth

        # price -> quantity
        self._levels: dict[Decimal, int] = {}
        # Ascending for both sides; best is the tail for bids, the head for asks
        self._prices: list[Decimal] = []

    def __len__(self) -> int:
        return len(self._levels)

    def __contains__(self, price: object) -> bool:
        return price in self._levels

    def quantity_at(self, price: Decimal) -> int:
        """Quantity resting at `price`, 0 if the level is absent."""
        return self._levels.get(price, 0)

    def apply(self, deltas: Iterable[PriceLevel]) -> None:
        """
        Apply a batch of deltas, then trim to depth.

        HOT PATH.

        quantity == 0 removes the level (no-op if absent); anything else
        overwrites. Trimming is strictly by price rank, never by quantity.
        """
        levels = self._levels
        prices = self._prices

        for price, quantity in deltas:
            if quantity == 0:
                if levels.pop(price, None) is not None:
                    del prices[bisect_left(prices, price)]
            else:
                if price not in levels:
                    insort(prices, price)
                levels[price] = quantity

        self._trim()

    def _trim(self) -> None:
        excess = len(self._prices) - self.depth
        if excess <= 0:
            return

        if self.side is Side.BID:
            # Drop the lowest bids
            dropped = self._prices[:excess]
            del self._prices[:excess]
        else:
            # Drop the highest asks
            dropped = self._prices[-excess:]
            del self._prices[-excess:]

        for price in dropped:
            del self._levels[price]

    def levels(self) -> tuple[PriceLevel, ...]:
        """Best-to-worst copy: bids descending, asks ascending."""
        ordered = reversed(self._prices) if self.side is Side.BID else self._prices
        return tuple(PriceLevel(price, self._levels[price]) for price in ordered)

    @property
    def best(self) -> Decimal | None:
        """Best price on this side. None if empty."""
        if not self._prices:
            return None
        return self._prices[-1] if self.side is Side.BID else self._prices[0]

    def clear(self) -> None:
        self._levels.clear()
        self._prices.clear()


class OrderBook:
    """
    Top-N order book for one market.

    Created empty at stream start and owned by the session driver.
    """

    __slots__ = ('symbol', 'depth', 'bids', 'asks', 'last_timestamp_ms', 'update_count')

    def __init__(self, symbol: str, depth: int = DEFAULT_DEPTH) -> None:
        self.symbol = symbol
        self.depth = depth
        self.bids = BookSide(Side.BID, depth)
        self.asks = BookSide(Side.ASK, depth)

        self.last_timestamp_ms: int = 0
        self.update_count: int = 0

    def side(self, side: Side) -> BookSide:
        return self.bids if side is Side.BID else self.asks

    def apply_deltas(self, side: Side, deltas: Iterable[PriceLevel]) -> None:
        """Apply one batch of deltas to a single side."""
        self.side(side).apply(deltas)

    def apply(self, message: MarketDelta) -> None:
        """
        Apply a decoded market message: bids, then asks.

        HOT PATH - called for every market message.
        """
        self.bids.apply(message.bids)
        self.asks.apply(message.asks)
        self.last_timestamp_ms = message.timestamp_ms
        self.update_count += 1

    @property
    def best_bid(self) -> Decimal | None:
        return self.bids.best

    @property
    def best_ask(self) -> Decimal | None:
        return self.asks.best

    @property
    def spread(self) -> Decimal | None:
        """best_ask - best_bid. None unless both sides have levels."""
        bb, ba = self.best_bid, self.best_ask
        if bb is None or ba is None:
            return None
        return ba - bb

    @property
    def mid_price(self) -> Decimal | None:
        bb, ba = self.best_bid, self.best_ask
        if bb is not None and ba is not None:
            return (bb + ba) / 2
        return bb if bb is not None else ba

    def snapshot(self) -> BookSnapshot:
        """Immutable top-of-book view, best-to-worst on each side."""
        return BookSnapshot(
            symbol=self.symbol,
            bids=self.bids.levels(),
            asks=self.asks.levels(),
            timestamp_ms=self.last_timestamp_ms,
            best_bid=self.best_bid,
            best_ask=self.best_ask,
            spread=self.spread,
        )

    def clear(self) -> None:
        """Drop every level."""
        self.bids.clear()
        self.asks.clear()
        self.last_timestamp_ms = 0
        self.update_count = 0
