"""
Console rendering of the top-of-book with Rich.

One table per applied message: bids on the left (best first), asks on the
right (best first), paired row by row.
"""

from __future__ import annotations

from itertools import zip_longest
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from ..types import BookSnapshot, PriceLevel

BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
HEADER_COLOR = "#94a3b8"


def _cells(level: PriceLevel | None, color: str) -> tuple[Text, Text]:
    if level is None:
        return Text(""), Text("")
    return Text(str(level.price), style=color), Text(str(level.quantity), style=color)


def render_book(snapshot: BookSnapshot) -> Table:
    """Build the bid/ask table for one snapshot."""
    table = Table(
        show_header=True,
        header_style=HEADER_COLOR,
        box=None,
        padding=(0, 1),
        title=f"{snapshot.symbol}  spread {snapshot.spread if snapshot.spread is not None else '-'}",
    )

    table.add_column("Bid Price", justify="left", width=15)
    table.add_column("Quantity", justify="left", width=15)
    table.add_column("│", justify="center", width=1)
    table.add_column("Ask Price", justify="left", width=15)
    table.add_column("Quantity", justify="left", width=15)

    for bid, ask in zip_longest(snapshot.bids, snapshot.asks):
        bid_price, bid_qty = _cells(bid, BID_COLOR)
        ask_price, ask_qty = _cells(ask, ASK_COLOR)
        table.add_row(bid_price, bid_qty, Text("│", style="dim"), ask_price, ask_qty)

    return table


class ConsoleRenderer:
    """on_snapshot callback that prints every snapshot."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def __call__(self, snapshot: BookSnapshot) -> None:
        self.console.print(render_book(snapshot))
