"""
Top-of-book TUI using Textual.

Displays:
- Top: status bar with symbol, best bid/ask, spread and update count
- Middle: price ladder, asks above the spread, bids below

Notes:
- Consumes BookSnapshot objects from the client's snapshot queue
- Renders the latest snapshot only; the queue drops stale ones
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from rich.console import RenderableType
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import Footer, Static

if TYPE_CHECKING:
    from ..types import BookSnapshot

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
PRICE_COLOR = "#f8fafc"
HEADER_COLOR = "#94a3b8"
BAR_BG = "#1e293b"

BAR_WIDTH = 20


def make_bar(value: int, max_value: int, width: int, color: str) -> Text:
    """Create a horizontal bar using block characters."""
    if max_value <= 0:
        return Text(" " * width)

    fill_width = int(min(1.0, value / max_value) * width)
    bar = "█" * fill_width + " " * (width - fill_width)
    return Text(bar, style=Style(color=color, bgcolor=BAR_BG))


def build_ladder(snap: BookSnapshot) -> Table:
    """Asks (worst at top) over bids (best at top), one row per level."""
    table = Table(
        show_header=True,
        header_style=HEADER_COLOR,
        box=None,
        padding=(0, 1),
        collapse_padding=True,
    )
    table.add_column("Bid Qty", justify="right", width=10)
    table.add_column("Bid Bar", justify="left", width=BAR_WIDTH, no_wrap=True)
    table.add_column("Price", justify="center", width=14)
    table.add_column("Ask Bar", justify="left", width=BAR_WIDTH, no_wrap=True)
    table.add_column("Ask Qty", justify="left", width=10)

    max_qty = max((l.quantity for l in snap.bids + snap.asks), default=0)

    for level in reversed(snap.asks):
        table.add_row(
            Text(""),
            Text(""),
            Text(str(level.price), style=ASK_COLOR),
            make_bar(level.quantity, max_qty, BAR_WIDTH, ASK_COLOR),
            Text(str(level.quantity), style=ASK_COLOR),
        )

    for level in snap.bids:
        table.add_row(
            Text(str(level.quantity), style=BID_COLOR),
            make_bar(level.quantity, max_qty, BAR_WIDTH, BID_COLOR),
            Text(str(level.price), style=BID_COLOR),
            Text(""),
            Text(""),
        )

    return table


class LadderTable(Static):
    """Main ladder display widget."""

    DEFAULT_CSS = """
    LadderTable {
        width: 100%;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: BookSnapshot | None = None

    def update_snapshot(self, snapshot: BookSnapshot) -> None:
        self._snapshot = snapshot
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("Waiting for data...", style="dim")
        if not self._snapshot.bids and not self._snapshot.asks:
            return Text("No levels", style="dim")
        return build_ladder(self._snapshot)


class StatusBar(Static):
    """Status bar showing symbol, touch and spread."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._snapshot: BookSnapshot | None = None
        self.updates: int = 0

    def update_snapshot(self, snapshot: BookSnapshot) -> None:
        self._snapshot = snapshot
        self.updates += 1
        self.refresh()

    def render(self) -> RenderableType:
        if self._snapshot is None:
            return Text("Connecting...", style="dim")

        snap = self._snapshot
        dash = "-"
        result = Text()
        result.append(f" {snap.symbol} ", style="bold white on #1e40af")
        result.append("  Bid: ", style="dim")
        result.append(str(snap.best_bid) if snap.best_bid is not None else dash, style=BID_COLOR)
        result.append("  Ask: ", style="dim")
        result.append(str(snap.best_ask) if snap.best_ask is not None else dash, style=ASK_COLOR)
        result.append("  Spread: ", style="dim")
        result.append(str(snap.spread) if snap.spread is not None else dash, style="yellow")
        result.append("  │  ", style="dim")
        result.append("Updates: ", style="dim")
        result.append(str(self.updates), style="cyan")
        return result


class BookApp(App):
    """Top-of-book viewer application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
    ]

    def __init__(self, snapshot_queue: asyncio.Queue) -> None:
        super().__init__()
        self.snapshot_queue = snapshot_queue
        self._status_bar: StatusBar | None = None
        self._ladder: LadderTable | None = None

    def compose(self) -> ComposeResult:
        self._status_bar = StatusBar()
        self._ladder = LadderTable()

        yield self._status_bar
        yield Container(self._ladder, id="main-container")
        yield Footer()

    async def on_mount(self) -> None:
        """Start the snapshot consumer task."""
        self.run_worker(self._consume_snapshots(), exclusive=True)

    async def _consume_snapshots(self) -> None:
        """Consume snapshots from the queue and update the widgets."""
        while True:
            snapshot = await self.snapshot_queue.get()
            if self._status_bar:
                self._status_bar.update_snapshot(snapshot)
            if self._ladder:
                self._ladder.update_snapshot(snapshot)


async def run_ui(snapshot_queue: asyncio.Queue) -> None:
    """Run the TUI application until the user quits."""
    app = BookApp(snapshot_queue)
    await app.run_async()
