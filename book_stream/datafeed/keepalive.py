"""
Keepalive coordinator.

Runs beside the session driver and tells it when a ping is due. The two
tasks alternate strictly over a pair of single-slot queues:

    coordinator: sleep(interval) -> due.put(ticket) -> sent.get()
    driver:      due.get_nowait() -> send ping -> sent.put_nowait(ticket)

So at most one keepalive cycle is ever in flight and a slow driver can never
cause a ping storm. The coordinator never touches the socket. If the driver
stops draining `due`, the coordinator waits forever; a dead transport is
noticed by the driver's read loop, not here.
"""

from __future__ import annotations

import asyncio
import logging

from ..types import KeepaliveTicket

logger = logging.getLogger(__name__)


class KeepaliveCoordinator:
    """
    Periodic "ping due" signal with a confirmation handshake.

    Usage:
        keepalive = KeepaliveCoordinator(interval=18.0)
        keepalive.start()
        ...
        ticket = keepalive.poll()
        if ticket is not None:
            await ws.send_str(ping)
            keepalive.confirm(ticket)
        ...
        await keepalive.stop()
    """

    def __init__(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError(f"keepalive interval must be > 0, got {interval}")
        self.interval = interval

        self._due: asyncio.Queue[KeepaliveTicket] = asyncio.Queue(maxsize=1)
        self._sent: asyncio.Queue[KeepaliveTicket] = asyncio.Queue(maxsize=1)
        self._task: asyncio.Task | None = None

        self.pending: KeepaliveTicket | None = None
        self.cycles: int = 0
        self._sequence: int = 0

    async def run(self) -> None:
        """Timer loop. Runs until cancelled."""
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(self.interval)

            self._sequence += 1
            ticket = KeepaliveTicket(sequence=self._sequence, due_at=loop.time())
            self.pending = ticket
            await self._due.put(ticket)

            confirmed = await self._sent.get()
            if confirmed != ticket:
                raise RuntimeError(
                    f"keepalive confirmed ticket {confirmed.sequence}, expected {ticket.sequence}"
                )
            self.pending = None
            self.cycles += 1

    def poll(self) -> KeepaliveTicket | None:
        """Non-blocking: the due ticket, or None if no ping is due."""
        try:
            return self._due.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def confirm(self, ticket: KeepaliveTicket) -> None:
        """Hand the ticket back once the ping has been written."""
        self._sent.put_nowait(ticket)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="keepalive")
            self._task.add_done_callback(self._log_failure)
        return self._task

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Keepalive coordinator failed, no more pings will be sent: %s", exc)

    @property
    def failed(self) -> bool:
        """True once the timer task has died with an error."""
        task = self._task
        return task is not None and task.done() and not task.cancelled() and task.exception() is not None

    async def stop(self) -> None:
        """Cancel the timer task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except RuntimeError:
            # Already reported by _log_failure
            pass
