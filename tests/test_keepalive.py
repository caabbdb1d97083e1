import asyncio
import logging

import pytest

from book_stream.datafeed.keepalive import KeepaliveCoordinator
from book_stream.types import KeepaliveTicket


async def wait_for_ticket(keepalive: KeepaliveCoordinator, timeout: float = 1.0) -> KeepaliveTicket:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        ticket = keepalive.poll()
        if ticket is not None:
            return ticket
        await asyncio.sleep(0.002)
    raise AssertionError("no keepalive ticket issued")


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        KeepaliveCoordinator(0)


@pytest.mark.asyncio
async def test_no_second_signal_until_confirmed():
    keepalive = KeepaliveCoordinator(interval=0.01)
    keepalive.start()
    try:
        first = await wait_for_ticket(keepalive)
        assert first.sequence == 1

        # Several intervals pass without confirmation: nothing new is due
        await asyncio.sleep(0.08)
        assert keepalive.poll() is None
        assert keepalive.pending == first
        assert keepalive.cycles == 0

        keepalive.confirm(first)
        second = await wait_for_ticket(keepalive)
        assert second.sequence == 2
        assert keepalive.cycles == 1
    finally:
        await keepalive.stop()


@pytest.mark.asyncio
async def test_each_ticket_confirmed_once_in_order():
    keepalive = KeepaliveCoordinator(interval=0.005)
    keepalive.start()
    try:
        seen = []
        for _ in range(4):
            ticket = await wait_for_ticket(keepalive)
            seen.append(ticket.sequence)
            keepalive.confirm(ticket)
        assert seen == [1, 2, 3, 4]
    finally:
        await keepalive.stop()


@pytest.mark.asyncio
async def test_wrong_ticket_confirmation_fails_the_task():
    keepalive = KeepaliveCoordinator(interval=0.01)
    task = keepalive.start()
    await wait_for_ticket(keepalive)
    keepalive.confirm(KeepaliveTicket(sequence=99, due_at=0.0))
    with pytest.raises(RuntimeError):
        await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_stop_cancels_timer():
    keepalive = KeepaliveCoordinator(interval=10.0)
    task = keepalive.start()
    assert keepalive.start() is task
    await keepalive.stop()
    assert task.done()
    assert keepalive.poll() is None
    # Stopping twice is harmless
    await keepalive.stop()


@pytest.mark.asyncio
async def test_timer_failure_is_logged_without_stop(caplog):
    keepalive = KeepaliveCoordinator(interval=0.01)
    task = keepalive.start()
    await wait_for_ticket(keepalive)
    with caplog.at_level(logging.ERROR, logger="book_stream.datafeed.keepalive"):
        keepalive.confirm(KeepaliveTicket(sequence=99, due_at=0.0))
        await asyncio.wait([task], timeout=1.0)
        # Let the done callback run
        await asyncio.sleep(0)
    assert keepalive.failed
    assert "no more pings will be sent" in caplog.text
    await keepalive.stop()
