from __future__ import annotations

import asyncio

import pytest

from reaction_menus.menu.clock import TimeoutClock


@pytest.mark.anyio
async def test_clock_fires_once_after_timeout() -> None:
    clock = TimeoutClock(0.02)
    clock.start()

    assert clock.running
    assert await clock.wait() is True
    assert clock.fired
    assert not clock.running
    assert clock.reset() is False
    assert clock.cancel() is False
    assert await clock.wait() is True


@pytest.mark.anyio
async def test_cancelled_clock_never_fires() -> None:
    clock = TimeoutClock(0.02)
    clock.start()

    assert clock.cancel() is True
    await asyncio.sleep(0.05)

    assert await clock.wait() is False
    assert clock.cancelled
    assert not clock.fired


@pytest.mark.anyio
async def test_reset_slides_deadline_forward() -> None:
    clock = TimeoutClock(60)
    clock.start()
    first_deadline = clock.deadline
    assert first_deadline is not None

    await asyncio.sleep(0.01)
    assert clock.reset() is True

    assert clock.deadline is not None
    assert clock.deadline > first_deadline
    remaining = clock.remaining()
    assert remaining is not None and remaining > 59
    clock.cancel()


@pytest.mark.anyio
async def test_reset_postpones_expiry() -> None:
    clock = TimeoutClock(0.2)
    clock.start()
    await asyncio.sleep(0.12)
    clock.reset()
    await asyncio.sleep(0.12)

    assert not clock.fired
    assert await clock.wait() is True


@pytest.mark.anyio
async def test_reset_can_change_timeout() -> None:
    clock = TimeoutClock(60)
    clock.start()

    clock.reset(0.01)

    assert clock.timeout == 0.01
    assert await clock.wait() is True


@pytest.mark.anyio
async def test_clock_cannot_start_twice() -> None:
    clock = TimeoutClock(60)
    clock.start()
    with pytest.raises(RuntimeError):
        clock.start()
    clock.cancel()


def test_clock_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        TimeoutClock(0)
