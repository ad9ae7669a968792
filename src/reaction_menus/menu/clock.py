from __future__ import annotations

import asyncio
from typing import Optional


class TimeoutClock:
    """Cancelable countdown that fires at most once.

    `reset()` moves the deadline to ``now + timeout`` (sliding expiration).
    Once the clock has fired or been cancelled it ignores further resets.
    """

    def __init__(self, timeout: float, *, name: str = "clock") -> None:
        if timeout <= 0:
            raise ValueError("timeout must be > 0")
        self._timeout = float(timeout)
        self._name = name
        self._deadline: Optional[float] = None
        self._sleeper: Optional[asyncio.Task[None]] = None
        self._done = asyncio.Event()
        self._fired = False
        self._cancelled = False

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def deadline(self) -> Optional[float]:
        """Loop time at which the clock fires, once started."""
        return self._deadline

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def running(self) -> bool:
        return self._deadline is not None and not self._done.is_set()

    def remaining(self) -> Optional[float]:
        if not self.running or self._deadline is None:
            return None
        return max(self._deadline - asyncio.get_running_loop().time(), 0.0)

    def start(self) -> None:
        if self._deadline is not None or self._done.is_set():
            raise RuntimeError(f"{self._name} already started")
        self._arm()

    def reset(self, timeout: Optional[float] = None) -> bool:
        """Push the deadline out; returns False if the clock already finished."""
        if not self.running:
            return False
        if timeout is not None:
            if timeout <= 0:
                raise ValueError("timeout must be > 0")
            self._timeout = float(timeout)
        self._cancel_sleeper()
        self._arm()
        return True

    def cancel(self) -> bool:
        """Stop the clock before it fires; returns False if it already finished."""
        if self._done.is_set():
            return False
        self._cancelled = True
        self._cancel_sleeper()
        self._done.set()
        return True

    async def wait(self) -> bool:
        """Block until the clock fires (True) or is cancelled (False)."""
        await self._done.wait()
        return self._fired

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self._timeout
        self._sleeper = loop.create_task(self._sleep(self._timeout))

    def _cancel_sleeper(self) -> None:
        if self._sleeper is not None and not self._sleeper.done():
            self._sleeper.cancel()
        self._sleeper = None

    async def _sleep(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._done.is_set():
            return
        self._fired = True
        self._done.set()

    def __repr__(self) -> str:
        state = "fired" if self._fired else "cancelled" if self._cancelled else "armed"
        return f"TimeoutClock(name={self._name!r}, timeout={self._timeout}, {state})"
