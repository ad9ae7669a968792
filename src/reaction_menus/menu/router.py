"""Process-wide routing of inbound reaction events to active menus.

The router owns the only state shared between menu lifecycles: a map from
message handle to the endpoint queue feeding that message's run loop. Every
read and write goes through one `asyncio.Lock`, so register, unregister and
lookup are linearizable with respect to each other.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Dict, Optional

from ..core.exceptions import RegistryInvariantViolation
from ..core.logging_utils import log_event
from .models import MenuEvent, MessageHandle
from .transport import ReactionEventSource


class RouteEndpoint:
    """Receiving side of one registry entry, consumed by a single menu."""

    def __init__(self, handle: MessageHandle) -> None:
        self.handle = handle
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def deliver(self, event: object) -> None:
        self._queue.put_nowait(event)

    async def receive(self) -> object:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class EventRouter:
    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._lock = asyncio.Lock()
        self._routes: Dict[MessageHandle, RouteEndpoint] = {}
        self._listener: Optional[asyncio.Task[None]] = None

    @property
    def installed(self) -> bool:
        return self._listener is not None

    def install(self, source: ReactionEventSource) -> "asyncio.Task[None]":
        """Attach the single listener task that drains `source`."""
        if self._listener is not None:
            raise RegistryInvariantViolation("event router is already installed")
        self._listener = asyncio.create_task(self._listen(source))
        return self._listener

    async def close(self) -> None:
        listener = self._listener
        if listener is None:
            return
        if not listener.done():
            listener.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await listener

    async def register(self, handle: MessageHandle) -> RouteEndpoint:
        async with self._lock:
            if handle in self._routes:
                raise RegistryInvariantViolation(
                    f"message {handle.channel_id}/{handle.message_id} "
                    "already has an active menu"
                )
            endpoint = RouteEndpoint(handle)
            self._routes[handle] = endpoint
        log_event(
            self._logger,
            logging.DEBUG,
            "router.registered",
            channel_id=handle.channel_id,
            message_id=handle.message_id,
        )
        return endpoint

    async def unregister(self, handle: MessageHandle) -> None:
        async with self._lock:
            if self._routes.pop(handle, None) is None:
                raise RegistryInvariantViolation(
                    f"message {handle.channel_id}/{handle.message_id} "
                    "is not registered"
                )
        log_event(
            self._logger,
            logging.DEBUG,
            "router.unregistered",
            channel_id=handle.channel_id,
            message_id=handle.message_id,
        )

    async def rekey(self, old: MessageHandle, new: MessageHandle) -> RouteEndpoint:
        """Move the endpoint of `old` to `new`, keeping its queued events."""
        async with self._lock:
            if new in self._routes:
                raise RegistryInvariantViolation(
                    f"message {new.channel_id}/{new.message_id} "
                    "already has an active menu"
                )
            endpoint = self._routes.pop(old, None)
            if endpoint is None:
                raise RegistryInvariantViolation(
                    f"message {old.channel_id}/{old.message_id} "
                    "is not registered"
                )
            endpoint.handle = new
            self._routes[new] = endpoint
        log_event(
            self._logger,
            logging.DEBUG,
            "router.rekeyed",
            channel_id=new.channel_id,
            old_message_id=old.message_id,
            message_id=new.message_id,
        )
        return endpoint

    def is_registered(self, handle: MessageHandle) -> bool:
        return handle in self._routes

    def handles(self) -> tuple[MessageHandle, ...]:
        return tuple(self._routes)

    async def dispatch(self, event: MenuEvent) -> bool:
        """Forward `event` to its menu; events for unknown messages are dropped."""
        handle = event.handle
        async with self._lock:
            endpoint = self._routes.get(handle)
            if endpoint is not None:
                endpoint.deliver(event)
        if endpoint is None:
            self._logger.debug(
                "router.dropped event=%s message_id=%s",
                type(event).__name__,
                handle.message_id,
            )
            return False
        return True

    async def _listen(self, source: ReactionEventSource) -> None:
        log_event(self._logger, logging.INFO, "router.listener.started")
        try:
            while True:
                event = await source.next_event()
                if event is None:
                    break
                await self.dispatch(event)
        finally:
            log_event(self._logger, logging.INFO, "router.listener.stopped")
