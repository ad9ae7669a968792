from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from ...core.logging_utils import log_event
from ...menu.models import MenuEvent, MessageDeleted
from .constants import DISCORD_EVENT_READY
from .reactions import parse_reaction_event


class DiscordGatewayEventSource:
    """Queue between gateway dispatches and the menu event router.

    `on_dispatch` is handed to `DiscordGatewayClient.run`; `next_event` is
    consumed by `EventRouter.install`. `on_message_deleted` sees every
    deletion before it is queued, including messages no menu owns.
    """

    def __init__(
        self,
        *,
        logger: Optional[logging.Logger] = None,
        on_message_deleted: Optional[Callable[[MessageDeleted], None]] = None,
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._on_message_deleted = on_message_deleted
        self._queue: asyncio.Queue[Optional[MenuEvent]] = asyncio.Queue()
        self._bot_user_id: Optional[str] = None
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def bot_user_id(self) -> Optional[str]:
        return self._bot_user_id

    async def wait_ready(self) -> Optional[str]:
        await self._ready.wait()
        return self._bot_user_id

    async def on_dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        if self._closed:
            return
        if event_type == DISCORD_EVENT_READY:
            user = payload.get("user")
            user_id = user.get("id") if isinstance(user, dict) else None
            if user_id is not None:
                self._bot_user_id = str(user_id)
            self._ready.set()
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.ready",
                bot_user_id=self._bot_user_id,
            )
            return
        for event in parse_reaction_event(event_type, payload):
            if isinstance(event, MessageDeleted) and self._on_message_deleted:
                self._on_message_deleted(event)
            self._queue.put_nowait(event)

    def close(self) -> None:
        """End the stream; the router listener exits after draining."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def next_event(self) -> Optional[MenuEvent]:
        return await self._queue.get()
