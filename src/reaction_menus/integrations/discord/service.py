from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Mapping, Optional, Sequence, Union

from ...core.config import MenuDefaults
from ...core.logging_utils import log_event
from ...menu.builder import MenuBuilder, MenuContext
from ...menu.constants import (
    DEFAULT_CLOSE_MODE,
    DEFAULT_MENU_TIMEOUT,
    SHORT_TIMEOUT,
)
from ...menu.engine import ActiveMenu, ErrorHandler
from ...menu.ephemeral import ContentBuilder, EphemeralMessage
from ...menu.models import MessageDeleted, MessageHandle
from ...menu.page import Page
from ...menu.router import EventRouter
from .config import DiscordMenuConfig
from .errors import DiscordAPIError
from .event_source import DiscordGatewayEventSource
from .gateway import DiscordGatewayClient
from .rest import DiscordRestClient
from .transport import DiscordMessageTransport

DEFAULT_MENU_DEFAULTS = MenuDefaults(
    timeout_seconds=DEFAULT_MENU_TIMEOUT,
    ephemeral_timeout_seconds=SHORT_TIMEOUT,
    close_mode=DEFAULT_CLOSE_MODE,
    show_help=False,
)


class DiscordMenuService:
    """Wires the Discord REST client and gateway into the menu runtime.

    `start()` connects the gateway, installs the event router and resolves
    the bot's own user id so the control reactions it adds are ignored.
    """

    def __init__(
        self,
        config: DiscordMenuConfig,
        *,
        logger: logging.Logger,
        menu_defaults: Optional[MenuDefaults] = None,
        rest_client: Optional[DiscordRestClient] = None,
        gateway_client: Optional[DiscordGatewayClient] = None,
        router: Optional[EventRouter] = None,
        error_handler: Optional[ErrorHandler] = None,
    ) -> None:
        self._config = config
        self._logger = logger
        self._defaults = menu_defaults or DEFAULT_MENU_DEFAULTS
        self._error_handler = error_handler

        self._rest = (
            rest_client
            if rest_client is not None
            else DiscordRestClient(
                bot_token=config.bot_token or "",
                timeout_seconds=config.request_timeout_seconds,
                max_retries=config.max_retries,
            )
        )
        self._owns_rest = rest_client is None

        self._gateway = (
            gateway_client
            if gateway_client is not None
            else DiscordGatewayClient(
                bot_token=config.bot_token or "",
                intents=config.intents,
                logger=logger,
                gateway_url=config.gateway_url,
            )
        )
        self._router = router if router is not None else EventRouter(logger=logger)
        self._source = DiscordGatewayEventSource(
            logger=logger, on_message_deleted=self._on_message_deleted
        )
        self._ephemeral: dict[MessageHandle, EphemeralMessage] = {}
        self._transport = DiscordMessageTransport(self._rest)
        self._bot_user_id: Optional[str] = None
        self._gateway_task: Optional[asyncio.Task[None]] = None
        self._started = False
        self._stopped = False

    @property
    def router(self) -> EventRouter:
        return self._router

    @property
    def transport(self) -> DiscordMessageTransport:
        return self._transport

    @property
    def event_source(self) -> DiscordGatewayEventSource:
        return self._source

    @property
    def bot_user_id(self) -> Optional[str]:
        return self._bot_user_id

    @property
    def pending_ephemeral(self) -> tuple[MessageHandle, ...]:
        return tuple(
            handle
            for handle, message in self._ephemeral.items()
            if not message.finished
        )

    async def start(self) -> None:
        if self._started:
            return
        self._started = True
        user = await self._rest.get_current_user()
        user_id = user.get("id")
        if user_id is None:
            raise DiscordAPIError("Discord /users/@me response has no id")
        self._bot_user_id = str(user_id)
        self._router.install(self._source)
        self._gateway_task = asyncio.create_task(
            self._gateway.run(self._source.on_dispatch), name="discord-gateway"
        )
        log_event(
            self._logger,
            logging.INFO,
            "discord.menus.started",
            bot_user_id=self._bot_user_id,
            intents=self._config.intents,
        )

    async def wait_ready(self, timeout: Optional[float] = None) -> None:
        """Wait until the gateway session is identified."""
        await asyncio.wait_for(self._source.wait_ready(), timeout=timeout)

    async def run_forever(self) -> None:
        await self.start()
        try:
            if self._gateway_task is not None:
                await self._gateway_task
        finally:
            await self.stop()

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        with contextlib.suppress(Exception):
            await self._gateway.stop()
        if self._gateway_task is not None and not self._gateway_task.done():
            self._gateway_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._gateway_task
        self._source.close()
        await self._router.close()
        if self._owns_rest:
            with contextlib.suppress(Exception):
                await self._rest.close()
        log_event(self._logger, logging.INFO, "discord.menus.stopped")

    def context(self) -> MenuContext:
        return MenuContext(
            transport=self._transport,
            router=self._router,
            bot_user_id=self._bot_user_id,
            error_handler=self._error_handler,
            logger=self._logger,
        )

    async def paginate(
        self,
        channel_id: str,
        pages: Sequence[Page],
        *,
        timeout: Optional[float] = None,
        show_help: Optional[bool] = None,
        owner_id: Optional[str] = None,
        close_mode: Optional[str] = None,
        sticky: bool = False,
    ) -> ActiveMenu:
        builder = MenuBuilder.new_paginator().add_pages(pages)
        if timeout is None:
            timeout = self._defaults.timeout_seconds
        builder.timeout(timeout)
        builder.close_mode(close_mode or self._defaults.close_mode)
        if show_help is None:
            show_help = self._defaults.show_help
        if show_help:
            builder.show_help()
        if owner_id is not None:
            builder.restrict_to_invoker(owner_id)
        if sticky:
            builder.sticky()
        return await builder.build(self.context(), channel_id)

    async def send_ephemeral(
        self,
        channel_id: str,
        content: Union[Mapping[str, object], ContentBuilder],
        timeout: Optional[float] = None,
    ) -> EphemeralMessage:
        if timeout is None:
            timeout = self._defaults.ephemeral_timeout_seconds
        message = await EphemeralMessage.create(
            self._transport,
            channel_id,
            timeout,
            content,
            logger=self._logger,
            on_error=self._error_handler,
        )
        self._ephemeral = {
            handle: pending
            for handle, pending in self._ephemeral.items()
            if not pending.finished
        }
        self._ephemeral[message.handle] = message
        return message

    def _on_message_deleted(self, event: MessageDeleted) -> None:
        message = self._ephemeral.pop(event.handle, None)
        if message is not None and message.message_deleted():
            log_event(
                self._logger,
                logging.INFO,
                "discord.ephemeral.host_deleted",
                channel_id=event.channel_id,
                message_id=event.message_id,
            )
