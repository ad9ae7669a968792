from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..core.exceptions import BuilderError
from ..core.logging_utils import log_event
from .constants import (
    CLOSE_MENU_EMOJI,
    CLOSE_MODE_DELETE,
    CLOSE_MODES,
    DEFAULT_CLOSE_MODE,
    DEFAULT_MENU_TIMEOUT,
    FIRST_PAGE_EMOJI,
    HELP_CONTROL_POSITION,
    HELP_EMOJI,
    LAST_PAGE_EMOJI,
    NEXT_PAGE_EMOJI,
    PREVIOUS_PAGE_EMOJI,
    STICKY_CHECK_INTERVAL,
)
from .controls import (
    Control,
    ControlAction,
    close_menu,
    first_page,
    last_page,
    next_page,
    previous_page,
    toggle_help,
)
from .engine import ActiveMenu, ErrorHandler, Menu
from .models import MessageHandle
from .page import Page
from .router import EventRouter
from .transport import MessageTransport

_PAGINATOR_CONTROLS = (
    (FIRST_PAGE_EMOJI, first_page, "Displays the first page"),
    (PREVIOUS_PAGE_EMOJI, previous_page, "Displays the previous page"),
    (CLOSE_MENU_EMOJI, close_menu, "Closes the menu buttons"),
    (NEXT_PAGE_EMOJI, next_page, "Displays the next page"),
    (LAST_PAGE_EMOJI, last_page, "Displays the last page"),
)


@dataclass(frozen=True)
class MenuContext:
    """Collaborators a menu needs at activation time."""

    transport: MessageTransport
    router: EventRouter
    bot_user_id: Optional[str] = None
    error_handler: Optional[ErrorHandler] = None
    logger: Optional[logging.Logger] = None


class MenuBuilder:
    """Fluent, one-shot configuration for a reaction menu.

    Example::

        menu = await (
            MenuBuilder.new_paginator()
            .add_page(Page.new_static({"content": "one"}))
            .add_page(Page.new_static({"content": "two"}))
            .timeout(30)
            .show_help()
            .build(context, channel_id)
        )
    """

    def __init__(self) -> None:
        self._pages: list[Page] = []
        self._controls: dict[str, Control] = {}
        self._help_overrides: dict[str, str] = {}
        self._timeout = DEFAULT_MENU_TIMEOUT
        self._start_page = 0
        self._owner_id: Optional[str] = None
        self._close_mode = DEFAULT_CLOSE_MODE
        self._remove_user_reactions = True
        self._sticky = False
        self._sticky_interval = STICKY_CHECK_INTERVAL
        self._error_handler: Optional[ErrorHandler] = None
        self._built = False

    @classmethod
    def new_paginator(cls) -> "MenuBuilder":
        """A builder with first/previous/close/next/last controls bound."""
        builder = cls()
        for position, (emoji, action, help_text) in enumerate(_PAGINATOR_CONTROLS):
            builder.add_control(position, emoji, action, help=help_text)
        return builder

    @property
    def built(self) -> bool:
        return self._built

    def add_page(self, page: Page) -> "MenuBuilder":
        self._ensure_mutable()
        if not isinstance(page, Page):
            raise BuilderError(f"expected a Page, got {type(page).__name__}")
        self._pages.append(page)
        return self

    def add_pages(self, pages: Iterable[Page]) -> "MenuBuilder":
        for page in pages:
            self.add_page(page)
        return self

    def add_control(
        self,
        position: int,
        emoji: str,
        action: ControlAction,
        *,
        help: Optional[str] = None,
    ) -> "MenuBuilder":
        self._ensure_mutable()
        emoji = str(emoji)
        if not emoji:
            raise BuilderError("control emoji must be non-empty")
        self._controls[emoji] = Control(position=position, action=action, help=help)
        return self

    def add_help(self, emoji: str, text: str) -> "MenuBuilder":
        self._ensure_mutable()
        self._help_overrides[str(emoji)] = text
        return self

    def timeout(self, seconds: float) -> "MenuBuilder":
        self._ensure_mutable()
        self._timeout = seconds
        return self

    def start_page(self, index: int) -> "MenuBuilder":
        self._ensure_mutable()
        self._start_page = index
        return self

    def show_help(self) -> "MenuBuilder":
        return self.add_control(
            HELP_CONTROL_POSITION, HELP_EMOJI, toggle_help, help="Toggles this help"
        )

    def restrict_to_invoker(self, user_id: str) -> "MenuBuilder":
        """Only reactions from `user_id` drive the menu."""
        self._ensure_mutable()
        self._owner_id = str(user_id)
        return self

    owner = restrict_to_invoker

    def close_mode(self, mode: str) -> "MenuBuilder":
        self._ensure_mutable()
        self._close_mode = mode
        return self

    def delete_on_close(self) -> "MenuBuilder":
        return self.close_mode(CLOSE_MODE_DELETE)

    def remove_user_reactions(self, value: bool = True) -> "MenuBuilder":
        self._ensure_mutable()
        self._remove_user_reactions = value
        return self

    def sticky(
        self, value: bool = True, *, check_interval: float = STICKY_CHECK_INTERVAL
    ) -> "MenuBuilder":
        """Keep the menu the newest message in its channel.

        Every `check_interval` seconds the menu looks for messages posted
        after it and, if there are any, re-posts itself below them.
        """
        self._ensure_mutable()
        self._sticky = value
        self._sticky_interval = check_interval
        return self

    def on_error(self, handler: ErrorHandler) -> "MenuBuilder":
        self._ensure_mutable()
        self._error_handler = handler
        return self

    def _ensure_mutable(self) -> None:
        if self._built:
            raise BuilderError("menu builder was already used to build a menu")

    def _validate(self) -> None:
        if not self._pages:
            raise BuilderError("a menu needs at least one page")
        if isinstance(self._timeout, bool) or not isinstance(
            self._timeout, (int, float)
        ):
            raise BuilderError("menu timeout must be a number of seconds")
        if self._timeout <= 0:
            raise BuilderError("menu timeout must be > 0")
        if not 0 <= self._start_page < len(self._pages):
            raise BuilderError(
                f"start page {self._start_page} is out of range "
                f"for {len(self._pages)} pages"
            )
        if self._close_mode not in CLOSE_MODES:
            raise BuilderError(f"unknown close mode {self._close_mode!r}")
        if self._sticky and (
            isinstance(self._sticky_interval, bool)
            or not isinstance(self._sticky_interval, (int, float))
            or self._sticky_interval <= 0
        ):
            raise BuilderError("sticky check interval must be > 0")

    def _resolved_controls(self) -> dict[str, Control]:
        controls = dict(self._controls)
        for emoji, text in self._help_overrides.items():
            control = controls.get(emoji)
            if control is not None:
                controls[emoji] = Control(control.position, control.action, text)
        return controls

    async def build(self, context: MenuContext, channel_id: str) -> ActiveMenu:
        """Send the first page, register it and start the run loop.

        Returns as soon as the message is posted; the menu keeps running in
        its own task.
        """
        self._ensure_mutable()
        self._validate()
        self._built = True
        logger = context.logger or logging.getLogger(__name__)
        channel_id = str(channel_id)

        first = await self._pages[self._start_page].resolve(
            self._start_page, len(self._pages)
        )
        message_id = await context.transport.send_message(channel_id, first)
        handle = MessageHandle(channel_id=channel_id, message_id=str(message_id))
        endpoint = await context.router.register(handle)

        menu = Menu(
            handle=handle,
            pages=self._pages,
            transport=context.transport,
            router=context.router,
            endpoint=endpoint,
            controls=self._resolved_controls(),
            timeout=float(self._timeout),
            current_page=self._start_page,
            owner_id=self._owner_id,
            bot_user_id=context.bot_user_id,
            close_mode=self._close_mode,
            remove_user_reactions=self._remove_user_reactions,
            sticky=self._sticky,
            sticky_interval=float(self._sticky_interval),
            error_handler=self._error_handler or context.error_handler,
            logger=logger,
        )
        task = asyncio.create_task(menu.run(), name=f"menu-{handle.message_id}")
        log_event(
            logger,
            logging.DEBUG,
            "menu.built",
            channel_id=channel_id,
            message_id=handle.message_id,
            controls=list(menu.controls),
            sticky=self._sticky,
        )
        return ActiveMenu(menu, task)
