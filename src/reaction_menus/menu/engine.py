from __future__ import annotations

import asyncio
import contextlib
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from ..core.exceptions import (
    MessageGoneError,
    PageRenderError,
    RegistryInvariantViolation,
    TransportError,
)
from ..core.logging_utils import log_event
from .clock import TimeoutClock
from .constants import CLOSE_MODE_DELETE, STICKY_CHECK_INTERVAL
from .controls import Control, build_help_content, format_help_lines
from .models import (
    MessageContent,
    MessageDeleted,
    MessageHandle,
    ReactionAdded,
    ReactionRemoved,
)
from .page import Page
from .router import EventRouter, RouteEndpoint
from .transport import MessageTransport

ErrorHandler = Callable[[Exception], Union[None, Awaitable[None]]]

CLOSE_REASON_CONTROL = "closed"
CLOSE_REASON_REQUESTED = "requested"
CLOSE_REASON_TIMEOUT = "timeout"
CLOSE_REASON_MESSAGE_DELETED = "message_deleted"
CLOSE_REASON_CANCELLED = "cancelled"

# Reasons after which the message still exists and gets stripped or deleted.
_CLEANUP_REASONS = frozenset(
    {CLOSE_REASON_CONTROL, CLOSE_REASON_REQUESTED, CLOSE_REASON_TIMEOUT}
)


class MenuState(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"


@dataclass(frozen=True)
class _CloseRequest:
    reason: str


async def _cancel_task(task: "asyncio.Task[Any]") -> None:
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


class Menu:
    """Run loop and state for one paginated message.

    All state changes happen inside `run()`; other tasks interact with a
    menu only by delivering events to its endpoint.
    """

    def __init__(
        self,
        *,
        handle: MessageHandle,
        pages: Sequence[Page],
        transport: MessageTransport,
        router: EventRouter,
        endpoint: RouteEndpoint,
        controls: Mapping[str, Control],
        timeout: float,
        current_page: int = 0,
        owner_id: Optional[str] = None,
        bot_user_id: Optional[str] = None,
        close_mode: str,
        remove_user_reactions: bool = True,
        sticky: bool = False,
        sticky_interval: float = STICKY_CHECK_INTERVAL,
        error_handler: Optional[ErrorHandler] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not pages:
            raise ValueError("a menu needs at least one page")
        if not 0 <= current_page < len(pages):
            raise ValueError(f"page {current_page} is out of range")
        self._handle = handle
        self._pages = tuple(pages)
        self._transport = transport
        self._router = router
        self._endpoint = endpoint
        self._controls = dict(controls)
        self._owner_id = owner_id
        self._bot_user_id = bot_user_id
        self._close_mode = close_mode
        self._remove_user_reactions = remove_user_reactions
        self._sticky = sticky
        self._sticky_interval = sticky_interval
        self._error_handler = error_handler
        self._logger = logger or logging.getLogger(__name__)
        self._clock = TimeoutClock(timeout, name=f"menu:{handle.message_id}")
        self._current_page = current_page
        self._help_active = False
        self._state = MenuState.ACTIVE
        self._close_reason: Optional[str] = None
        self._started = False

    @property
    def handle(self) -> MessageHandle:
        return self._handle

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def help_active(self) -> bool:
        return self._help_active

    @property
    def state(self) -> MenuState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is MenuState.CLOSED

    @property
    def close_reason(self) -> Optional[str]:
        return self._close_reason

    @property
    def started(self) -> bool:
        return self._started

    @property
    def sticky(self) -> bool:
        return self._sticky

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def clock(self) -> TimeoutClock:
        return self._clock

    @property
    def controls(self) -> Mapping[str, Control]:
        return dict(self._controls)

    def request_close(self, reason: str = CLOSE_REASON_CONTROL) -> None:
        """Ask the run loop to close the menu.

        Control actions run inside the loop and close after the current
        event; any other caller is queued behind pending events.
        """
        if self._close_reason is not None:
            return
        if reason == CLOSE_REASON_CONTROL:
            self._close_reason = reason
        else:
            self._endpoint.deliver(_CloseRequest(reason))

    async def run(self) -> None:
        self._started = True
        self._clock.start()
        clock_waiter = asyncio.create_task(self._clock.wait())
        sticky_timer: Optional[asyncio.Task[None]] = None
        log_event(
            self._logger,
            logging.INFO,
            "menu.started",
            channel_id=self._handle.channel_id,
            message_id=self._handle.message_id,
            pages=self.page_count,
            timeout=self._clock.timeout,
        )
        try:
            await self._add_controls()
            while self._close_reason is None:
                receiver = asyncio.create_task(self._endpoint.receive())
                waiters: set[asyncio.Task[Any]] = {receiver, clock_waiter}
                if self._sticky:
                    if sticky_timer is None:
                        sticky_timer = asyncio.create_task(
                            asyncio.sleep(self._sticky_interval)
                        )
                    waiters.add(sticky_timer)
                done, _pending = await asyncio.wait(
                    waiters, return_when=asyncio.FIRST_COMPLETED
                )
                if clock_waiter in done:
                    await _cancel_task(receiver)
                    self._close_reason = CLOSE_REASON_TIMEOUT
                    break
                if receiver in done:
                    await self._handle_event(receiver.result())
                else:
                    await _cancel_task(receiver)
                if sticky_timer is not None and sticky_timer in done:
                    sticky_timer = None
                    if self._close_reason is None:
                        await self._keep_at_bottom()
        except asyncio.CancelledError:
            if self._close_reason is None:
                self._close_reason = CLOSE_REASON_CANCELLED
            raise
        finally:
            for waiter in (clock_waiter, sticky_timer):
                if waiter is not None and not waiter.done():
                    waiter.cancel()
            await self._teardown()
        if self._close_reason in _CLEANUP_REASONS:
            await self._cleanup_message()

    async def show_page(self, index: int) -> bool:
        """Display page `index`, clamped to the valid range.

        Returns False when the page is already on screen. The current index
        only moves once the edit succeeded.
        """
        target = max(0, min(index, self.page_count - 1))
        if target == self._current_page and not self._help_active:
            return False
        content = await self._render(target)
        await self._edit(content)
        self._current_page = target
        self._help_active = False
        return True

    async def toggle_help(self) -> None:
        content = await self._render(self._current_page)
        if not self._help_active:
            help_text = format_help_lines(self.help_entries())
            content = build_help_content(content, help_text)
        await self._edit(content)
        self._help_active = not self._help_active

    async def recreate(self) -> MessageHandle:
        """Re-post the menu as a new message and delete the old one.

        The registry entry is re-keyed before the old message is deleted, so
        that deletion never reaches this menu as a `MessageDeleted` event.
        """
        old = self._handle
        content = await self._render(self._current_page)
        if self._help_active:
            content = build_help_content(
                content, format_help_lines(self.help_entries())
            )
        message_id = await self._transport.send_message(old.channel_id, content)
        new = MessageHandle(channel_id=old.channel_id, message_id=str(message_id))
        await self._router.rekey(old, new)
        self._handle = new
        log_event(
            self._logger,
            logging.INFO,
            "menu.recreated",
            channel_id=new.channel_id,
            old_message_id=old.message_id,
            message_id=new.message_id,
        )
        await self._add_controls()
        with contextlib.suppress(MessageGoneError):
            await self._transport.delete_message(old.channel_id, old.message_id)
        return new

    async def abandon(self) -> None:
        """Release the registry entry of a menu whose run loop never started."""
        if self._started or self._state is MenuState.CLOSED:
            return
        self._close_reason = CLOSE_REASON_CANCELLED
        await self._teardown()

    def help_entries(self) -> list[tuple[str, str]]:
        bound = sorted(self._controls.items(), key=lambda item: item[1].position)
        return [(emoji, control.help) for emoji, control in bound if control.help]

    async def report_error(self, exc: Exception, **fields: Any) -> None:
        log_event(
            self._logger,
            logging.ERROR,
            "menu.error",
            channel_id=self._handle.channel_id,
            message_id=self._handle.message_id,
            page=self._current_page,
            exc=exc,
            **fields,
        )
        if self._error_handler is None:
            return
        try:
            result = self._error_handler(exc)
            if inspect.isawaitable(result):
                await result
        except Exception as handler_exc:
            log_event(
                self._logger,
                logging.WARNING,
                "menu.error_handler.failed",
                message_id=self._handle.message_id,
                exc=handler_exc,
            )

    async def _handle_event(self, event: object) -> None:
        if isinstance(event, _CloseRequest):
            self._close_reason = event.reason
            return
        if isinstance(event, MessageDeleted):
            # A sticky menu deletes its previous message itself.
            if event.handle == self._handle:
                self._close_reason = CLOSE_REASON_MESSAGE_DELETED
            return
        if isinstance(event, ReactionRemoved) or not isinstance(event, ReactionAdded):
            return
        if self._bot_user_id is not None and event.user_id == self._bot_user_id:
            return
        accepted = self._owner_id is None or event.user_id == self._owner_id
        if accepted:
            # Slide the deadline before any transport round trip.
            self._clock.reset()
        if self._remove_user_reactions:
            await self._remove_user_reaction(event)
        if not accepted:
            self._logger.debug(
                "menu.reaction.not_owner message_id=%s user_id=%s",
                self._handle.message_id,
                event.user_id,
            )
            return
        control = self._controls.get(event.emoji)
        if control is None:
            return
        try:
            await control.action(self, event)
        except RegistryInvariantViolation:
            raise
        except Exception as exc:
            await self.report_error(exc, emoji=event.emoji, user_id=event.user_id)

    async def _keep_at_bottom(self) -> None:
        channel_id = self._handle.channel_id
        try:
            if await self._transport.has_newer_messages(
                channel_id, self._handle.message_id
            ):
                await self.recreate()
        except (TransportError, PageRenderError) as exc:
            await self.report_error(exc, stage="sticky")

    async def _render(self, index: int) -> MessageContent:
        return await self._pages[index].resolve(index, self.page_count)

    async def _edit(self, content: MessageContent) -> None:
        await self._transport.edit_message(
            self._handle.channel_id, self._handle.message_id, content
        )

    async def _add_controls(self) -> None:
        ordered = sorted(self._controls.items(), key=lambda item: item[1].position)
        for emoji, _control in ordered:
            try:
                await self._transport.add_reaction(
                    self._handle.channel_id, self._handle.message_id, emoji
                )
            except TransportError as exc:
                await self.report_error(exc, emoji=emoji, stage="add_controls")
                return

    async def _remove_user_reaction(self, event: ReactionAdded) -> None:
        try:
            await self._transport.remove_reaction(
                event.channel_id, event.message_id, event.emoji, event.user_id
            )
        except TransportError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "menu.reaction.remove_failed",
                message_id=self._handle.message_id,
                emoji=event.emoji,
                exc=exc,
            )

    async def _teardown(self) -> None:
        if self._state is MenuState.CLOSED:
            return
        self._clock.cancel()
        await self._router.unregister(self._handle)
        self._state = MenuState.CLOSED
        log_event(
            self._logger,
            logging.INFO,
            "menu.closed",
            channel_id=self._handle.channel_id,
            message_id=self._handle.message_id,
            reason=self._close_reason,
        )

    async def _cleanup_message(self) -> None:
        channel_id = self._handle.channel_id
        message_id = self._handle.message_id
        try:
            if self._close_mode == CLOSE_MODE_DELETE:
                await self._transport.delete_message(channel_id, message_id)
            else:
                await self._transport.clear_reactions(channel_id, message_id)
        except MessageGoneError:
            return
        except TransportError as exc:
            await self.report_error(exc, stage="close")


class ActiveMenu:
    """Handle returned to the caller of `MenuBuilder.build`."""

    def __init__(self, menu: Menu, task: "asyncio.Task[None]") -> None:
        self._menu = menu
        self._task = task
        self._abandoned: Optional[asyncio.Task[None]] = None
        task.add_done_callback(self._on_task_done)

    @property
    def handle(self) -> MessageHandle:
        return self._menu.handle

    @property
    def menu(self) -> Menu:
        return self._menu

    @property
    def closed(self) -> bool:
        return self._menu.closed

    def close(self) -> None:
        self._menu.request_close(CLOSE_REASON_REQUESTED)

    async def wait_closed(self) -> None:
        """Wait until the menu is closed.

        Cancelling the waiter (or timing it out) leaves the menu running.
        """
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
        if self._abandoned is not None:
            await asyncio.shield(self._abandoned)

    def _on_task_done(self, task: "asyncio.Task[None]") -> None:
        # A task cancelled before its first step never reaches run()'s teardown.
        if not self._menu.started:
            self._abandoned = task.get_loop().create_task(self._menu.abandon())
