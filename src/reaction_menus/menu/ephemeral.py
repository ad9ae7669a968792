from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Callable, Mapping, Optional, Union

from ..core.exceptions import MessageGoneError, TransportError
from ..core.logging_utils import log_event
from .clock import TimeoutClock
from .engine import ErrorHandler
from .models import MessageContent, MessageHandle
from .transport import MessageTransport

ContentBuilder = Callable[[MessageContent], Optional[Mapping[str, object]]]


def _build_content(
    content: Union[Mapping[str, object], ContentBuilder],
) -> MessageContent:
    if callable(content):
        draft: MessageContent = {}
        built = content(draft)
        return dict(built) if built is not None else draft
    return dict(content)


class EphemeralMessage:
    """A message that deletes itself once its timeout elapses."""

    def __init__(
        self,
        transport: MessageTransport,
        handle: MessageHandle,
        clock: TimeoutClock,
        *,
        logger: logging.Logger,
        on_error: Optional[ErrorHandler] = None,
    ) -> None:
        self._transport = transport
        self._handle = handle
        self._clock = clock
        self._logger = logger
        self._on_error = on_error
        self._deleted = False
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def handle(self) -> MessageHandle:
        return self._handle

    @property
    def deleted(self) -> bool:
        return self._deleted

    @classmethod
    async def create(
        cls,
        transport: MessageTransport,
        channel_id: str,
        timeout: float,
        content: Union[Mapping[str, object], ContentBuilder],
        *,
        logger: Optional[logging.Logger] = None,
        on_error: Optional[ErrorHandler] = None,
    ) -> "EphemeralMessage":
        """Send a new message that is deleted after `timeout` seconds.

        `content` is either a payload mapping or a callable that fills the
        draft payload it receives (returning None) or returns a new one.
        """
        payload = _build_content(content)
        message_id = await transport.send_message(str(channel_id), payload)
        handle = MessageHandle(channel_id=str(channel_id), message_id=str(message_id))
        return cls.create_from_message(
            transport, handle, timeout, logger=logger, on_error=on_error
        )

    @classmethod
    def create_from_message(
        cls,
        transport: MessageTransport,
        handle: MessageHandle,
        timeout: float,
        *,
        logger: Optional[logging.Logger] = None,
        on_error: Optional[ErrorHandler] = None,
    ) -> "EphemeralMessage":
        """Ensure an already existing message is deleted after `timeout`."""
        clock = TimeoutClock(timeout, name=f"ephemeral:{handle.message_id}")
        message = cls(
            transport,
            handle,
            clock,
            logger=logger or logging.getLogger(__name__),
            on_error=on_error,
        )
        message._start()
        return message

    @property
    def finished(self) -> bool:
        return self._task is not None and self._task.done()

    def cancel(self) -> bool:
        """Disarm the deletion, e.g. because the message is already gone."""
        return self._clock.cancel()

    def message_deleted(self) -> bool:
        """Record that the host deleted the message; disarms the timer."""
        if not self._clock.cancel():
            return False
        self._deleted = True
        log_event(
            self._logger,
            logging.DEBUG,
            "ephemeral.host_deleted",
            message_id=self._handle.message_id,
        )
        return True

    async def wait(self) -> bool:
        """Wait for the deletion attempt; True when the message is gone."""
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
        return self._deleted

    def _start(self) -> None:
        self._clock.start()
        self._task = asyncio.create_task(
            self._delete_on_expiry(), name=f"ephemeral-{self._handle.message_id}"
        )

    async def _delete_on_expiry(self) -> None:
        log_event(
            self._logger,
            logging.DEBUG,
            "ephemeral.armed",
            message_id=self._handle.message_id,
            timeout=self._clock.timeout,
        )
        if not await self._clock.wait():
            log_event(
                self._logger,
                logging.DEBUG,
                "ephemeral.cancelled",
                message_id=self._handle.message_id,
            )
            return
        try:
            await self._transport.delete_message(
                self._handle.channel_id, self._handle.message_id
            )
        except MessageGoneError:
            self._deleted = True
            log_event(
                self._logger,
                logging.DEBUG,
                "ephemeral.already_deleted",
                message_id=self._handle.message_id,
            )
            return
        except TransportError as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "ephemeral.delete_failed",
                channel_id=self._handle.channel_id,
                message_id=self._handle.message_id,
                exc=exc,
            )
            await self._report(exc)
            return
        self._deleted = True
        log_event(
            self._logger,
            logging.DEBUG,
            "ephemeral.deleted",
            message_id=self._handle.message_id,
        )

    async def _report(self, exc: Exception) -> None:
        if self._on_error is None:
            return
        try:
            result = self._on_error(exc)
            if inspect.isawaitable(result):
                await result
        except Exception as handler_exc:
            self._logger.warning("ephemeral.error_handler.failed: %s", handler_exc)
