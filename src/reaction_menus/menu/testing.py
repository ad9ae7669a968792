"""In-memory collaborators for exercising menus without a chat platform."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.exceptions import MessageGoneError, TransportError
from .models import MenuEvent, MessageContent


@dataclass
class FakeMessage:
    channel_id: str
    message_id: str
    content: MessageContent
    reactions: list[tuple[str, Optional[str]]] = field(default_factory=list)


class FakeMessageTransport:
    """Records every call; individual operations can be made to fail.

    `calls` keeps ``(operation, args...)`` tuples in call order so tests can
    assert on exact transport traffic. Channel history lookups are only
    counted in `history_checks`, since sticky menus poll them continuously.
    """

    def __init__(self, *, bot_user_id: str = "bot") -> None:
        self.bot_user_id = bot_user_id
        self.messages: dict[str, FakeMessage] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Exception] = {}
        self.history_checks = 0
        self._next_id = 1000

    def fail(self, operation: str, exc: Optional[Exception] = None) -> None:
        self.failures[operation] = exc or TransportError(f"{operation} failed")

    def recover(self, operation: str) -> None:
        self.failures.pop(operation, None)

    def calls_for(self, operation: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]

    def _check(self, operation: str) -> None:
        exc = self.failures.get(operation)
        if exc is not None:
            raise exc

    def _message(self, message_id: str) -> FakeMessage:
        message = self.messages.get(message_id)
        if message is None:
            raise MessageGoneError(f"message {message_id} does not exist")
        return message

    async def send_message(self, channel_id: str, content: MessageContent) -> str:
        self.calls.append(("send", channel_id, copy.deepcopy(content)))
        self._check("send")
        self._next_id += 1
        message_id = str(self._next_id)
        self.messages[message_id] = FakeMessage(
            channel_id, message_id, copy.deepcopy(content)
        )
        return message_id

    async def edit_message(
        self, channel_id: str, message_id: str, content: MessageContent
    ) -> None:
        self.calls.append(("edit", channel_id, message_id, copy.deepcopy(content)))
        self._check("edit")
        self._message(message_id).content = copy.deepcopy(content)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        self.calls.append(("delete", channel_id, message_id))
        self._check("delete")
        self._message(message_id)
        del self.messages[message_id]

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        self.calls.append(("react", channel_id, message_id, emoji))
        self._check("react")
        self._message(message_id).reactions.append((emoji, self.bot_user_id))

    async def remove_reaction(
        self,
        channel_id: str,
        message_id: str,
        emoji: str,
        user_id: Optional[str] = None,
    ) -> None:
        self.calls.append(("unreact", channel_id, message_id, emoji, user_id))
        self._check("unreact")
        message = self._message(message_id)
        key = (emoji, user_id or self.bot_user_id)
        if key in message.reactions:
            message.reactions.remove(key)

    async def clear_reactions(self, channel_id: str, message_id: str) -> None:
        self.calls.append(("clear", channel_id, message_id))
        self._check("clear")
        self._message(message_id).reactions.clear()

    async def has_newer_messages(self, channel_id: str, message_id: str) -> bool:
        self.history_checks += 1
        self._check("history")
        return any(
            message.channel_id == channel_id
            and int(message.message_id) > int(message_id)
            for message in self.messages.values()
        )

    def post_external(self, channel_id: str, content: MessageContent) -> str:
        """Add a message posted by someone other than the bot."""
        self._next_id += 1
        message_id = str(self._next_id)
        self.messages[message_id] = FakeMessage(
            channel_id, message_id, copy.deepcopy(content)
        )
        return message_id


class QueueEventSource:
    """Event source fed by tests; `finish()` ends the stream."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[MenuEvent]] = asyncio.Queue()

    def push(self, event: MenuEvent) -> None:
        self._queue.put_nowait(event)

    def finish(self) -> None:
        self._queue.put_nowait(None)

    async def next_event(self) -> Optional[MenuEvent]:
        return await self._queue.get()
