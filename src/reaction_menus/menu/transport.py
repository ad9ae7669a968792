"""Collaborator contracts consumed by the menu runtime.

The runtime never talks to a chat platform directly. Outbound calls go
through a `MessageTransport`; inbound reaction traffic arrives through a
`ReactionEventSource`.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from .models import MenuEvent, MessageContent


@runtime_checkable
class MessageTransport(Protocol):
    """Outbound message operations implemented by platform transports.

    Failures are raised as `TransportError`; `delete_message` raises
    `MessageGoneError` when the message no longer exists.
    """

    async def send_message(self, channel_id: str, content: MessageContent) -> str:
        """Post a new message and return its id."""

    async def edit_message(
        self, channel_id: str, message_id: str, content: MessageContent
    ) -> None:
        """Replace the content of an existing message."""

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        """Delete a message."""

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        """React to a message as the bot."""

    async def remove_reaction(
        self,
        channel_id: str,
        message_id: str,
        emoji: str,
        user_id: Optional[str] = None,
    ) -> None:
        """Remove one reaction; the bot's own when `user_id` is None."""

    async def clear_reactions(self, channel_id: str, message_id: str) -> None:
        """Remove every reaction from a message."""

    async def has_newer_messages(self, channel_id: str, message_id: str) -> bool:
        """True when `channel_id` holds messages posted after `message_id`."""


@runtime_checkable
class ReactionEventSource(Protocol):
    """Inbound event stream. `None` signals that the stream has ended."""

    async def next_event(self) -> Optional[MenuEvent]: ...
