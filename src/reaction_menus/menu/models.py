"""Platform-neutral message and reaction event types used by the menu runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Union

MessageContent = Dict[str, Any]


@dataclass(frozen=True)
class MessageHandle:
    """Identity of a concrete message: the channel it lives in plus its id."""

    channel_id: str
    message_id: str


@dataclass(frozen=True)
class ReactionAdded:
    channel_id: str
    message_id: str
    emoji: str
    user_id: str

    @property
    def handle(self) -> MessageHandle:
        return MessageHandle(self.channel_id, self.message_id)


@dataclass(frozen=True)
class ReactionRemoved:
    channel_id: str
    message_id: str
    emoji: str
    user_id: str

    @property
    def handle(self) -> MessageHandle:
        return MessageHandle(self.channel_id, self.message_id)


@dataclass(frozen=True)
class MessageDeleted:
    channel_id: str
    message_id: str

    @property
    def handle(self) -> MessageHandle:
        return MessageHandle(self.channel_id, self.message_id)


MenuEvent = Union[ReactionAdded, ReactionRemoved, MessageDeleted]
