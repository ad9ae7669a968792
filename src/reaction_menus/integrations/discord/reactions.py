"""Translate gateway dispatch payloads into menu events."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ...menu.models import MenuEvent, MessageDeleted, ReactionAdded, ReactionRemoved
from .constants import (
    DISCORD_EVENT_MESSAGE_DELETE,
    DISCORD_EVENT_MESSAGE_DELETE_BULK,
    DISCORD_EVENT_REACTION_ADD,
    DISCORD_EVENT_REACTION_REMOVE,
)


def _snowflake(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int)):
        token = str(value).strip()
        return token or None
    return None


def emoji_key(emoji: Any) -> Optional[str]:
    """Unicode emoji as-is; custom emoji as ``name:id`` (the form REST expects)."""
    if not isinstance(emoji, Mapping):
        return None
    name = emoji.get("name")
    emoji_id = _snowflake(emoji.get("id"))
    if emoji_id is not None:
        return f"{name or '_'}:{emoji_id}"
    if isinstance(name, str) and name:
        return name
    return None


def parse_reaction_event(
    event_type: str, payload: Mapping[str, Any]
) -> list[MenuEvent]:
    if not isinstance(payload, Mapping):
        return []
    channel_id = _snowflake(payload.get("channel_id"))
    if channel_id is None:
        return []

    if event_type in (DISCORD_EVENT_REACTION_ADD, DISCORD_EVENT_REACTION_REMOVE):
        message_id = _snowflake(payload.get("message_id"))
        user_id = _snowflake(payload.get("user_id"))
        emoji = emoji_key(payload.get("emoji"))
        if message_id is None or user_id is None or emoji is None:
            return []
        event_cls = (
            ReactionAdded
            if event_type == DISCORD_EVENT_REACTION_ADD
            else ReactionRemoved
        )
        return [
            event_cls(
                channel_id=channel_id,
                message_id=message_id,
                emoji=emoji,
                user_id=user_id,
            )
        ]

    if event_type == DISCORD_EVENT_MESSAGE_DELETE:
        message_id = _snowflake(payload.get("id"))
        if message_id is None:
            return []
        return [MessageDeleted(channel_id=channel_id, message_id=message_id)]

    if event_type == DISCORD_EVENT_MESSAGE_DELETE_BULK:
        ids = payload.get("ids")
        if not isinstance(ids, list):
            return []
        events: list[MenuEvent] = []
        for raw_id in ids:
            message_id = _snowflake(raw_id)
            if message_id is not None:
                events.append(
                    MessageDeleted(channel_id=channel_id, message_id=message_id)
                )
        return events

    return []
