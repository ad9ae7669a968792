from __future__ import annotations

from typing import Optional

from ...menu.models import MessageContent
from .errors import DiscordAPIError
from .rest import DiscordRestClient


class DiscordMessageTransport:
    """`MessageTransport` backed by the Discord REST API."""

    def __init__(self, rest: DiscordRestClient) -> None:
        self._rest = rest

    async def send_message(self, channel_id: str, content: MessageContent) -> str:
        response = await self._rest.create_channel_message(
            channel_id=channel_id, payload=dict(content)
        )
        message_id = response.get("id")
        if message_id is None:
            raise DiscordAPIError(
                f"Discord create message response for channel {channel_id} has no id"
            )
        return str(message_id)

    async def edit_message(
        self, channel_id: str, message_id: str, content: MessageContent
    ) -> None:
        await self._rest.edit_channel_message(
            channel_id=channel_id, message_id=message_id, payload=dict(content)
        )

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        await self._rest.delete_channel_message(
            channel_id=channel_id, message_id=message_id
        )

    async def add_reaction(self, channel_id: str, message_id: str, emoji: str) -> None:
        await self._rest.create_reaction(
            channel_id=channel_id, message_id=message_id, emoji=emoji
        )

    async def remove_reaction(
        self,
        channel_id: str,
        message_id: str,
        emoji: str,
        user_id: Optional[str] = None,
    ) -> None:
        if user_id is None:
            await self._rest.delete_own_reaction(
                channel_id=channel_id, message_id=message_id, emoji=emoji
            )
            return
        await self._rest.delete_user_reaction(
            channel_id=channel_id,
            message_id=message_id,
            emoji=emoji,
            user_id=user_id,
        )

    async def clear_reactions(self, channel_id: str, message_id: str) -> None:
        await self._rest.delete_all_reactions(
            channel_id=channel_id, message_id=message_id
        )

    async def has_newer_messages(self, channel_id: str, message_id: str) -> bool:
        newer = await self._rest.get_channel_messages(
            channel_id=channel_id, after=message_id, limit=1
        )
        return bool(newer)
