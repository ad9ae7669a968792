from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .constants import (
    DISCORD_INTENT_DIRECT_MESSAGE_REACTIONS,
    DISCORD_INTENT_GUILD_MESSAGE_REACTIONS,
    DISCORD_INTENT_GUILD_MESSAGES,
    DISCORD_INTENT_GUILDS,
)
from .errors import DiscordConfigError

DEFAULT_BOT_TOKEN_ENV = "REACTION_MENUS_DISCORD_BOT_TOKEN"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_INTENTS = (
    DISCORD_INTENT_GUILDS
    | DISCORD_INTENT_GUILD_MESSAGES
    | DISCORD_INTENT_GUILD_MESSAGE_REACTIONS
    | DISCORD_INTENT_DIRECT_MESSAGE_REACTIONS
)


@dataclass(frozen=True)
class DiscordMenuConfig:
    enabled: bool
    bot_token_env: str
    bot_token: Optional[str]
    intents: int
    gateway_url: Optional[str]
    request_timeout_seconds: float
    max_retries: int

    @classmethod
    def from_raw(
        cls,
        raw: Optional[Mapping[str, Any]],
        *,
        env: Optional[Mapping[str, str]] = None,
    ) -> "DiscordMenuConfig":
        cfg: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}
        environ = os.environ if env is None else env

        enabled = _parse_bool_or_default(
            cfg.get("enabled"), default=True, key="discord.enabled"
        )
        bot_token_env = str(cfg.get("bot_token_env", DEFAULT_BOT_TOKEN_ENV)).strip()
        if not bot_token_env:
            raise DiscordConfigError("discord.bot_token_env must be non-empty")
        bot_token = (environ.get(bot_token_env) or "").strip() or None

        intents_value = cfg.get("intents", DEFAULT_INTENTS)
        if isinstance(intents_value, bool) or not isinstance(intents_value, int):
            raise DiscordConfigError("discord.intents must be an integer")
        if intents_value < 0:
            raise DiscordConfigError("discord.intents must be >= 0")

        gateway_url_value = cfg.get("gateway_url")
        if gateway_url_value is not None and not isinstance(gateway_url_value, str):
            raise DiscordConfigError("discord.gateway_url must be a string")
        gateway_url = (gateway_url_value or "").strip() or None

        timeout_value = cfg.get(
            "request_timeout_seconds", DEFAULT_REQUEST_TIMEOUT_SECONDS
        )
        if isinstance(timeout_value, bool) or not isinstance(
            timeout_value, (int, float)
        ):
            raise DiscordConfigError(
                "discord.request_timeout_seconds must be a number"
            )
        if timeout_value <= 0:
            raise DiscordConfigError("discord.request_timeout_seconds must be > 0")

        max_retries = _parse_non_negative_int_or_default(
            cfg.get("max_retries"),
            default=DEFAULT_MAX_RETRIES,
            key="discord.max_retries",
        )

        if enabled and not bot_token:
            raise DiscordConfigError(
                f"Discord bot is enabled but env var {bot_token_env} is unset"
            )

        return cls(
            enabled=enabled,
            bot_token_env=bot_token_env,
            bot_token=bot_token,
            intents=intents_value,
            gateway_url=gateway_url,
            request_timeout_seconds=float(timeout_value),
            max_retries=max_retries,
        )


def _parse_non_negative_int_or_default(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise DiscordConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise DiscordConfigError(f"{key} must be an integer") from exc
    if parsed < 0:
        raise DiscordConfigError(f"{key} must be >= 0")
    return parsed


def _parse_bool_or_default(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise DiscordConfigError(f"{key} must be a boolean")
