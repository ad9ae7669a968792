from __future__ import annotations

from typing import Optional

from ...core.exceptions import ConfigError, MessageGoneError, TransportError


class DiscordError(TransportError):
    """Base Discord integration error."""


class DiscordConfigError(ConfigError):
    """Discord integration configuration error."""


class DiscordAPIError(DiscordError):
    """Discord API request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        user_message: Optional[str] = None,
    ) -> None:
        if user_message is None:
            user_message = "Discord API error."
        super().__init__(message, user_message=user_message)
        self.status_code = status_code
        self.retry_after = retry_after


class DiscordTransientError(DiscordAPIError):
    """Retryable Discord API error (rate limits, network issues)."""


class DiscordPermanentError(DiscordAPIError):
    """Non-retryable Discord API error (bad token, missing permissions)."""

    recoverable = False


class DiscordNotFoundError(DiscordAPIError, MessageGoneError):
    """The channel, message or reaction addressed no longer exists."""
