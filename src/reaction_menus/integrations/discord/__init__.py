"""Discord collaborator for reaction menus: REST transport and gateway events."""

from .config import DiscordMenuConfig
from .errors import (
    DiscordAPIError,
    DiscordConfigError,
    DiscordError,
    DiscordNotFoundError,
    DiscordPermanentError,
    DiscordTransientError,
)
from .event_source import DiscordGatewayEventSource
from .gateway import DiscordGatewayClient
from .reactions import parse_reaction_event
from .rest import DiscordRestClient
from .service import DiscordMenuService
from .transport import DiscordMessageTransport

__all__ = [
    "DiscordAPIError",
    "DiscordConfigError",
    "DiscordError",
    "DiscordGatewayClient",
    "DiscordGatewayEventSource",
    "DiscordMenuConfig",
    "DiscordMenuService",
    "DiscordMessageTransport",
    "DiscordNotFoundError",
    "DiscordPermanentError",
    "DiscordRestClient",
    "DiscordTransientError",
    "parse_reaction_event",
]
