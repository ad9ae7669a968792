from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"
DISCORD_GATEWAY_URL = "wss://gateway.discord.gg/?v=10&encoding=json"

# Gateway intents bitflags (https://discord.com/developers/docs/topics/gateway#gateway-intents).
DISCORD_INTENT_GUILDS = 1 << 0
DISCORD_INTENT_GUILD_MESSAGES = 1 << 9
DISCORD_INTENT_GUILD_MESSAGE_REACTIONS = 1 << 10
DISCORD_INTENT_DIRECT_MESSAGE_REACTIONS = 1 << 13

# Dispatch event names the menu runtime consumes.
DISCORD_EVENT_READY = "READY"
DISCORD_EVENT_REACTION_ADD = "MESSAGE_REACTION_ADD"
DISCORD_EVENT_REACTION_REMOVE = "MESSAGE_REACTION_REMOVE"
DISCORD_EVENT_MESSAGE_DELETE = "MESSAGE_DELETE"
DISCORD_EVENT_MESSAGE_DELETE_BULK = "MESSAGE_DELETE_BULK"
DISCORD_EVENT_RESUMED = "RESUMED"

# Dispatches forwarded by the gateway client; everything else is dropped there.
MENU_DISPATCH_EVENTS = frozenset(
    {
        DISCORD_EVENT_READY,
        DISCORD_EVENT_REACTION_ADD,
        DISCORD_EVENT_REACTION_REMOVE,
        DISCORD_EVENT_MESSAGE_DELETE,
        DISCORD_EVENT_MESSAGE_DELETE_BULK,
    }
)
