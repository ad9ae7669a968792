from .discord import register_discord_commands

__all__ = ["register_discord_commands"]
