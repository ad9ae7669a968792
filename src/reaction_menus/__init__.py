"""Reaction-driven paginated menus and self-deleting messages for chat bots."""

from .menu import (
    EXTRA_LONG_TIMEOUT,
    LONG_TIMEOUT,
    MEDIUM_TIMEOUT,
    SHORT_TIMEOUT,
    ActiveMenu,
    EphemeralMessage,
    EventRouter,
    MenuBuilder,
    MenuContext,
    Page,
)

__all__ = [
    "ActiveMenu",
    "EXTRA_LONG_TIMEOUT",
    "EphemeralMessage",
    "EventRouter",
    "LONG_TIMEOUT",
    "MEDIUM_TIMEOUT",
    "MenuBuilder",
    "MenuContext",
    "Page",
    "SHORT_TIMEOUT",
]
