"""Reaction-driven menus and self-deleting messages."""

from .builder import MenuBuilder, MenuContext
from .clock import TimeoutClock
from .constants import (
    CLOSE_MENU_EMOJI,
    CLOSE_MODE_CLEAR_REACTIONS,
    CLOSE_MODE_DELETE,
    EXTRA_LONG_TIMEOUT,
    FIRST_PAGE_EMOJI,
    HELP_EMOJI,
    LAST_PAGE_EMOJI,
    LONG_TIMEOUT,
    MEDIUM_TIMEOUT,
    NEXT_PAGE_EMOJI,
    PREVIOUS_PAGE_EMOJI,
    SHORT_TIMEOUT,
)
from .controls import Control
from .engine import ActiveMenu, Menu, MenuState
from .ephemeral import EphemeralMessage
from .models import (
    MenuEvent,
    MessageContent,
    MessageDeleted,
    MessageHandle,
    ReactionAdded,
    ReactionRemoved,
)
from .page import DynamicPage, Page, StaticPage
from .router import EventRouter, RouteEndpoint
from .transport import MessageTransport, ReactionEventSource

__all__ = [
    "ActiveMenu",
    "CLOSE_MENU_EMOJI",
    "CLOSE_MODE_CLEAR_REACTIONS",
    "CLOSE_MODE_DELETE",
    "Control",
    "DynamicPage",
    "EXTRA_LONG_TIMEOUT",
    "EphemeralMessage",
    "EventRouter",
    "FIRST_PAGE_EMOJI",
    "HELP_EMOJI",
    "LAST_PAGE_EMOJI",
    "LONG_TIMEOUT",
    "MEDIUM_TIMEOUT",
    "Menu",
    "MenuBuilder",
    "MenuContext",
    "MenuEvent",
    "MenuState",
    "MessageContent",
    "MessageDeleted",
    "MessageHandle",
    "MessageTransport",
    "NEXT_PAGE_EMOJI",
    "PREVIOUS_PAGE_EMOJI",
    "Page",
    "ReactionAdded",
    "ReactionEventSource",
    "ReactionRemoved",
    "RouteEndpoint",
    "SHORT_TIMEOUT",
    "StaticPage",
    "TimeoutClock",
]
