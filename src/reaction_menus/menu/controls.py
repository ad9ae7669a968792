from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence

from .models import MessageContent, ReactionAdded

if TYPE_CHECKING:
    from .engine import Menu

ControlAction = Callable[["Menu", ReactionAdded], Awaitable[None]]

HELP_FIELD_NAME = "Help"


@dataclass(frozen=True)
class Control:
    """An emoji binding: where it sits in the reaction row and what it does."""

    position: int
    action: ControlAction
    help: Optional[str] = None


async def first_page(menu: "Menu", _event: ReactionAdded) -> None:
    await menu.show_page(0)


async def previous_page(menu: "Menu", _event: ReactionAdded) -> None:
    await menu.show_page(menu.current_page - 1)


async def next_page(menu: "Menu", _event: ReactionAdded) -> None:
    await menu.show_page(menu.current_page + 1)


async def last_page(menu: "Menu", _event: ReactionAdded) -> None:
    await menu.show_page(menu.page_count - 1)


async def close_menu(menu: "Menu", _event: ReactionAdded) -> None:
    menu.request_close()


async def toggle_help(menu: "Menu", _event: ReactionAdded) -> None:
    await menu.toggle_help()


def format_help_lines(entries: Sequence[tuple[str, str]]) -> str:
    return "\n".join(f" - {emoji} {text}" for emoji, text in entries)


def build_help_content(page: MessageContent, help_text: str) -> MessageContent:
    """Overlay a "Help" embed field onto a copy of `page`."""
    content = copy.deepcopy(page)
    field: dict[str, Any] = {
        "name": HELP_FIELD_NAME,
        "value": help_text,
        "inline": False,
    }
    embeds = content.get("embeds")
    if isinstance(embeds, list) and embeds and isinstance(embeds[0], dict):
        fields = embeds[0].setdefault("fields", [])
        if isinstance(fields, list):
            fields.append(field)
        else:
            embeds[0]["fields"] = [field]
    else:
        content["embeds"] = [{"fields": [field]}]
    return content
