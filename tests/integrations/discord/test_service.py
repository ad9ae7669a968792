from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import pytest

from reaction_menus.core.config import MenuDefaults
from reaction_menus.integrations.discord.config import (
    DEFAULT_BOT_TOKEN_ENV,
    DiscordMenuConfig,
)
from reaction_menus.integrations.discord.gateway import DispatchHandler
from reaction_menus.integrations.discord.service import DiscordMenuService
from reaction_menus.menu.constants import (
    CLOSE_MENU_EMOJI,
    CLOSE_MODE_DELETE,
    HELP_EMOJI,
    NEXT_PAGE_EMOJI,
)
from reaction_menus.menu.page import Page

BOT_ID = "bot-1"


class _FakeRest:
    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self._next_id = 100

    async def get_current_user(self) -> dict[str, Any]:
        return {"id": BOT_ID, "username": "menus"}

    async def create_channel_message(
        self, *, channel_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self._next_id += 1
        self.calls.append(("create", channel_id, payload))
        return {"id": str(self._next_id)}

    async def edit_channel_message(
        self, *, channel_id: str, message_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append(("edit", message_id, payload))
        return {"id": message_id}

    async def delete_channel_message(self, *, channel_id: str, message_id: str) -> None:
        self.calls.append(("delete", message_id))

    async def create_reaction(
        self, *, channel_id: str, message_id: str, emoji: str
    ) -> None:
        self.calls.append(("react", message_id, emoji))

    async def delete_own_reaction(
        self, *, channel_id: str, message_id: str, emoji: str
    ) -> None:
        self.calls.append(("unreact_own", message_id, emoji))

    async def delete_user_reaction(
        self, *, channel_id: str, message_id: str, emoji: str, user_id: str
    ) -> None:
        self.calls.append(("unreact", message_id, emoji, user_id))

    async def delete_all_reactions(self, *, channel_id: str, message_id: str) -> None:
        self.calls.append(("clear", message_id))

    async def get_channel_messages(
        self, *, channel_id: str, after: Optional[str] = None, limit: int = 50
    ) -> list[dict[str, Any]]:
        self.calls.append(("history", channel_id, after))
        return []

    async def close(self) -> None:
        self.calls.append(("close",))

    def named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]


class _FakeGateway:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self._stop = asyncio.Event()
        self.stopped = False
        self._on_dispatch: Optional[DispatchHandler] = None

    async def run(self, on_dispatch: DispatchHandler) -> None:
        self._on_dispatch = on_dispatch
        self.started.set()
        await self._stop.wait()

    async def stop(self) -> None:
        self.stopped = True
        self._stop.set()

    async def dispatch(self, event_type: str, payload: dict[str, Any]) -> None:
        assert self._on_dispatch is not None
        await self._on_dispatch(event_type, payload)


async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def _service(
    rest: _FakeRest,
    gateway: _FakeGateway,
    *,
    menu_defaults: Optional[MenuDefaults] = None,
) -> DiscordMenuService:
    config = DiscordMenuConfig.from_raw({}, env={DEFAULT_BOT_TOKEN_ENV: "t"})
    return DiscordMenuService(
        config,
        logger=logging.getLogger("test.discord.service"),
        menu_defaults=menu_defaults,
        rest_client=rest,  # type: ignore[arg-type]
        gateway_client=gateway,  # type: ignore[arg-type]
    )


def _reaction(message_id: str, emoji: str, user_id: str) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "channel_id": "chan-1",
        "message_id": message_id,
        "emoji": {"id": None, "name": emoji},
    }


@pytest.mark.anyio
async def test_paginated_menu_driven_by_gateway_dispatches() -> None:
    rest = _FakeRest()
    gateway = _FakeGateway()
    service = _service(rest, gateway)

    await service.start()
    await asyncio.wait_for(gateway.started.wait(), timeout=1.0)
    await gateway.dispatch("READY", {"user": {"id": BOT_ID}})
    await service.wait_ready(timeout=1.0)
    assert service.bot_user_id == BOT_ID
    assert service.context().bot_user_id == BOT_ID

    pages = [Page.new_static({"content": f"page {n}"}) for n in range(3)]
    active = await service.paginate("chan-1", pages, timeout=30, show_help=True)
    message_id = active.handle.message_id
    await _wait_for(lambda: len(rest.named("react")) == 6)
    assert rest.named("react")[-1] == ("react", message_id, HELP_EMOJI)

    await gateway.dispatch(
        "MESSAGE_REACTION_ADD", _reaction(message_id, CLOSE_MENU_EMOJI, BOT_ID)
    )
    await gateway.dispatch(
        "MESSAGE_REACTION_ADD", _reaction(message_id, NEXT_PAGE_EMOJI, "user-1")
    )
    await _wait_for(lambda: active.menu.current_page == 1)

    assert not active.closed
    assert rest.named("edit") == [("edit", message_id, {"content": "page 1"})]
    assert rest.named("unreact") == [
        ("unreact", message_id, NEXT_PAGE_EMOJI, "user-1")
    ]

    await gateway.dispatch(
        "MESSAGE_DELETE", {"id": message_id, "channel_id": "chan-1"}
    )
    await asyncio.wait_for(active.wait_closed(), timeout=1.0)
    assert active.menu.close_reason == "message_deleted"

    await service.stop()
    assert gateway.stopped
    assert service.router.handles() == ()
    assert rest.named("close") == []


@pytest.mark.anyio
async def test_paginate_uses_configured_defaults() -> None:
    rest = _FakeRest()
    gateway = _FakeGateway()
    defaults = MenuDefaults(
        timeout_seconds=0.05,
        ephemeral_timeout_seconds=5,
        close_mode=CLOSE_MODE_DELETE,
        show_help=False,
    )
    service = _service(rest, gateway, menu_defaults=defaults)
    await service.start()

    active = await service.paginate(
        "chan-1", [Page.new_static({"content": "only"})], owner_id="owner-1"
    )
    await asyncio.wait_for(active.wait_closed(), timeout=2.0)

    assert active.menu.owner_id == "owner-1"
    assert HELP_EMOJI not in active.menu.controls
    assert rest.named("delete") == [("delete", active.handle.message_id)]
    await service.stop()


@pytest.mark.anyio
async def test_send_ephemeral_deletes_after_timeout() -> None:
    rest = _FakeRest()
    service = _service(rest, _FakeGateway())
    await service.start()

    message = await service.send_ephemeral("chan-1", {"content": "brb"}, timeout=0.02)

    assert await asyncio.wait_for(message.wait(), timeout=1.0) is True
    assert rest.named("create")[0] == ("create", "chan-1", {"content": "brb"})
    assert rest.named("delete") == [("delete", message.handle.message_id)]
    await service.stop()


@pytest.mark.anyio
async def test_run_forever_stops_when_gateway_ends() -> None:
    rest = _FakeRest()
    gateway = _FakeGateway()
    service = _service(rest, gateway)

    task = asyncio.create_task(service.run_forever())
    await asyncio.wait_for(gateway.started.wait(), timeout=1.0)
    await gateway.stop()
    await asyncio.wait_for(task, timeout=1.0)

    assert service.router.installed
    await service.stop()


@pytest.mark.anyio
async def test_host_deleted_ephemeral_is_not_deleted_again() -> None:
    rest = _FakeRest()
    gateway = _FakeGateway()
    service = _service(rest, gateway)
    await service.start()
    await asyncio.wait_for(gateway.started.wait(), timeout=1.0)

    message = await service.send_ephemeral("chan-1", {"content": "brb"}, timeout=0.2)
    assert service.pending_ephemeral == (message.handle,)

    await gateway.dispatch(
        "MESSAGE_DELETE",
        {"id": message.handle.message_id, "channel_id": "chan-1"},
    )

    assert await asyncio.wait_for(message.wait(), timeout=1.0) is True
    assert message.deleted
    assert service.pending_ephemeral == ()
    await asyncio.sleep(0.3)
    assert rest.named("delete") == []
    await service.stop()


@pytest.mark.anyio
async def test_paginate_can_make_the_menu_sticky() -> None:
    rest = _FakeRest()
    service = _service(rest, _FakeGateway())
    await service.start()

    active = await service.paginate(
        "chan-1", [Page.new_static({"content": "only"})], sticky=True
    )

    assert active.menu.sticky
    active.close()
    await asyncio.wait_for(active.wait_closed(), timeout=1.0)
    await service.stop()
