from __future__ import annotations

import asyncio

import pytest

from reaction_menus.core.exceptions import RegistryInvariantViolation
from reaction_menus.menu.models import (
    MessageDeleted,
    MessageHandle,
    ReactionAdded,
    ReactionRemoved,
)
from reaction_menus.menu.router import EventRouter
from reaction_menus.menu.testing import QueueEventSource

HANDLE = MessageHandle(channel_id="chan-1", message_id="msg-1")


@pytest.mark.anyio
async def test_register_twice_is_an_invariant_violation() -> None:
    router = EventRouter()
    await router.register(HANDLE)

    with pytest.raises(RegistryInvariantViolation):
        await router.register(HANDLE)
    assert router.handles() == (HANDLE,)


@pytest.mark.anyio
async def test_unregister_unknown_handle_is_an_invariant_violation() -> None:
    router = EventRouter()

    with pytest.raises(RegistryInvariantViolation):
        await router.unregister(HANDLE)


@pytest.mark.anyio
async def test_same_message_id_in_other_channel_is_a_different_entry() -> None:
    router = EventRouter()
    await router.register(HANDLE)
    other = MessageHandle(channel_id="chan-2", message_id="msg-1")

    await router.register(other)

    assert set(router.handles()) == {HANDLE, other}


@pytest.mark.anyio
async def test_dispatch_forwards_events_in_order() -> None:
    router = EventRouter()
    endpoint = await router.register(HANDLE)
    events = [
        ReactionAdded("chan-1", "msg-1", "➡️", "user-1"),
        ReactionRemoved("chan-1", "msg-1", "➡️", "user-1"),
        MessageDeleted("chan-1", "msg-1"),
    ]

    for event in events:
        assert await router.dispatch(event) is True

    assert endpoint.pending() == 3
    assert [await endpoint.receive() for _ in events] == events


@pytest.mark.anyio
async def test_dispatch_drops_events_for_unknown_messages() -> None:
    router = EventRouter()
    await router.register(HANDLE)
    await router.unregister(HANDLE)

    delivered = await router.dispatch(ReactionAdded("chan-1", "msg-1", "❌", "u"))

    assert delivered is False
    assert not router.is_registered(HANDLE)


@pytest.mark.anyio
async def test_installed_listener_drains_source_until_finished() -> None:
    router = EventRouter()
    endpoint = await router.register(HANDLE)
    source = QueueEventSource()
    listener = router.install(source)

    source.push(ReactionAdded("chan-1", "msg-1", "⏭️", "user-1"))
    source.push(ReactionAdded("chan-9", "msg-9", "⏭️", "user-1"))
    source.finish()
    await asyncio.wait_for(listener, timeout=1.0)

    assert endpoint.pending() == 1
    received = await endpoint.receive()
    assert isinstance(received, ReactionAdded)
    assert received.emoji == "⏭️"


@pytest.mark.anyio
async def test_router_installs_once_and_closes_listener() -> None:
    router = EventRouter()
    router.install(QueueEventSource())

    with pytest.raises(RegistryInvariantViolation):
        router.install(QueueEventSource())

    await router.close()
    assert router.installed


@pytest.mark.anyio
async def test_rekey_moves_endpoint_with_queued_events() -> None:
    router = EventRouter()
    endpoint = await router.register(HANDLE)
    await router.dispatch(ReactionAdded("chan-1", "msg-1", "➡️", "user-1"))
    moved_to = MessageHandle(channel_id="chan-1", message_id="msg-2")

    assert await router.rekey(HANDLE, moved_to) is endpoint

    assert router.handles() == (moved_to,)
    assert endpoint.handle == moved_to
    assert endpoint.pending() == 1
    assert await router.dispatch(MessageDeleted("chan-1", "msg-1")) is False
    assert await router.dispatch(MessageDeleted("chan-1", "msg-2")) is True


@pytest.mark.anyio
async def test_rekey_rejects_unknown_or_taken_handles() -> None:
    router = EventRouter()
    other = MessageHandle(channel_id="chan-1", message_id="msg-2")
    await router.register(HANDLE)
    await router.register(other)

    with pytest.raises(RegistryInvariantViolation):
        await router.rekey(HANDLE, other)
    with pytest.raises(RegistryInvariantViolation):
        await router.rekey(MessageHandle("chan-1", "missing"), HANDLE)
    assert set(router.handles()) == {HANDLE, other}
