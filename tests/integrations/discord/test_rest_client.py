from __future__ import annotations

from typing import Any

import httpx
import pytest

from reaction_menus.core.exceptions import MessageGoneError, TransportError
from reaction_menus.integrations.discord.errors import (
    DiscordAPIError,
    DiscordNotFoundError,
    DiscordPermanentError,
    DiscordTransientError,
)
from reaction_menus.integrations.discord.rest import DiscordRestClient, encode_emoji


async def _configure_mock_client(
    client: DiscordRestClient, transport: httpx.MockTransport
) -> None:
    await client._client.aclose()
    client._client = httpx.AsyncClient(
        base_url="https://discord.test/api/v10",
        transport=transport,
        timeout=10.0,
    )


def _client() -> DiscordRestClient:
    return DiscordRestClient(
        bot_token="abc123", base_url="https://discord.test/api/v10"
    )


@pytest.fixture()
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        recorded.append(seconds)

    monkeypatch.setattr(
        "reaction_menus.integrations.discord.rest.asyncio.sleep", fake_sleep
    )
    return recorded


@pytest.mark.anyio
async def test_discord_rest_client_sets_authorization_header() -> None:
    observed: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        observed["authorization"] = request.headers.get("Authorization")
        observed["path"] = request.url.path
        return httpx.Response(200, json={"id": "bot-1", "username": "menus"})

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        payload = await client.get_current_user()
    finally:
        await client.close()

    assert payload["id"] == "bot-1"
    assert observed["authorization"] == "Bot abc123"
    assert observed["path"] == "/api/v10/users/@me"


@pytest.mark.anyio
async def test_message_and_reaction_routes() -> None:
    observed: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        observed.append((request.method, request.url.raw_path.decode("ascii")))
        if request.method in {"POST", "PATCH"}:
            return httpx.Response(200, json={"id": "msg-1"})
        return httpx.Response(204)

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        created = await client.create_channel_message(
            channel_id="chan-1", payload={"content": "hi"}
        )
        await client.edit_channel_message(
            channel_id="chan-1", message_id="msg-1", payload={"content": "edited"}
        )
        await client.create_reaction(
            channel_id="chan-1", message_id="msg-1", emoji="➡️"
        )
        await client.delete_own_reaction(
            channel_id="chan-1", message_id="msg-1", emoji="party:42"
        )
        await client.delete_user_reaction(
            channel_id="chan-1", message_id="msg-1", emoji="❌", user_id="user-9"
        )
        await client.delete_all_reactions(channel_id="chan-1", message_id="msg-1")
        await client.delete_channel_message(channel_id="chan-1", message_id="msg-1")
    finally:
        await client.close()

    arrow = encode_emoji("➡️")
    cross = encode_emoji("❌")
    assert created == {"id": "msg-1"}
    assert observed == [
        ("POST", "/api/v10/channels/chan-1/messages"),
        ("PATCH", "/api/v10/channels/chan-1/messages/msg-1"),
        ("PUT", f"/api/v10/channels/chan-1/messages/msg-1/reactions/{arrow}/@me"),
        ("DELETE", "/api/v10/channels/chan-1/messages/msg-1/reactions/party:42/@me"),
        (
            "DELETE",
            f"/api/v10/channels/chan-1/messages/msg-1/reactions/{cross}/user-9",
        ),
        ("DELETE", "/api/v10/channels/chan-1/messages/msg-1/reactions"),
        ("DELETE", "/api/v10/channels/chan-1/messages/msg-1"),
    ]


def test_encode_emoji_percent_encodes_unicode() -> None:
    assert encode_emoji("❌") == "%E2%9D%8C"
    assert encode_emoji("name:123") == "name:123"


@pytest.mark.anyio
async def test_rate_limit_retry_after_retries_and_succeeds(
    sleeps: list[float],
) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] < 3:
            return httpx.Response(429, headers={"Retry-After": "0.25"}, json={})
        return httpx.Response(200, json={"id": "msg-1"})

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        payload = await client.create_channel_message(
            channel_id="chan-1",
            payload={"content": "hello"},
        )
    finally:
        await client.close()

    assert payload == {"id": "msg-1"}
    assert attempts["count"] == 3
    assert sleeps == [0.25, 0.25]


@pytest.mark.anyio
async def test_rate_limit_exhaustion_is_transient(sleeps: list[float]) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "1.5"}, json={})

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        with pytest.raises(DiscordTransientError) as excinfo:
            await client.create_reaction(
                channel_id="chan-1", message_id="msg-1", emoji="➡️"
            )
    finally:
        await client.close()

    assert excinfo.value.retry_after == 1.5
    assert sleeps == [1.5, 1.5, 1.5]


@pytest.mark.anyio
async def test_server_errors_retry_with_backoff_then_fail(
    sleeps: list[float],
) -> None:
    attempts = {"count": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(502, text="bad gateway")

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        with pytest.raises(DiscordTransientError) as excinfo:
            await client.edit_channel_message(
                channel_id="chan-1", message_id="msg-1", payload={"content": "x"}
            )
    finally:
        await client.close()

    assert attempts["count"] == 4
    assert len(sleeps) == 3
    assert excinfo.value.status_code == 502
    assert isinstance(excinfo.value, TransportError)


@pytest.mark.anyio
async def test_network_errors_retry_then_succeed(sleeps: list[float]) -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(204)

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        await client.delete_all_reactions(channel_id="chan-1", message_id="msg-1")
    finally:
        await client.close()

    assert attempts["count"] == 2
    assert len(sleeps) == 1


@pytest.mark.anyio
async def test_missing_message_maps_to_not_found() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Unknown Message", "code": 10008})

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        with pytest.raises(DiscordNotFoundError) as excinfo:
            await client.delete_channel_message(channel_id="chan-1", message_id="gone")
    finally:
        await client.close()

    assert isinstance(excinfo.value, MessageGoneError)
    assert isinstance(excinfo.value, DiscordAPIError)


@pytest.mark.parametrize("status_code", [401, 403])
@pytest.mark.anyio
async def test_auth_failures_are_permanent(status_code: int) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"message": "Missing Access"})

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        with pytest.raises(DiscordPermanentError):
            await client.get_gateway_bot()
    finally:
        await client.close()


@pytest.mark.anyio
async def test_other_client_errors_are_plain_api_errors() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "Cannot send an empty message"})

    client = _client()
    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        with pytest.raises(DiscordAPIError) as excinfo:
            await client.create_channel_message(channel_id="chan-1", payload={})
    finally:
        await client.close()

    assert not isinstance(excinfo.value, (DiscordNotFoundError, DiscordTransientError))
    assert "empty message" in str(excinfo.value)


@pytest.mark.anyio
async def test_get_channel_messages_sends_query_and_filters_entries() -> None:
    client = _client()
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "9"}, "junk", {"id": "10"}])

    await _configure_mock_client(client, httpx.MockTransport(handler))
    try:
        messages = await client.get_channel_messages(
            channel_id="chan-1", after="8", limit=500
        )
        unfiltered = await client.get_channel_messages(channel_id="chan-1")
    finally:
        await client.close()

    assert messages == [{"id": "9"}, {"id": "10"}]
    assert len(unfiltered) == 2
    assert seen[0].url.path == "/api/v10/channels/chan-1/messages"
    assert dict(seen[0].url.params) == {"limit": "100", "after": "8"}
    assert dict(seen[1].url.params) == {"limit": "50"}
