from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .constants import DISCORD_API_BASE_URL
from .errors import (
    DiscordAPIError,
    DiscordNotFoundError,
    DiscordPermanentError,
    DiscordTransientError,
)

logger = logging.getLogger(__name__)


def encode_emoji(emoji: str) -> str:
    """URL-encode a unicode emoji or a custom ``name:id`` emoji for a path."""
    return quote(emoji, safe=":")


class DiscordRestClient:
    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 10.0,
        base_url: str = DISCORD_API_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
        self._authorization_header = f"Bot {bot_token}"
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = self._retry_base_delay * (2**attempt) + random.uniform(0, 1)
        return float(min(delay, self._retry_max_delay))

    def _is_retryable_error(self, exc: Exception) -> bool:
        if isinstance(
            exc,
            (
                httpx.ConnectError,
                httpx.ReadError,
                httpx.WriteError,
                httpx.ConnectTimeout,
                httpx.ReadTimeout,
                httpx.WriteTimeout,
            ),
        ):
            return True
        if isinstance(exc, httpx.HTTPStatusError):
            return 500 <= exc.response.status_code < 600
        return False

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        expect_json: bool = True,
    ) -> Any:
        rate_limit_retries = 0
        retry_attempt = 0

        while True:
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=payload,
                    params=params,
                    headers={"Authorization": self._authorization_header},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code == 429:
                    retry_after_raw = exc.response.headers.get("Retry-After")
                    try:
                        retry_after = max(float(retry_after_raw or 0.0), 0.0)
                    except ValueError:
                        retry_after = 0.0
                    if (
                        retry_after_raw is not None
                        and rate_limit_retries < self._max_retries
                    ):
                        rate_limit_retries += 1
                        logger.info(
                            "Discord rate limited on %s %s, retrying after %.2fs (attempt %d)",
                            method,
                            path,
                            retry_after,
                            rate_limit_retries,
                        )
                        await asyncio.sleep(retry_after)
                        continue
                    raise DiscordTransientError(
                        f"Discord API rate limit exceeded for {method} {path}",
                        status_code=status_code,
                        retry_after=retry_after,
                    ) from exc

                body_preview = (
                    (exc.response.text or "").strip().replace("\n", " ")[:200]
                )
                if 500 <= status_code < 600:
                    if retry_attempt < self._max_retries:
                        retry_attempt += 1
                        delay = self._calculate_retry_delay(retry_attempt)
                        logger.warning(
                            "Discord server error %d on %s %s, retrying in %.1fs (attempt %d/%d)",
                            status_code,
                            method,
                            path,
                            delay,
                            retry_attempt,
                            self._max_retries,
                        )
                        await asyncio.sleep(delay)
                        continue
                    raise DiscordTransientError(
                        f"Discord API server error for {method} {path}: "
                        f"status={status_code} body={body_preview!r}",
                        status_code=status_code,
                    ) from exc
                if status_code == 404:
                    raise DiscordNotFoundError(
                        f"Discord API resource not found for {method} {path}: "
                        f"body={body_preview!r}",
                        status_code=status_code,
                    ) from exc
                if status_code in {401, 403}:
                    raise DiscordPermanentError(
                        f"Discord API authentication failure for {method} {path}: "
                        f"status={status_code} body={body_preview!r}",
                        status_code=status_code,
                    ) from exc
                raise DiscordAPIError(
                    f"Discord API request failed for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                ) from exc
            except httpx.HTTPError as exc:
                if self._is_retryable_error(exc) and retry_attempt < self._max_retries:
                    retry_attempt += 1
                    delay = self._calculate_retry_delay(retry_attempt)
                    logger.warning(
                        "Discord network error on %s %s: %s, retrying in %.1fs (attempt %d/%d)",
                        method,
                        path,
                        type(exc).__name__,
                        delay,
                        retry_attempt,
                        self._max_retries,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise DiscordTransientError(
                    f"Discord API network error for {method} {path}: {exc}"
                ) from exc

            if not expect_json:
                return None
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise DiscordAPIError(
                    f"Discord API returned non-JSON success response for {method} {path}"
                ) from exc

    async def get_gateway_bot(self) -> dict[str, Any]:
        payload = await self._request("GET", "/gateway/bot")
        return payload if isinstance(payload, dict) else {}

    async def get_current_user(self) -> dict[str, Any]:
        payload = await self._request("GET", "/users/@me")
        return payload if isinstance(payload, dict) else {}

    async def get_channel_messages(
        self,
        *,
        channel_id: str,
        after: Optional[str] = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"limit": max(1, min(int(limit), 100))}
        if after is not None:
            params["after"] = after
        response = await self._request(
            "GET",
            f"/channels/{channel_id}/messages",
            params=params,
        )
        if not isinstance(response, list):
            return []
        return [message for message in response if isinstance(message, dict)]

    async def create_channel_message(
        self,
        *,
        channel_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}

    async def edit_channel_message(
        self,
        *,
        channel_id: str,
        message_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "PATCH",
            f"/channels/{channel_id}/messages/{message_id}",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}

    async def delete_channel_message(
        self,
        *,
        channel_id: str,
        message_id: str,
    ) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}",
            expect_json=False,
        )

    async def create_reaction(
        self,
        *,
        channel_id: str,
        message_id: str,
        emoji: str,
    ) -> None:
        await self._request(
            "PUT",
            f"/channels/{channel_id}/messages/{message_id}"
            f"/reactions/{encode_emoji(emoji)}/@me",
            expect_json=False,
        )

    async def delete_own_reaction(
        self,
        *,
        channel_id: str,
        message_id: str,
        emoji: str,
    ) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}"
            f"/reactions/{encode_emoji(emoji)}/@me",
            expect_json=False,
        )

    async def delete_user_reaction(
        self,
        *,
        channel_id: str,
        message_id: str,
        emoji: str,
        user_id: str,
    ) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}"
            f"/reactions/{encode_emoji(emoji)}/{user_id}",
            expect_json=False,
        )

    async def delete_all_reactions(
        self,
        *,
        channel_id: str,
        message_id: str,
    ) -> None:
        await self._request(
            "DELETE",
            f"/channels/{channel_id}/messages/{message_id}/reactions",
            expect_json=False,
        )
