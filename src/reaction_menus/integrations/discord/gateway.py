"""Discord gateway session feeding the menu runtime.

The client keeps one session alive and forwards only the dispatches menus
consume (READY, reaction add/remove and message deletes). A session that
drops after READY is resumed on Discord's resume URL, so reactions sent
while reconnecting are replayed instead of being lost.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import platform
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from ...core.logging_utils import log_event
from .constants import (
    DISCORD_EVENT_READY,
    DISCORD_EVENT_RESUMED,
    DISCORD_GATEWAY_URL,
    MENU_DISPATCH_EVENTS,
)
from .errors import DiscordAPIError, DiscordPermanentError
from .rest import DiscordRestClient

OP_DISPATCH = 0
OP_HEARTBEAT = 1
OP_IDENTIFY = 2
OP_RESUME = 6
OP_RECONNECT = 7
OP_INVALID_SESSION = 9
OP_HELLO = 10
OP_HEARTBEAT_ACK = 11

# Bad token, bad intents or disallowed intents: reconnecting cannot help.
FATAL_CLOSE_CODES = frozenset({4004, 4010, 4011, 4012, 4013, 4014})
# The server dropped the session; the next connection must IDENTIFY.
SESSION_RESET_CLOSE_CODES = frozenset({4007, 4009})
# Any code other than 1000/1001 keeps the session resumable.
RESUMABLE_CLOSE_CODE = 4000

GATEWAY_QUERY = "v=10&encoding=json"

DispatchHandler = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True)
class GatewayFrame:
    op: int
    d: Any = None
    s: Optional[int] = None
    t: Optional[str] = None


@dataclass(frozen=True)
class GatewaySession:
    session_id: str
    resume_url: Optional[str] = None
    user_id: Optional[str] = None


def build_identify_payload(*, bot_token: str, intents: int) -> dict[str, Any]:
    return {
        "op": OP_IDENTIFY,
        "d": {
            "token": bot_token,
            "intents": intents,
            "properties": {
                "os": platform.system().lower() or "unknown",
                "browser": "reaction-menus",
                "device": "reaction-menus",
            },
        },
    }


def build_resume_payload(
    *, bot_token: str, session_id: str, sequence: int
) -> dict[str, Any]:
    return {
        "op": OP_RESUME,
        "d": {"token": bot_token, "session_id": session_id, "seq": sequence},
    }


def build_heartbeat_payload(sequence: Optional[int]) -> dict[str, Any]:
    return {"op": OP_HEARTBEAT, "d": sequence}


def parse_gateway_frame(frame: str | bytes | dict[str, Any]) -> GatewayFrame:
    if isinstance(frame, bytes):
        frame = frame.decode("utf-8")
    if isinstance(frame, str):
        try:
            payload = json.loads(frame)
        except json.JSONDecodeError as exc:
            raise DiscordAPIError(f"Discord gateway sent invalid JSON: {exc}") from exc
    else:
        payload = dict(frame)
    if not isinstance(payload, dict):
        raise DiscordAPIError("Discord gateway frame must be a JSON object")
    op = payload.get("op")
    if not isinstance(op, int):
        raise DiscordAPIError(f"Discord gateway frame missing numeric op: {payload!r}")
    seq = payload.get("s")
    event_type = payload.get("t")
    return GatewayFrame(
        op=op,
        d=payload.get("d"),
        s=seq if isinstance(seq, int) else None,
        t=event_type if isinstance(event_type, str) else None,
    )


def reconnect_delay(
    attempt: int,
    *,
    base_seconds: float = 1.0,
    max_seconds: float = 30.0,
    rand_float: Callable[[], float] = random.random,
) -> float:
    """Exponential backoff with +/-20% jitter, capped at `max_seconds`."""
    if base_seconds <= 0.0 or max_seconds <= 0.0:
        return 0.0
    exponent = min(max(attempt, 0), 16)
    jitter = 0.8 + 0.4 * min(max(rand_float(), 0.0), 1.0)
    return min(max_seconds, base_seconds * (2**exponent) * jitter)


def gateway_close_code(exc: BaseException) -> Optional[int]:
    """Close code the server sent, when `exc` carries one."""
    for source in (getattr(exc, "rcvd", None), exc):
        code = getattr(source, "code", None)
        if isinstance(code, int):
            return code
    return None


def _with_query(url: str) -> str:
    if "?" in url:
        return url
    return f"{url.rstrip('/')}/?{GATEWAY_QUERY}"


def _session_from_ready(payload: Any) -> Optional[GatewaySession]:
    if not isinstance(payload, dict):
        return None
    session_id = payload.get("session_id")
    if not isinstance(session_id, str) or not session_id:
        return None
    resume_url = payload.get("resume_gateway_url")
    user = payload.get("user")
    user_id = user.get("id") if isinstance(user, dict) else None
    return GatewaySession(
        session_id=session_id,
        resume_url=resume_url if isinstance(resume_url, str) and resume_url else None,
        user_id=str(user_id) if user_id is not None else None,
    )


class DiscordGatewayClient:
    """Keeps one resumable gateway session alive for the menu runtime."""

    def __init__(
        self,
        *,
        bot_token: str,
        intents: int,
        logger: logging.Logger,
        gateway_url: Optional[str] = None,
        dispatch_events: Iterable[str] = MENU_DISPATCH_EVENTS,
        rand_float: Callable[[], float] = random.random,
    ) -> None:
        self._bot_token = bot_token
        self._intents = intents
        self._logger = logger
        self._gateway_url = gateway_url
        self._dispatch_events = frozenset(dispatch_events)
        self._rand_float = rand_float
        self._session: Optional[GatewaySession] = None
        self._sequence: Optional[int] = None
        self._heartbeat_acked = True
        self._established = False
        self._stop_event = asyncio.Event()
        self._heartbeat_task: Optional[asyncio.Task[None]] = None
        self._websocket: Any = None

    @property
    def sequence(self) -> Optional[int]:
        return self._sequence

    @property
    def session(self) -> Optional[GatewaySession]:
        return self._session

    @property
    def user_id(self) -> Optional[str]:
        return self._session.user_id if self._session is not None else None

    async def stop(self) -> None:
        self._stop_event.set()
        await self._cancel_heartbeat()
        if self._websocket is not None:
            with contextlib.suppress(Exception):
                await self._websocket.close()

    async def run(self, on_dispatch: DispatchHandler) -> None:
        attempt = 0
        while not self._stop_event.is_set():
            halt_reason: Optional[str] = None
            self._established = False
            try:
                url = await self._connect_url()
                async with websockets.connect(url) as websocket:
                    self._websocket = websocket
                    await self._run_connection(websocket, on_dispatch)
            except asyncio.CancelledError:
                raise
            except DiscordPermanentError as exc:
                halt_reason = str(exc)
            except ConnectionClosed as exc:
                halt_reason = self._handle_close(gateway_close_code(exc))
            except Exception as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.gateway.error",
                    exc=exc,
                )
            finally:
                self._websocket = None
                await self._cancel_heartbeat()

            if self._stop_event.is_set():
                break
            if halt_reason is not None:
                log_event(
                    self._logger,
                    logging.ERROR,
                    "discord.gateway.halted",
                    reason=halt_reason,
                    hint="fix the bot token or intents and restart",
                )
                await self._stop_event.wait()
                break
            if self._established:
                attempt = 0
            delay = reconnect_delay(attempt, rand_float=self._rand_float)
            attempt += 1
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.reconnecting",
                attempt=attempt,
                delay_seconds=round(delay, 3),
                resume=self._session is not None,
            )
            await asyncio.sleep(delay)

    def _handle_close(self, code: Optional[int]) -> Optional[str]:
        """Returns a halt reason for fatal codes, None when reconnecting."""
        if code in FATAL_CLOSE_CODES:
            return f"gateway_close_code={code}"
        if code in SESSION_RESET_CLOSE_CODES:
            self._reset_session()
        log_event(
            self._logger,
            logging.INFO,
            "discord.gateway.closed",
            close_code=code,
        )
        return None

    async def _connect_url(self) -> str:
        if self._session is not None and self._session.resume_url:
            return _with_query(self._session.resume_url)
        if self._gateway_url:
            return self._gateway_url
        async with DiscordRestClient(bot_token=self._bot_token) as rest:
            payload = await rest.get_gateway_bot()
        url = payload.get("url") if isinstance(payload, dict) else None
        if not isinstance(url, str) or not url:
            return DISCORD_GATEWAY_URL
        return _with_query(url)

    def _handshake_payload(self) -> dict[str, Any]:
        session = self._session
        if session is not None and self._sequence is not None:
            log_event(
                self._logger,
                logging.INFO,
                "discord.gateway.resuming",
                session_id=session.session_id,
                sequence=self._sequence,
            )
            return build_resume_payload(
                bot_token=self._bot_token,
                session_id=session.session_id,
                sequence=self._sequence,
            )
        return build_identify_payload(bot_token=self._bot_token, intents=self._intents)

    def _reset_session(self) -> None:
        self._session = None
        self._sequence = None

    async def _run_connection(
        self, websocket: Any, on_dispatch: DispatchHandler
    ) -> None:
        hello = parse_gateway_frame(await websocket.recv())
        if hello.op != OP_HELLO:
            raise DiscordAPIError("Discord gateway expected HELLO before IDENTIFY")
        heartbeat_data = hello.d if isinstance(hello.d, dict) else {}
        heartbeat_ms = heartbeat_data.get("heartbeat_interval")
        if not isinstance(heartbeat_ms, (int, float)) or heartbeat_ms <= 0:
            raise DiscordAPIError("Discord gateway HELLO missing heartbeat_interval")

        self._heartbeat_acked = True
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(websocket, float(heartbeat_ms) / 1000.0)
        )
        await websocket.send(json.dumps(self._handshake_payload()))

        async for raw_message in websocket:
            frame = parse_gateway_frame(raw_message)
            if frame.s is not None:
                self._sequence = frame.s

            if frame.op == OP_DISPATCH:
                if frame.t == DISCORD_EVENT_READY:
                    self._session = _session_from_ready(frame.d)
                    self._established = True
                    log_event(
                        self._logger,
                        logging.INFO,
                        "discord.gateway.session.ready",
                        session_id=self._session.session_id if self._session else None,
                        user_id=self.user_id,
                    )
                elif frame.t == DISCORD_EVENT_RESUMED:
                    self._established = True
                    log_event(
                        self._logger,
                        logging.INFO,
                        "discord.gateway.session.resumed",
                        sequence=self._sequence,
                    )
                if frame.t in self._dispatch_events and isinstance(frame.d, dict):
                    await on_dispatch(frame.t, frame.d)
                continue
            if frame.op == OP_HEARTBEAT:
                payload = build_heartbeat_payload(self._sequence)
                await websocket.send(json.dumps(payload))
                continue
            if frame.op == OP_HEARTBEAT_ACK:
                self._heartbeat_acked = True
                continue
            if frame.op == OP_RECONNECT:
                log_event(
                    self._logger, logging.INFO, "discord.gateway.reconnect_requested"
                )
                await websocket.close(code=RESUMABLE_CLOSE_CODE)
                return
            if frame.op == OP_INVALID_SESSION:
                resumable = frame.d is True
                if not resumable:
                    self._reset_session()
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.gateway.session.invalid",
                    resumable=resumable,
                )
                return

    async def _heartbeat_loop(self, websocket: Any, interval_seconds: float) -> None:
        # First beat lands at a random point within the interval.
        delay = interval_seconds * min(max(self._rand_float(), 0.0), 1.0)
        while not self._stop_event.is_set():
            await asyncio.sleep(delay)
            delay = interval_seconds
            if not self._heartbeat_acked:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "discord.gateway.heartbeat.missed_ack",
                    sequence=self._sequence,
                )
                await websocket.close(code=RESUMABLE_CLOSE_CODE)
                return
            self._heartbeat_acked = False
            await websocket.send(json.dumps(build_heartbeat_payload(self._sequence)))

    async def _cancel_heartbeat(self) -> None:
        task = self._heartbeat_task
        if task is None:
            return
        self._heartbeat_task = None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            # Sends fail once the socket is gone.
            log_event(
                self._logger,
                logging.DEBUG,
                "discord.gateway.heartbeat.ended",
                exc=exc,
            )
