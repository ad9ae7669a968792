from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional

import typer

from ....core.config import AppConfig, load_config
from ....core.exceptions import ConfigError, TransportError
from ....core.logging_utils import setup_rotating_logger
from ....integrations.discord.config import DiscordMenuConfig
from ....integrations.discord.service import DiscordMenuService
from ....menu.constants import CLOSE_MODE_DELETE
from ....menu.page import Page

READY_TIMEOUT_SECONDS = 30.0


def split_pages(text: str, *, separator: str = "---") -> list[str]:
    """Split on lines consisting only of `separator`; blank chunks are dropped."""
    chunks: list[str] = []
    current: list[str] = []
    for line in text.splitlines():
        if line.strip() == separator:
            chunks.append("\n".join(current))
            current = []
            continue
        current.append(line)
    chunks.append("\n".join(current))
    return [chunk.strip() for chunk in chunks if chunk.strip()]


def build_text_pages(chunks: list[str]) -> list[Page]:
    total = len(chunks)
    return [
        Page.new_static(
            {
                "embeds": [
                    {
                        "description": chunk,
                        "footer": {"text": f"Page {index + 1}/{total}"},
                    }
                ]
            }
        )
        for index, chunk in enumerate(chunks)
    ]


def create_menu_service(
    app_config: AppConfig, discord_config: DiscordMenuConfig
) -> DiscordMenuService:
    logger = setup_rotating_logger("reaction-menus-discord", app_config.log)
    return DiscordMenuService(
        discord_config, logger=logger, menu_defaults=app_config.menus
    )


async def _run_paginate(
    service: DiscordMenuService,
    *,
    channel_id: str,
    pages: list[Page],
    timeout: Optional[float],
    show_help: Optional[bool],
    owner_id: Optional[str],
    close_mode: Optional[str],
    sticky: bool = False,
) -> None:
    await service.start()
    try:
        await service.wait_ready(timeout=READY_TIMEOUT_SECONDS)
        active = await service.paginate(
            channel_id,
            pages,
            timeout=timeout,
            show_help=show_help,
            owner_id=owner_id,
            close_mode=close_mode,
            sticky=sticky,
        )
        await active.wait_closed()
    finally:
        await service.stop()


async def _run_ephemeral(
    service: DiscordMenuService,
    *,
    channel_id: str,
    text: str,
    timeout: Optional[float],
) -> bool:
    await service.start()
    try:
        message = await service.send_ephemeral(
            channel_id, {"content": text}, timeout=timeout
        )
        return await message.wait()
    finally:
        await service.stop()


def register_discord_commands(
    app: typer.Typer,
    *,
    raise_exit: Callable,
    parse_duration: Callable[[str], float],
    service_factory: Callable[
        [AppConfig, DiscordMenuConfig], DiscordMenuService
    ] = create_menu_service,
) -> None:
    def _load(path: Optional[Path]) -> tuple[AppConfig, DiscordMenuConfig]:
        try:
            config = load_config(path or Path.cwd())
            discord_cfg = DiscordMenuConfig.from_raw(config.discord)
        except ConfigError as exc:
            raise_exit(str(exc), cause=exc)
        if not discord_cfg.enabled:
            raise_exit("discord is disabled; set discord.enabled: true")
        return config, discord_cfg

    @app.command("paginate")
    def discord_paginate(
        channel: str = typer.Option(..., "--channel", help="Target channel id"),
        file: Path = typer.Option(
            ..., "--file", exists=True, dir_okay=False, help="Text file with pages"
        ),
        separator: str = typer.Option(
            "---", "--separator", help="Line that separates two pages"
        ),
        timeout: Optional[str] = typer.Option(
            None, "--timeout", help="Idle timeout, e.g. 30s, 2m, 1h30m"
        ),
        help_page: Optional[bool] = typer.Option(
            None, "--help-page/--no-help-page", help="Bind the help toggle"
        ),
        owner: Optional[str] = typer.Option(
            None, "--owner", help="Only this user id may drive the menu"
        ),
        delete_on_close: bool = typer.Option(
            False, "--delete-on-close", help="Delete the message when it closes"
        ),
        sticky: bool = typer.Option(
            False, "--sticky", help="Re-post the menu when newer messages bury it"
        ),
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding reaction-menus.yml"
        ),
    ) -> None:
        """Post a paginated menu and keep it alive until it closes."""
        timeout_seconds = parse_duration(timeout) if timeout is not None else None
        try:
            text = file.read_text(encoding="utf-8")
        except OSError as exc:
            raise_exit(f"Failed to read {file}: {exc}", cause=exc)
        chunks = split_pages(text, separator=separator)
        if not chunks:
            raise_exit(f"No pages found in {file}.")
        config, discord_cfg = _load(path)
        service = service_factory(config, discord_cfg)
        try:
            asyncio.run(
                _run_paginate(
                    service,
                    channel_id=channel,
                    pages=build_text_pages(chunks),
                    timeout=timeout_seconds,
                    show_help=help_page,
                    owner_id=owner,
                    close_mode=CLOSE_MODE_DELETE if delete_on_close else None,
                    sticky=sticky,
                )
            )
        except (TransportError, asyncio.TimeoutError) as exc:
            raise_exit(f"Discord menu failed: {exc}", cause=exc)
        except KeyboardInterrupt:
            typer.echo("Menu stopped.")
            return
        typer.echo("Menu closed.")

    @app.command("ephemeral")
    def discord_ephemeral(
        channel: str = typer.Option(..., "--channel", help="Target channel id"),
        text: str = typer.Option(..., "--text", help="Message content"),
        timeout: Optional[str] = typer.Option(
            None, "--timeout", help="Lifetime, e.g. 5s, 2m"
        ),
        path: Optional[Path] = typer.Option(
            None, "--path", help="Directory holding reaction-menus.yml"
        ),
    ) -> None:
        """Post a message that deletes itself after the timeout."""
        timeout_seconds = parse_duration(timeout) if timeout is not None else None
        config, discord_cfg = _load(path)
        service = service_factory(config, discord_cfg)
        try:
            deleted = asyncio.run(
                _run_ephemeral(
                    service,
                    channel_id=channel,
                    text=text,
                    timeout=timeout_seconds,
                )
            )
        except TransportError as exc:
            raise_exit(f"Discord message failed: {exc}", cause=exc)
        if not deleted:
            raise_exit("Message could not be deleted.")
        typer.echo("Message deleted.")
