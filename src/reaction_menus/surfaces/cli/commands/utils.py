from __future__ import annotations

import logging
import re
from typing import NoReturn, Optional

import typer

logger = logging.getLogger("reaction_menus.cli")

_DURATION_PART_RE = re.compile(r"(\d+)([smh])")


def get_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("reaction-menus")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def parse_duration(value: str) -> float:
    """Seconds for ``30s``, ``2m``, ``1h30m`` or a bare number of seconds."""
    raw = (value or "").strip().lower()
    if not raw:
        raise_exit("Duration must not be empty.")
    if raw.isdigit():
        total_seconds = int(raw)
    else:
        matches = list(_DURATION_PART_RE.finditer(raw))
        if not matches or "".join(m.group(0) for m in matches) != raw:
            raise_exit(
                f"Invalid duration {value!r}. "
                "Use forms like 30s, 2m, or combined 1h30m."
            )
        multipliers = {"s": 1, "m": 60, "h": 3600}
        total_seconds = sum(
            int(match.group(1)) * multipliers[match.group(2)] for match in matches
        )
    if total_seconds <= 0:
        raise_exit("Duration must be greater than zero.")
    return float(total_seconds)
