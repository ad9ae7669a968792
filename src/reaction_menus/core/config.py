from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from ..menu.constants import (
    CLOSE_MODES,
    DEFAULT_CLOSE_MODE,
    LONG_TIMEOUT,
    SHORT_TIMEOUT,
)
from .exceptions import ConfigError

logger = logging.getLogger("reaction_menus.core.config")

CONFIG_FILENAME = "reaction-menus.yml"
DOTENV_FILENAME = ".env"

DEFAULT_CONFIG: Dict[str, Any] = {
    "log": {
        "path": ".reaction-menus/reaction-menus.log",
        "max_bytes": 5_000_000,
        "backup_count": 3,
    },
    "menus": {
        "timeout_seconds": LONG_TIMEOUT,
        "ephemeral_timeout_seconds": SHORT_TIMEOUT,
        "close_mode": DEFAULT_CLOSE_MODE,
        "show_help": False,
    },
    "discord": {},
}


@dataclasses.dataclass(frozen=True)
class LogConfig:
    path: Path
    max_bytes: int
    backup_count: int


@dataclasses.dataclass(frozen=True)
class MenuDefaults:
    timeout_seconds: float
    ephemeral_timeout_seconds: float
    close_mode: str
    show_help: bool


@dataclasses.dataclass(frozen=True)
class AppConfig:
    root: Path
    log: LogConfig
    menus: MenuDefaults
    discord: Dict[str, Any]
    raw: Dict[str, Any]


def _merge_defaults(
    base: Mapping[str, Any], overrides: Mapping[str, Any]
) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _positive_number(value: Any, *, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number")
    if value <= 0:
        raise ConfigError(f"{key} must be > 0")
    return float(value)


def _positive_int(value: Any, *, key: str) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        raise ConfigError(f"{key} must be > 0")
    return parsed


def _parse_menu_defaults(raw: Mapping[str, Any]) -> MenuDefaults:
    close_mode = str(raw.get("close_mode", DEFAULT_CLOSE_MODE)).strip().lower()
    if close_mode not in CLOSE_MODES:
        raise ConfigError(
            f"menus.close_mode must be one of {', '.join(sorted(CLOSE_MODES))}"
        )
    show_help = raw.get("show_help", False)
    if not isinstance(show_help, bool):
        raise ConfigError("menus.show_help must be a boolean")
    return MenuDefaults(
        timeout_seconds=_positive_number(
            raw.get("timeout_seconds"), key="menus.timeout_seconds"
        ),
        ephemeral_timeout_seconds=_positive_number(
            raw.get("ephemeral_timeout_seconds"),
            key="menus.ephemeral_timeout_seconds",
        ),
        close_mode=close_mode,
        show_help=show_help,
    )


def load_config(root: Path, *, config_path: Optional[Path] = None) -> AppConfig:
    """Load ``reaction-menus.yml`` (and ``.env``) from ``root``.

    Missing files fall back to defaults; malformed ones raise ``ConfigError``.
    """
    root = root.resolve()
    dotenv_path = root / DOTENV_FILENAME
    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)

    path = config_path if config_path is not None else root / CONFIG_FILENAME
    data = _merge_defaults(DEFAULT_CONFIG, _load_yaml_dict(path))

    log_cfg = data.get("log")
    if not isinstance(log_cfg, dict):
        raise ConfigError("log must be a mapping")
    menus_cfg = data.get("menus")
    if not isinstance(menus_cfg, dict):
        raise ConfigError("menus must be a mapping")
    discord_cfg = data.get("discord") or {}
    if not isinstance(discord_cfg, dict):
        raise ConfigError("discord must be a mapping")

    log_path = log_cfg.get("path")
    if not isinstance(log_path, str) or not log_path.strip():
        raise ConfigError("log.path must be a string path")

    logger.debug("Loaded config from %s", path)
    return AppConfig(
        root=root,
        log=LogConfig(
            path=root / log_path,
            max_bytes=_positive_int(log_cfg.get("max_bytes"), key="log.max_bytes"),
            backup_count=_positive_int(
                log_cfg.get("backup_count"), key="log.backup_count"
            ),
        ),
        menus=_parse_menu_defaults(menus_cfg),
        discord=discord_cfg,
        raw=data,
    )
