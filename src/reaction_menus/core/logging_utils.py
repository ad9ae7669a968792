from __future__ import annotations

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .config import LogConfig

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _coerce_field(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_coerce_field(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _coerce_field(item) for key, item in value.items()}
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc: Optional[BaseException] = None,
    **fields: Any,
) -> None:
    """Emit one structured log line: a JSON object keyed by ``event``."""
    if not logger.isEnabledFor(level):
        return
    payload: dict[str, Any] = {"event": event}
    for key, value in fields.items():
        payload[key] = _coerce_field(value)
    if exc is not None:
        payload["error"] = str(exc)
        payload["error_type"] = type(exc).__name__
    try:
        message = json.dumps(payload, ensure_ascii=False, sort_keys=False)
    except (TypeError, ValueError):
        message = f"{event} {fields!r}"
    logger.log(level, message)


def setup_rotating_logger(name: str, config: "LogConfig") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    target = os.path.abspath(config.path)
    for handler in logger.handlers:
        if (
            isinstance(handler, RotatingFileHandler)
            and handler.baseFilename == target
        ):
            return logger
    config.path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        config.path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
