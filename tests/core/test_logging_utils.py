from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from reaction_menus.core.config import LogConfig
from reaction_menus.core.logging_utils import log_event, setup_rotating_logger


def test_log_event_emits_json_with_error_details(
    caplog: pytest.LogCaptureFixture,
) -> None:
    logger = logging.getLogger("test.log_event")

    with caplog.at_level(logging.INFO, logger="test.log_event"):
        log_event(
            logger,
            logging.INFO,
            "menu.page.edit_failed",
            exc=ValueError("boom"),
            message_id="m-1",
            controls=("a", "b"),
            path=Path("x"),
        )

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {
        "event": "menu.page.edit_failed",
        "message_id": "m-1",
        "controls": ["a", "b"],
        "path": "x",
        "error": "boom",
        "error_type": "ValueError",
    }


def test_log_event_skips_disabled_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("test.log_event.disabled")

    with caplog.at_level(logging.WARNING, logger="test.log_event.disabled"):
        log_event(logger, logging.DEBUG, "router.dropped")

    assert caplog.records == []


def test_setup_rotating_logger_writes_file_once(tmp_path: Path) -> None:
    config = LogConfig(
        path=tmp_path / "logs" / "menus.log", max_bytes=1000, backup_count=1
    )

    logger = setup_rotating_logger("test-rotating-logger", config)
    again = setup_rotating_logger("test-rotating-logger", config)
    log_event(logger, logging.INFO, "menu.started", pages=2)
    for handler in logger.handlers:
        handler.flush()

    assert logger is again
    assert len(logger.handlers) == 1
    assert logger.propagate is False
    assert '"event": "menu.started"' in config.path.read_text(encoding="utf-8")

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
