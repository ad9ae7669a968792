from __future__ import annotations

# Lifetimes in seconds.
SHORT_TIMEOUT = 5.0
MEDIUM_TIMEOUT = 20.0
LONG_TIMEOUT = 60.0
EXTRA_LONG_TIMEOUT = 600.0

DEFAULT_MENU_TIMEOUT = LONG_TIMEOUT

FIRST_PAGE_EMOJI = "⏮️"
PREVIOUS_PAGE_EMOJI = "⬅️"
CLOSE_MENU_EMOJI = "❌"
NEXT_PAGE_EMOJI = "➡️"
LAST_PAGE_EMOJI = "⏭️"
HELP_EMOJI = "❔"

HELP_CONTROL_POSITION = 100

CLOSE_MODE_CLEAR_REACTIONS = "clear_reactions"
CLOSE_MODE_DELETE = "delete"
CLOSE_MODES = frozenset({CLOSE_MODE_CLEAR_REACTIONS, CLOSE_MODE_DELETE})
DEFAULT_CLOSE_MODE = CLOSE_MODE_CLEAR_REACTIONS

# How often a sticky menu checks whether newer messages have buried it.
STICKY_CHECK_INTERVAL = 5.0
