"""Shared error taxonomy for the menu runtime and its collaborators."""

from __future__ import annotations

from typing import Optional


class MenuRuntimeError(Exception):
    """Base error for everything raised by reaction-menus."""

    recoverable = True
    severity = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransportError(MenuRuntimeError):
    """A send/edit/delete/reaction call against the chat platform failed."""


class MessageGoneError(TransportError):
    """The target message no longer exists on the platform."""


class PageRenderError(MenuRuntimeError):
    """A dynamic page generator failed to produce content."""

    def __init__(
        self,
        message: str,
        *,
        page: Optional[int] = None,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.page = page


class BuilderError(MenuRuntimeError):
    """Invalid menu configuration, detected before anything is sent."""

    recoverable = False


class RegistryInvariantViolation(MenuRuntimeError, RuntimeError):
    """Internal registry bookkeeping went wrong. This is a programming error."""

    recoverable = False
    severity = "critical"


class ConfigError(MenuRuntimeError):
    """Configuration file or environment is invalid."""

    recoverable = False


__all__ = [
    "BuilderError",
    "ConfigError",
    "MenuRuntimeError",
    "MessageGoneError",
    "PageRenderError",
    "RegistryInvariantViolation",
    "TransportError",
]
