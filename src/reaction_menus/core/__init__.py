"""Core runtime primitives."""

from .exceptions import (
    BuilderError,
    ConfigError,
    MenuRuntimeError,
    MessageGoneError,
    PageRenderError,
    RegistryInvariantViolation,
    TransportError,
)
from .logging_utils import log_event, setup_rotating_logger

__all__ = [
    "BuilderError",
    "ConfigError",
    "MenuRuntimeError",
    "MessageGoneError",
    "PageRenderError",
    "RegistryInvariantViolation",
    "TransportError",
    "log_event",
    "setup_rotating_logger",
]
