"""Exception hierarchy for lavaroute."""

from __future__ import annotations

__all__ = ["LavarouteError", "ConfigurationError", "NodeError"]


class LavarouteError(Exception):
    """Base error for everything raised by lavaroute itself."""


class ConfigurationError(LavarouteError):
    """Raised when required configuration is missing or invalid."""


class NodeError(LavarouteError):
    """Raised when a node is used before it is connected."""
