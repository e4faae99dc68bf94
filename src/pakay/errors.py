"""Error types for Pakay.

Only configuration errors are meant to escape, and only at startup.
Everything request-dependent degrades to "no transformation" and is logged.
"""

from __future__ import annotations


class PakayError(Exception):
    """Base class for all Pakay errors."""


class ConfigurationError(PakayError, ValueError):
    """Invalid hasher/codec configuration. Raised at construction time."""

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for '{key}': {reason}")


class HasherNotFoundError(PakayError, KeyError):
    """A declaration names a hasher profile that is not registered."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(name)

    def __str__(self) -> str:
        return (
            f"Hasher '{self.name}' is not registered. "
            f"Available hashers: {', '.join(self.available) or '(none)'}"
        )


class InvalidHandlerError(PakayError, ValueError):
    """A handler identity string cannot be parsed or resolved."""

    def __init__(self, handler_id: str, reason: str):
        self.handler_id = handler_id
        self.reason = reason
        super().__init__(f"Invalid handler '{handler_id!r}': {reason}")
