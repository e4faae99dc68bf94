"""Route metadata and the ways a handler can declare it.

A handler declares obfuscated parameters either with the ``hash_ids``
decorator (structured) or, in older code, with a ``@Hash(...)`` line in its
docstring (free text). Lookup tries them in that order.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import TypeVar, Union

from pakay.codec import is_valid_hasher_name
from pakay.config import DEFAULT_HASHER
from pakay.errors import ConfigurationError

MAX_PARAMETERS = 20
MAX_PARAMETER_NAME_LENGTH = 100

DECLARATION_ATTRIBUTE = "__hashids__"

# Linear: one character class, bounded repetition, fullmatch only.
_PARAMETER_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]{0,%d}" % (MAX_PARAMETER_NAME_LENGTH - 1))


def is_valid_parameter_name(name: object) -> bool:
    return isinstance(name, str) and _PARAMETER_NAME.fullmatch(name) is not None


def normalize_hasher_name(hasher: object) -> str | None:
    """Trimmed hasher name, "default" when blank, None when not a string."""
    if hasher is None:
        return DEFAULT_HASHER
    if not isinstance(hasher, str):
        return None
    return hasher.strip() or DEFAULT_HASHER


@dataclass(frozen=True)
class RouteMetadata:
    """Which parameters of one handler are obfuscated, and with which hasher."""

    parameter_names: tuple[str, ...]
    hasher_name: str = DEFAULT_HASHER

    def __contains__(self, name: str) -> bool:
        return name in self.parameter_names


@dataclass(frozen=True)
class StructuredDeclaration:
    parameter_names: tuple[str, ...]
    hasher: str = DEFAULT_HASHER


@dataclass(frozen=True)
class FreeTextDeclaration:
    text: str
    source: str = ""


class NoDeclaration:
    _instance: NoDeclaration | None = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DECLARATION"

    def __bool__(self) -> bool:
        return False


NO_DECLARATION = NoDeclaration()

Declaration = Union[StructuredDeclaration, FreeTextDeclaration, NoDeclaration]


def unique_names(names: Iterable[str]) -> tuple[str, ...]:
    """De-duplicate, keeping first occurrence order."""
    return tuple(dict.fromkeys(names))


F = TypeVar("F", bound=Callable)


def hash_ids(*parameter_names: str, hasher: str = DEFAULT_HASHER) -> Callable[[F], F]:
    """Mark handler parameters whose values are obfuscated in URLs.

    ::

        @router.get("/orders/{order_id}", name="order_show")
        @hash_ids("order_id")
        def show_order(order_id: int): ...

    Stacking the decorator adds names. Stacked declarations must agree on
    the hasher. Mistakes raise ConfigurationError when the module is
    imported, never at request time.
    """
    names = tuple(name.strip() if isinstance(name, str) else name for name in parameter_names)
    if not names:
        raise ConfigurationError("parameters", "at least one parameter name is required")
    for name in names:
        if not is_valid_parameter_name(name):
            raise ConfigurationError(
                "parameters",
                f"invalid parameter name {name!r}: use letters, digits and underscores, "
                f"not starting with a digit, at most {MAX_PARAMETER_NAME_LENGTH} characters",
            )
    hasher_name = normalize_hasher_name(hasher)
    if hasher_name is None or not is_valid_hasher_name(hasher_name):
        raise ConfigurationError("hasher", f"invalid hasher name {hasher!r}")

    def decorator(handler: F) -> F:
        existing = getattr(handler, DECLARATION_ATTRIBUTE, None)
        merged = names
        if isinstance(existing, StructuredDeclaration):
            if existing.hasher != hasher_name:
                raise ConfigurationError(
                    "hasher",
                    f"conflicting hashers {existing.hasher!r} and {hasher_name!r} "
                    f"on {getattr(handler, '__qualname__', handler)!r}",
                )
            # Decorators apply bottom-up; keep source order.
            merged = names + existing.parameter_names
        merged = unique_names(merged)
        if len(merged) > MAX_PARAMETERS:
            raise ConfigurationError(
                "parameters",
                f"too many parameters (max {MAX_PARAMETERS}, got {len(merged)})",
            )
        setattr(handler, DECLARATION_ATTRIBUTE, StructuredDeclaration(merged, hasher_name))
        return handler

    return decorator
