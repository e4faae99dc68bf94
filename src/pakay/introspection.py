"""Finding a handler's declaration from its identity string.

Identities look like ``"app.routes.orders::show_order"`` for functions and
``"app.controllers.OrderController::show"`` for methods.
"""

from __future__ import annotations

import importlib
import logging
import re
from collections.abc import Callable
from typing import Any, Protocol

from pakay.declarations import (
    DECLARATION_ATTRIBUTE,
    NO_DECLARATION,
    Declaration,
    FreeTextDeclaration,
    StructuredDeclaration,
)
from pakay.errors import InvalidHandlerError

logger = logging.getLogger("pakay.provider")

MAX_HANDLER_ID_LENGTH = 512

_HANDLER_ID = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*::[A-Za-z_][A-Za-z0-9_]*")


class HandlerIntrospector(Protocol):
    def identify(self, endpoint: Callable) -> str | None: ...

    def declaration_for(self, handler_id: str) -> Declaration: ...


def handler_identity(endpoint: Any) -> str | None:
    """Stable identity for a handler callable, or None if it has no name."""
    func = getattr(endpoint, "__func__", endpoint)
    qualname = getattr(func, "__qualname__", None)
    module = getattr(func, "__module__", None)
    if not qualname or not module:
        return None
    owner, _, name = qualname.rpartition(".")
    if owner:
        return f"{module}.{owner}::{name}"
    return f"{module}::{name}"


def declaration_of(handler: Any) -> Declaration:
    """Structured declaration first, docstring second."""
    structured = getattr(handler, DECLARATION_ATTRIBUTE, None)
    if isinstance(structured, StructuredDeclaration):
        return structured
    doc = getattr(handler, "__doc__", None)
    if isinstance(doc, str) and doc:
        return FreeTextDeclaration(doc, source=handler_identity(handler) or "")
    return NO_DECLARATION


def parse_handler_id(handler_id: str) -> tuple[str, str]:
    """Split "a.b.Owner::name" into ("a.b.Owner", "name")."""
    if any(c in handler_id for c in "\x00\r\n"):
        raise InvalidHandlerError(handler_id, "contains control characters")
    if len(handler_id) > MAX_HANDLER_ID_LENGTH:
        raise InvalidHandlerError(handler_id, "too long")
    if not _HANDLER_ID.fullmatch(handler_id):
        raise InvalidHandlerError(handler_id, 'expected "module.Class::method" or "module::function"')
    owner, _, name = handler_id.partition("::")
    return owner, name


class ReflectionIntrospector:
    """Resolves identities of known endpoints, then by importing them.

    Endpoints seen through ``identify`` are remembered, which covers closures
    and anything else that cannot be imported by name.
    """

    def __init__(self):
        self._known: dict[str, Callable] = {}

    def identify(self, endpoint: Callable) -> str | None:
        handler_id = handler_identity(endpoint)
        if handler_id is None:
            return None
        func = getattr(endpoint, "__func__", endpoint)
        if "<locals>" in handler_id:
            # Factories return many handlers under one qualified name.
            handler_id = f"{handler_id}@{id(func):x}"
        known = self._known.setdefault(handler_id, endpoint)
        if getattr(known, "__func__", known) is not func:
            logger.warning(
                "Handlers %r and %r share the identity %r; both use the first one's declaration",
                known,
                endpoint,
                handler_id,
            )
        return handler_id

    def declaration_for(self, handler_id: str) -> Declaration:
        handler = self._known.get(handler_id)
        if handler is None:
            handler = self._import(handler_id)
        if handler is None:
            return NO_DECLARATION
        return declaration_of(handler)

    def _import(self, handler_id: str) -> Callable | None:
        owner, name = parse_handler_id(handler_id)
        try:
            target = importlib.import_module(owner)
        except ImportError:
            module_name, _, class_name = owner.rpartition(".")
            if not module_name:
                return None
            try:
                module = importlib.import_module(module_name)
            except ImportError:
                return None
            target = getattr(module, class_name, None)
            if target is None:
                return None
        return getattr(target, name, None)
