"""Per-handler RouteMetadata, resolved once and memoized."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from pakay.declarations import (
    NO_DECLARATION,
    Declaration,
    FreeTextDeclaration,
    RouteMetadata,
    StructuredDeclaration,
)
from pakay.errors import PakayError
from pakay.extractor import MetadataExtractor
from pakay.introspection import HandlerIntrospector, ReflectionIntrospector

logger = logging.getLogger("pakay.provider")

_MISSING = object()


class HandlerMetadataProvider:
    """Answers "which parameters of this handler are obfuscated?".

    Never raises: a handler that cannot be found or whose declaration is
    rejected simply has no metadata. Reads are plain dict lookups; the lock
    is taken only to fill the table.
    """

    def __init__(
        self,
        extractor: MetadataExtractor | None = None,
        introspector: HandlerIntrospector | None = None,
    ):
        self._extractor = extractor or MetadataExtractor()
        self._introspector = introspector or ReflectionIntrospector()
        self._resolved: dict[str, RouteMetadata | None] = {}
        self._lock = threading.Lock()
        self._structured = 0
        self._legacy = 0

    @property
    def introspector(self) -> HandlerIntrospector:
        return self._introspector

    def resolve_for(self, handler_id: str) -> RouteMetadata | None:
        metadata = self._resolved.get(handler_id, _MISSING)
        if metadata is not _MISSING:
            return metadata

        declaration = self._declaration_for(handler_id)
        try:
            metadata = self._extractor.extract(declaration, source=handler_id)
        except Exception:
            logger.exception("Unexpected error while reading the declaration of %r", handler_id)
            metadata = None
        with self._lock:
            if handler_id in self._resolved:
                return self._resolved[handler_id]
            self._resolved[handler_id] = metadata
            if metadata is not None:
                if isinstance(declaration, StructuredDeclaration):
                    self._structured += 1
                elif isinstance(declaration, FreeTextDeclaration):
                    self._legacy += 1
        return metadata

    def resolve_endpoint(self, endpoint: Callable) -> RouteMetadata | None:
        try:
            handler_id = self._introspector.identify(endpoint)
        except Exception:
            logger.exception("Could not identify handler %r", endpoint)
            return None
        if handler_id is None:
            return None
        return self.resolve_for(handler_id)

    def _declaration_for(self, handler_id: str) -> Declaration:
        try:
            return self._introspector.declaration_for(handler_id)
        except PakayError as exc:
            logger.warning("Cannot resolve handler %r: %s", handler_id, exc)
        except Exception:
            logger.exception("Unexpected error while resolving handler %r", handler_id)
        return NO_DECLARATION

    def clear(self) -> None:
        with self._lock:
            self._resolved.clear()
            self._structured = 0
            self._legacy = 0

    def stats(self) -> dict:
        return {
            "size": len(self._resolved),
            "structured_declarations": self._structured,
            "legacy_declarations": self._legacy,
        }
