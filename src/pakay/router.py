"""Route access: encode ids when URLs are generated, decode them on dispatch.

``RouteAccessDecorator`` wraps the application's router. It only changes
URL generation, and everything else is delegated untouched. ``HashIdRoute``
is the dispatch half: a FastAPI route class that decodes path and query
parameters before FastAPI validates them and calls the endpoint.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Coroutine, Iterator, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote_plus, unquote_plus, urlencode

from fastapi import FastAPI, Request, Response
from fastapi.routing import APIRoute
from starlette.datastructures import URLPath
from starlette.routing import BaseRoute, Host, Mount, Router, compile_path

from pakay.cache import CodecCache
from pakay.config import PakayConfig, load_config
from pakay.declarations import RouteMetadata
from pakay.hashers import HasherRegistry
from pakay.provider import HandlerMetadataProvider
from pakay.transformer import ParameterMap, ParameterTransformer

logger = logging.getLogger("pakay")


@dataclass(frozen=True)
class _RouteEntry:
    handler_id: str
    path_params: frozenset[str]


def _child_routes(route: BaseRoute) -> list[BaseRoute] | None:
    """Routes nested under a container entry, or None for an endpoint route."""
    if isinstance(route, (Mount, Host)):
        return route.routes
    # Newer FastAPI keeps an included router as a single entry.
    included = getattr(route, "original_router", None)
    if included is not None:
        return list(getattr(included, "routes", None) or ())
    if getattr(route, "endpoint", None) is None:
        nested = getattr(route, "routes", None)
        if isinstance(nested, list):
            return nested
    return None


def _container_params(route: BaseRoute) -> frozenset[str]:
    """Path parameters a container adds in front of its routes."""
    if isinstance(route, Host):
        return frozenset(route.param_convertors)
    path = route.path if isinstance(route, Mount) else getattr(route, "prefix", "")
    if not isinstance(path, str) or not path:
        return frozenset()
    return frozenset(compile_path(path)[2])


def _walk_routes(
    routes: list[BaseRoute],
    prefix: str = "",
    inherited: frozenset[str] = frozenset(),
) -> Iterator[tuple[str, BaseRoute, frozenset[str]]]:
    """(full name, route, path parameters) for every named endpoint route."""
    for route in routes:
        children = _child_routes(route)
        if children is not None:
            name = route.name if isinstance(route, (Mount, Host)) else None
            sub_prefix = f"{prefix}{name}:" if name else prefix
            yield from _walk_routes(children, sub_prefix, inherited | _container_params(route))
            continue
        name = getattr(route, "name", None)
        if name and getattr(route, "endpoint", None) is not None:
            params = inherited | frozenset(getattr(route, "param_convertors", {}) or ())
            yield prefix + name, route, params


class RouteAccessDecorator:
    """Drop-in wrapper for a Starlette/FastAPI router.

    Generation: find the named route's endpoint, resolve its metadata,
    encode the declared parameters, delegate. Routing failures such as
    ``NoMatchFound`` come from the wrapped router and propagate unchanged.
    """

    def __init__(
        self,
        router: Router,
        provider: HandlerMetadataProvider,
        transformer: ParameterTransformer,
    ):
        self._router = router
        self._provider = provider
        self._transformer = transformer
        self._route_index: dict[str, _RouteEntry] = {}
        self._unindexed: set[str] = set()
        self._indexed_size = -1
        self._index_lock = threading.Lock()

    @property
    def router(self) -> Router:
        return self._router

    @property
    def provider(self) -> HandlerMetadataProvider:
        return self._provider

    @property
    def transformer(self) -> ParameterTransformer:
        return self._transformer

    def __getattr__(self, name: str) -> Any:
        if name == "_router":
            raise AttributeError(name)
        return getattr(self._router, name)

    async def __call__(self, scope, receive, send) -> None:
        await self._router(scope, receive, send)

    # ── Generation ────────────────────────────────────────────

    def url_path_for(self, name: str, /, **path_params: Any) -> URLPath:
        path_params = self.encode_parameters(name, path_params)
        return self._router.url_path_for(name, **path_params)

    def generate(self, name: str, params: Mapping[str, Any] | None = None) -> str:
        """URL path for a named route; non-path parameters become the query string."""
        params = self.encode_parameters(name, dict(params or {}))
        entry = self._lookup(name)
        if entry is None:
            path_params, query = params, {}
        else:
            path_params = {k: v for k, v in params.items() if k in entry.path_params}
            query = {k: v for k, v in params.items() if k not in entry.path_params and v is not None}

        url = str(self._router.url_path_for(name, **path_params))
        if query:
            url = f"{url}?{urlencode(query, doseq=True)}"
        return url

    def encode_parameters(self, name: str, params: ParameterMap) -> ParameterMap:
        entry = self._lookup(name)
        if entry is None:
            return params
        metadata = self._provider.resolve_for(entry.handler_id)
        return self._transformer.encode(metadata, params)

    def _lookup(self, name: str) -> _RouteEntry | None:
        entry = self._route_index.get(name)
        if entry is not None:
            return entry
        if name in self._unindexed and len(self._router.routes) == self._indexed_size:
            return None
        # Routes may have been added since the last scan.
        self._rebuild_index()
        entry = self._route_index.get(name)
        if entry is None:
            self._unindexed.add(name)
        return entry

    def _rebuild_index(self) -> None:
        introspector = self._provider.introspector
        with self._index_lock:
            index = {}
            for full_name, route, path_params in _walk_routes(self._router.routes):
                if full_name in index:
                    continue  # first match wins, as in Router.url_path_for
                handler_id = introspector.identify(route.endpoint)
                if handler_id is None:
                    continue
                index[full_name] = _RouteEntry(handler_id, path_params)
            self._route_index = index
            self._unindexed = set()
            self._indexed_size = len(self._router.routes)

    # ── Dispatch ──────────────────────────────────────────────

    def decode_attributes(self, handler: str | Callable, attributes: ParameterMap) -> ParameterMap:
        """Decode the declared entries of request attributes in place."""
        if isinstance(handler, str):
            metadata = self._provider.resolve_for(handler)
        else:
            metadata = self._provider.resolve_endpoint(handler)
        return self._transformer.decode(metadata, attributes)

    def decode_scope(self, endpoint: Callable, scope: dict) -> None:
        """Decode path and query parameters of an ASGI scope before dispatch."""
        metadata = self._provider.resolve_endpoint(endpoint)
        if metadata is None:
            return
        path_params = scope.get("path_params")
        if path_params:
            scope["path_params"] = self._transformer.decode(metadata, dict(path_params))
        query_string = scope.get("query_string")
        if query_string:
            decoded = self._decode_query_string(metadata, query_string)
            if decoded is not None:
                scope["query_string"] = decoded

    def _decode_query_string(self, metadata: RouteMetadata, query_string: bytes) -> bytes | None:
        """Rewrite only the declared ``key=value`` pairs; other bytes stay as sent."""
        segments = query_string.split(b"&")
        declared: list[tuple[int, bytes, str, str]] = []
        for index, segment in enumerate(segments):
            raw_key, sep, raw_value = segment.partition(b"=")
            key = unquote_plus(raw_key.decode("latin-1"))
            if sep and key in metadata:
                declared.append((index, raw_key, key, unquote_plus(raw_value.decode("latin-1"))))
        if not declared:
            return None

        values: dict[str, list] = {}
        for _, _, key, value in declared:
            values.setdefault(key, []).append(value)
        self._transformer.decode(metadata, values)

        remaining = {key: iter(items) for key, items in values.items()}
        changed = False
        for index, raw_key, key, original in declared:
            value = next(remaining[key])
            if value is original:
                continue
            segments[index] = raw_key + b"=" + quote_plus(str(value)).encode("ascii")
            changed = True
        return b"&".join(segments) if changed else None

    # ── Diagnostics ───────────────────────────────────────────

    def cache_statistics(self) -> dict:
        return {
            "codecs": self._transformer.hashers.cache.stats(),
            "metadata": self._provider.stats(),
        }

    def clear_caches(self) -> None:
        self._transformer.hashers.cache.clear()
        self._provider.clear()
        with self._index_lock:
            self._route_index = {}
            self._unindexed = set()
        logger.info("Route access caches cleared")


class HashIdRoute(APIRoute):
    """APIRoute that decodes obfuscated parameters before the endpoint runs.

    Uses the decorator stored on ``app.state.route_access``. Without one the
    route behaves exactly like APIRoute.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        original_route_handler = super().get_route_handler()
        endpoint = self.endpoint

        async def route_handler(request: Request) -> Response:
            route_access = getattr(request.app.state, "route_access", None)
            if route_access is not None:
                route_access.decode_scope(endpoint, request.scope)
            return await original_route_handler(request)

        return route_handler


def build_route_access(router: Router, config: PakayConfig) -> RouteAccessDecorator:
    """Wire cache, hashers, provider and transformer around a router."""
    cache = CodecCache(config.cache_capacity)
    hashers = HasherRegistry(config, cache)
    return RouteAccessDecorator(router, HandlerMetadataProvider(), ParameterTransformer(hashers))


def install_route_access(app: FastAPI, config: PakayConfig | None = None) -> RouteAccessDecorator:
    """Enable obfuscated ids on an application.

    Stores the decorator on ``app.state.route_access`` for HashIdRoute and
    makes it the request's router, so ``request.url_for`` encodes too.
    Configuration errors surface here, at startup.
    """
    if config is None:
        config = load_config()
    route_access = build_route_access(app.router, config)
    app.state.route_access = route_access

    @app.middleware("http")
    async def route_access_scope(request: Request, call_next):
        request.scope["router"] = route_access
        return await call_next(request)

    logger.info(
        "Route access installed (hashers: %s, codec cache capacity: %d)",
        ", ".join(route_access.transformer.hashers.names()),
        config.cache_capacity,
    )
    return route_access
