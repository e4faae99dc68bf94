"""Pakay: FastAPI application with obfuscated integer ids.

Handlers work with plain integers. URLs carry hashids tokens. The demo
orders router shows both declaration styles; the meta router exposes cache
diagnostics.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from pakay.config import PakayConfig, load_config
from pakay.errors import PakayError
from pakay.router import install_route_access
from pakay.routes import meta, orders

logger = logging.getLogger("pakay")
audit_logger = logging.getLogger("pakay.audit")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: report hashers. Shutdown: drop cached converters and metadata."""
    route_access = app.state.route_access
    logger.info(
        "Pakay ready (hashers: %s)",
        ", ".join(route_access.transformer.hashers.names()),
    )
    yield
    route_access.clear_caches()
    logger.info("Pakay shut down")


def create_app(config: PakayConfig | None = None) -> FastAPI:
    """Application factory."""
    if config is None:
        config = load_config()

    app = FastAPI(
        title="Pakay",
        description="Opaque, reversible tokens in place of sequential ids in URLs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.config = config

    # ── Exception handlers ────────────────────────────────────

    @app.exception_handler(PakayError)
    async def pakay_handler(request: Request, exc: PakayError):
        return JSONResponse(status_code=500, content={"detail": str(exc)})

    # ── Audit middleware ──────────────────────────────────────

    @app.middleware("http")
    async def audit_log(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        elapsed = time.monotonic() - start
        audit_logger.info(
            "%s %s %d %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            elapsed,
        )
        return response

    # ── Routers ───────────────────────────────────────────────

    app.include_router(meta.router)
    app.include_router(meta.admin_router)
    app.include_router(orders.router)

    install_route_access(app, config)
    return app
