"""Meta endpoints: health and version, plus admin-only cache diagnostics."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pakay.auth import require_admin_key
from pakay.deps import get_route_access
from pakay.router import RouteAccessDecorator

router = APIRouter(prefix="/api/v1", tags=["meta"])
admin_router = APIRouter(
    prefix="/api/v1/hashids",
    tags=["admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.get("/health")
def health():
    return {"status": "ok", "service": "pakay"}


@router.get("/version")
def version(route_access: RouteAccessDecorator = Depends(get_route_access)):
    return {
        "pakay": "0.1.0",
        "hashers": route_access.transformer.hashers.names(),
    }


@admin_router.get("/stats")
def cache_statistics(route_access: RouteAccessDecorator = Depends(get_route_access)):
    return route_access.cache_statistics()


@admin_router.post("/clear")
def clear_caches(route_access: RouteAccessDecorator = Depends(get_route_access)):
    route_access.clear_caches()
    return {"status": "cleared"}
