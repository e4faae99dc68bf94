"""FastAPI dependencies for Pakay routes."""

from __future__ import annotations

from fastapi import Request

from pakay.router import RouteAccessDecorator


def get_route_access(request: Request) -> RouteAccessDecorator:
    """Get the route access decorator from app state."""
    return request.app.state.route_access
