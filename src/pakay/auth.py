"""Admin key for the hashids diagnostics endpoints.

Cache statistics and cache clearing are operator tools, guarded by the
X-API-Key header when ``[gateway] api_key`` is set. Order routes stay open:
an obfuscated id is not a permission, so nothing here looks at ids.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

logger = logging.getLogger("pakay.audit")

_admin_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def require_admin_key(
    request: Request,
    api_key: str | None = Security(_admin_key_header),
) -> None:
    """Reject the request unless it carries the configured admin key.

    No configured key means development mode and every request passes.
    """
    expected = request.app.state.config.api_key
    if not expected:
        return
    if api_key is None or not secrets.compare_digest(api_key.encode(), expected.encode()):
        logger.warning("Denied %s %s: invalid or missing admin key", request.method, request.url.path)
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
