from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request, status

from ..core.config import settings
from ..middlewares import principal_ctx_var


class AuthContext:
    def __init__(self, *, subject: str, scheme: str) -> None:
        self.subject = subject
        self.scheme = scheme


def _set_principal(request: Request, principal: str) -> None:
    principal_ctx_var.set(principal)
    request.state.principal = principal


async def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> AuthContext:
    """Check ``X-API-Key`` against ``API_KEY``. With no key configured the API is open."""

    api_key = (settings.API_KEY or "").strip()
    if not api_key:
        _set_principal(request, "anonymous")
        return AuthContext(subject="anonymous", scheme="open")

    provided_key = (x_api_key or "").strip()
    if not provided_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key required")
    if not hmac.compare_digest(api_key, provided_key):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    _set_principal(request, "api-key")
    return AuthContext(subject="api-key", scheme="api_key")
