from __future__ import annotations

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from photoshelf.core.config import settings
from photoshelf.core.security import decode_access_token


def request_access_token(request: Request) -> str | None:
    """Bearer header first, then the ``access_token`` cookie."""
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get("access_token")


def user_rate_limit_key(request: Request) -> str:
    token = request_access_token(request)
    user_id = decode_access_token(token) if token else None
    if user_id is not None:
        return f"user:{user_id}"
    return f"anon:{get_remote_address(request)}"


limiter = Limiter(key_func=user_rate_limit_key, enabled=settings.RATE_LIMIT_ENABLED)
