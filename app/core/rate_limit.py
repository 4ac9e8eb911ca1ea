"""
Shared slowapi limiter. Registered on app.state in app.main.
"""
from slowapi import Limiter
from starlette.requests import Request


def rate_limit_key(request: Request) -> str:
    """The bearer token when present, the client address otherwise."""
    auth = request.headers.get("Authorization", "")
    if auth:
        return auth
    return request.client.host if request.client else "anonymous"


limiter = Limiter(key_func=rate_limit_key)
