"""SlowAPI rate limiter singleton.

The repositories route has no user authentication, so limits are keyed on
the client address. Each request to that route mints a new GitHub token,
which is what the limit protects.

Usage in route handlers:
    from app.core.limiter import limiter

    @router.get("/some-endpoint")
    @limiter.limit(settings.repositories_rate_limit)
    async def handler(request: Request, ...):
        ...

The `Request` parameter is required by SlowAPI even if the handler doesn't
use it directly; it uses it to extract the key.
"""

from slowapi import Limiter


def _client_key(request) -> str:
    """Key function: the first X-Forwarded-For hop, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


limiter = Limiter(key_func=_client_key, default_limits=[])
