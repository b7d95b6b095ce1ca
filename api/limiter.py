"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in route modules (to
apply per-route limits with @limiter.limit()). A single shared instance means
every route shares the same in-memory counter store.

@limiter.limit() goes directly UNDER the @router decorator so FastAPI registers
the wrapped endpoint. Limit strings are static; SlowAPIMiddleware skips routes
that carry a decorator limit and leaves the check to the wrapper.

RATE_LIMIT_ENABLED=false turns limiting off entirely (used by the test suite,
where every request comes from the same client address).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=get_settings().rate_limit_enabled,
)
