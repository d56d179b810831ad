"""Rate limiters shared by the route modules.

``limiter``       per client IP, for anonymous and general endpoints
``user_limiter``  per signed-in account (header or cookie session), for joining queues
``store_limiter`` per store, for vendor queue actions from any device
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from queuego.core.config import settings
from queuego.core.security import COOKIE_ACCESS_NAME, token_user_id


def session_user_id(request: Request):
    """Account id from the Bearer header or the session cookie, if valid."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        user_id = token_user_id(auth.split(" ", 1)[1])
        if user_id is not None:
            return user_id
    return token_user_id(request.cookies.get(COOKIE_ACCESS_NAME))


def user_key(request: Request) -> str:
    user_id = session_user_id(request)
    if user_id is not None:
        return f"user:{user_id}"
    return get_remote_address(request)


def store_key(request: Request) -> str:
    """Queue actions on one store share a budget, whichever counter sends them."""
    store_id = request.path_params.get("store_id")
    if store_id is not None:
        return f"store:{store_id}"
    return user_key(request)


limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
user_limiter = Limiter(key_func=user_key, enabled=settings.rate_limit_enabled)
store_limiter = Limiter(key_func=store_key, enabled=settings.rate_limit_enabled)

ALL_LIMITERS = (limiter, user_limiter, store_limiter)
