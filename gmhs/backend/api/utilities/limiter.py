# gmhs/backend/api/utilities/limiter.py

from fastapi import Request
import jwt

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...config.config import settings

def get_limiter_key(request: Request) -> str:
    """
    Returns the rate-limit key for a request.
    Authenticated requests are limited per user (the token subject),
    anonymous ones per client address.
    """
    auth_header = request.headers.get("authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        token = auth_header.split(" ", 1)[1]
        try:
            # Expiry does not matter here, only the identity.
            payload = jwt.decode(
                token,
                settings.SECRET_KEY,
                algorithms=[settings.ALGORITHM],
                options={"verify_exp": False}
            )
            user_id = payload.get("sub")
            if user_id:
                return f"user:{user_id}"
        except jwt.PyJWTError:
            pass

    return get_remote_address(request)

limiter = Limiter(key_func=get_limiter_key, storage_uri=settings.RATE_LIMITER_STORAGE_URL)
