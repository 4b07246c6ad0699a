# gmhs/backend/api/utilities/no_cache.py
from email.utils import formatdate
from typing import Iterable, Sequence, Tuple

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

NO_CACHE_HEADERS: Sequence[Tuple[str, str]] = (
    ("cache-control", "no-cache, no-store, must-revalidate"),
    ("pragma", "no-cache"),
    ("expires", "0"),
)
DEFAULT_PREFIXES = ("/api", "/dashboard")


def matches_prefix(path: str, prefixes: Iterable[str]) -> bool:
    """``/api`` matches ``/api`` and ``/api/...`` but not ``/apiary``."""
    return any(path == prefix or path.startswith(prefix.rstrip("/") + "/") for prefix in prefixes)


def _without(headers: Iterable[Tuple[bytes, bytes]], names: Iterable[bytes]) -> list:
    names = set(names)
    return [(key, value) for key, value in headers if key.lower() not in names]


class NoCacheMiddleware:
    """
    Forces no-cache semantics on every request and response under the given
    path prefixes. Other paths pass through untouched.
    """

    def __init__(self, app: ASGIApp, prefixes: Sequence[str] = DEFAULT_PREFIXES):
        self.app = app
        self.prefixes = tuple(prefixes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not matches_prefix(scope["path"], self.prefixes):
            await self.app(scope, receive, send)
            return

        forced = [(name.encode("latin-1"), value.encode("latin-1")) for name, value in NO_CACHE_HEADERS]
        scope = dict(scope)
        scope["headers"] = _without(scope.get("headers", []), (name for name, _ in forced)) + forced

        async def send_no_cache(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                headers = MutableHeaders(scope=message)
                for name, value in NO_CACHE_HEADERS:
                    headers[name] = value
                headers["last-modified"] = formatdate(usegmt=True)
                headers["vary"] = "Cache-Control"
            await send(message)

        await self.app(scope, receive, send_no_cache)
