# gmhs/pwa/policy.py
"""
Fetch policy of the cache worker.

Everything here is pure: ``classify`` decides whether a URL is API traffic,
``strategy`` picks how such traffic is served, and the two header transforms
implement the (deprecated) rewrite variant for API requests.
"""
import re
import time
from enum import Enum
from functools import lru_cache
from typing import Iterable, List, Optional, Sequence, Union

import httpx
from pydantic import BaseModel, ConfigDict


class RequestClass(str, Enum):
    API = "api"
    STATIC = "static"


class Strategy(str, Enum):
    BYPASS = "bypass"
    NETWORK_NO_CACHE = "network-no-cache"
    CACHE_FIRST = "cache-first"


class ApiCacheMode(str, Enum):
    BYPASS = "bypass"
    # Deprecated: rewrites API requests instead of leaving them alone.
    NETWORK_NO_CACHE = "network-no-cache"


class RuleKind(str, Enum):
    PREFIX = "prefix"
    SUFFIX = "suffix"
    SUBSTRING = "substring"
    REGEX = "regex"


@lru_cache(maxsize=None)
def _compile(pattern: str, ignore_case: bool) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE if ignore_case else 0)


class ClassifierRule(BaseModel):
    """One API marker, tested separately against the path and the query string."""
    kind: RuleKind
    pattern: str
    tag: str
    ignore_case: bool = False

    model_config = ConfigDict(frozen=True)

    def matches(self, text: str) -> bool:
        if self.kind == RuleKind.REGEX:
            return _compile(self.pattern, self.ignore_case).search(text) is not None

        subject, pattern = text, self.pattern
        if self.ignore_case:
            subject, pattern = subject.lower(), pattern.lower()
        if self.kind == RuleKind.PREFIX:
            return subject.startswith(pattern)
        if self.kind == RuleKind.SUFFIX:
            return subject.endswith(pattern)
        return pattern in subject


def _rule(kind: RuleKind, pattern: str, tag: str, ignore_case: bool = False) -> ClassifierRule:
    return ClassifierRule(kind=kind, pattern=pattern, tag=tag, ignore_case=ignore_case)


# Over-inclusive on purpose: a false positive only costs a cache miss.
API_RULES: Sequence[ClassifierRule] = (
    _rule(RuleKind.PREFIX, "/api/", "api-prefix"),
    _rule(RuleKind.SUFFIX, "/api", "api-suffix"),
    _rule(RuleKind.SUBSTRING, "database", "database", ignore_case=True),
    _rule(RuleKind.SUFFIX, ".json", "json"),
    _rule(RuleKind.SUBSTRING, "/auth/", "auth"),
    _rule(RuleKind.SUBSTRING, "/admin/", "admin"),
    _rule(RuleKind.SUBSTRING, "/teacher", "teacher"),
    _rule(RuleKind.SUBSTRING, "/parent", "parent"),
    _rule(RuleKind.SUBSTRING, "/student", "student"),
    _rule(RuleKind.SUBSTRING, "/child", "child"),
    _rule(RuleKind.SUBSTRING, "/actions", "actions"),
    _rule(RuleKind.REGEX, r"_next/static.*\.json", "next-data"),
    _rule(RuleKind.SUBSTRING, "graphql", "graphql", ignore_case=True),
    _rule(RuleKind.SUBSTRING, "rest", "rest", ignore_case=True),
    _rule(RuleKind.SUBSTRING, "ajax", "ajax", ignore_case=True),
    _rule(RuleKind.SUBSTRING, "api", "api-anywhere"),
)

# Cache names the worker purges on CLEAR_API_CACHE / background sync.
WORKER_PURGE_MARKERS = ("api", "data")
# Cache names the page-side manager treats as API caches.
API_CACHE_MARKERS = ("api", "data", "json")


def _split(url: Union[str, httpx.URL]) -> Optional[tuple]:
    try:
        parsed = url if isinstance(url, httpx.URL) else httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError):
        return None
    query = parsed.query.decode("ascii", errors="replace")
    return parsed.path, f"?{query}" if query else ""


def matching_rule(url: Union[str, httpx.URL], rules: Iterable[ClassifierRule] = API_RULES) -> Optional[ClassifierRule]:
    """The first rule matching the URL's path or query string, if any."""
    parts = _split(url)
    if parts is None:
        return None
    path, search = parts
    for rule in rules:
        if rule.matches(path) or (search and rule.matches(search)):
            return rule
    return None


def classify(url: Union[str, httpx.URL], rules: Iterable[ClassifierRule] = API_RULES) -> RequestClass:
    return RequestClass.API if matching_rule(url, rules) else RequestClass.STATIC


def strategy(request_class: RequestClass, api_mode: Union[ApiCacheMode, str] = ApiCacheMode.BYPASS) -> Strategy:
    if request_class == RequestClass.STATIC:
        return Strategy.CACHE_FIRST
    if ApiCacheMode(api_mode) == ApiCacheMode.NETWORK_NO_CACHE:
        return Strategy.NETWORK_NO_CACHE
    return Strategy.BYPASS


def has_marker(cache_name: str, markers: Iterable[str]) -> bool:
    return any(marker in cache_name for marker in markers)


def api_like(cache_names: Iterable[str], markers: Iterable[str] = API_CACHE_MARKERS) -> List[str]:
    markers = tuple(markers)
    return [name for name in cache_names if has_marker(name, markers)]


# ===== Header transforms for the rewrite variant =====

NO_CACHE_DIRECTIVE = "no-cache, no-store, must-revalidate, max-age=0"
BODY_METHODS = ("POST", "PUT", "PATCH")


def _now_ms() -> str:
    return str(int(time.time() * 1000))


def no_cache_request(request: httpx.Request) -> httpx.Request:
    """
    Copy of ``request`` that no cache along the way can answer. The body is
    kept only for POST/PUT/PATCH; request extensions (timeouts) carry over.
    """
    headers = httpx.Headers(request.headers)
    headers["Cache-Control"] = NO_CACHE_DIRECTIVE
    headers["Pragma"] = "no-cache"
    headers["Expires"] = "0"
    headers["If-Modified-Since"] = "0"
    headers["If-None-Match"] = ""
    headers["X-Requested-With"] = "XMLHttpRequest"
    headers["X-PWA-No-Cache"] = "true"
    headers["X-Cache-Buster"] = _now_ms()

    content = None
    if request.method.upper() in BODY_METHODS:
        content = request.content
    else:
        headers.pop("Content-Length", None)
        headers.pop("Content-Type", None)

    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        content=content,
        extensions=dict(request.extensions),
    )


def no_cache_response(response: httpx.Response) -> httpx.Response:
    """Same status and body as ``response``, with every caching header overridden."""
    headers = httpx.Headers(response.headers)
    headers["Cache-Control"] = NO_CACHE_DIRECTIVE
    headers["Pragma"] = "no-cache"
    headers["Expires"] = "0"
    headers["Last-Modified"] = "0"
    headers["ETag"] = ""
    headers["X-PWA-No-Cache-Response"] = "true"
    headers["X-Response-Timestamp"] = _now_ms()

    try:
        # Already read: hand over the decoded bytes.
        body = {"content": response.content}
        headers.pop("Content-Encoding", None)
        headers.pop("Content-Length", None)
    except httpx.ResponseNotRead:
        body = {"stream": response.stream}

    return httpx.Response(
        status_code=response.status_code,
        headers=headers,
        extensions=dict(response.extensions),
        **body,
    )
