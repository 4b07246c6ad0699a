# gmhs/pwa/cache_storage.py
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, Union

import httpx
import redis.asyncio as redis
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

RequestInfo = Union[httpx.Request, httpx.URL, str]
Fetch = Callable[[httpx.Request], Awaitable[httpx.Response]]

# Describe the original transfer, not the stored (decoded) body.
_TRANSFER_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class CacheAddError(Exception):
    """A precache request did not return a successful response."""
    pass


def cache_key(request: RequestInfo) -> str:
    url = request.url if isinstance(request, httpx.Request) else httpx.URL(str(request))
    return str(url.copy_with(fragment=None))


def _matchable(request: RequestInfo) -> bool:
    # Like the platform cache, only GET requests are ever matched.
    return not isinstance(request, httpx.Request) or request.method.upper() == "GET"


class CachedResponse(BaseModel):
    """A response as stored in a named cache."""
    url: str
    status_code: int
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    content: bytes = b""
    stored_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    @classmethod
    def from_response(cls, url: str, response: httpx.Response) -> "CachedResponse":
        """``response`` must have been read."""
        headers = [(k, v) for k, v in response.headers.multi_items() if k.lower() not in _TRANSFER_HEADERS]
        return cls(url=url, status_code=response.status_code, headers=headers, content=response.content)

    def to_response(self) -> httpx.Response:
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            content=self.content,
            request=httpx.Request("GET", self.url),
        )


class Cache(ABC):
    """One named cache: request URL -> stored response."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    async def _get(self, key: str) -> Optional[CachedResponse]: ...

    @abstractmethod
    async def _set_many(self, entries: Dict[str, CachedResponse]) -> None: ...

    @abstractmethod
    async def _remove(self, key: str) -> bool: ...

    @abstractmethod
    async def keys(self) -> List[str]: ...

    async def match(self, request: RequestInfo) -> Optional[httpx.Response]:
        if not _matchable(request):
            return None
        entry = await self._get(cache_key(request))
        return entry.to_response() if entry else None

    async def put(self, request: RequestInfo, response: httpx.Response) -> None:
        await response.aread()
        key = cache_key(request)
        await self._set_many({key: CachedResponse.from_response(key, response)})

    async def add_all(self, urls: Iterable[str], fetch: Fetch) -> None:
        """
        Fetches every URL and stores the responses. Nothing is stored unless
        all of them succeed.
        """
        entries = {}
        for url in urls:
            request = httpx.Request("GET", url)
            response = await fetch(request)
            await response.aread()
            if not response.is_success:
                raise CacheAddError(f"Request for '{url}' returned status {response.status_code}")
            key = cache_key(request)
            entries[key] = CachedResponse.from_response(key, response)
        await self._set_many(entries)

    async def delete(self, request: RequestInfo) -> bool:
        return await self._remove(cache_key(request))


class CacheStorage(ABC):
    """The set of named caches available to the worker and the page."""

    @abstractmethod
    async def keys(self) -> List[str]:
        """Cache names in creation order."""

    @abstractmethod
    async def open(self, name: str) -> Cache:
        """Returns the named cache, creating it when missing."""

    @abstractmethod
    async def has(self, name: str) -> bool: ...

    @abstractmethod
    async def delete(self, name: str) -> bool:
        """Deletes the named cache. False when there was nothing to delete."""

    async def match(self, request: RequestInfo) -> Optional[httpx.Response]:
        """First match across all caches, oldest cache first."""
        for name in await self.keys():
            response = await (await self.open(name)).match(request)
            if response is not None:
                return response
        return None

    async def close(self) -> None:
        pass


# ===== In-process backend =====

class MemoryCache(Cache):
    def __init__(self, name: str):
        super().__init__(name)
        self._entries: Dict[str, CachedResponse] = {}

    async def _get(self, key):
        return self._entries.get(key)

    async def _set_many(self, entries):
        self._entries.update(entries)

    async def _remove(self, key):
        return self._entries.pop(key, None) is not None

    async def keys(self):
        return list(self._entries)


class MemoryCacheStorage(CacheStorage):
    def __init__(self):
        self._caches: Dict[str, MemoryCache] = {}

    async def keys(self):
        return list(self._caches)

    async def open(self, name):
        if name not in self._caches:
            self._caches[name] = MemoryCache(name)
        return self._caches[name]

    async def has(self, name):
        return name in self._caches

    async def delete(self, name):
        return self._caches.pop(name, None) is not None


# ===== Redis backend =====

class RedisCache(Cache):
    """Entries live in one hash per cache, field = request URL."""

    def __init__(self, name: str, client: redis.Redis, key: str):
        super().__init__(name)
        self._redis = client
        self._key = key

    async def _get(self, key):
        raw = await self._redis.hget(self._key, key)
        return CachedResponse.model_validate_json(raw) if raw else None

    async def _set_many(self, entries):
        if entries:
            await self._redis.hset(self._key, mapping={k: v.model_dump_json() for k, v in entries.items()})

    async def _remove(self, key):
        return await self._redis.hdel(self._key, key) > 0

    async def keys(self):
        return [k.decode() if isinstance(k, bytes) else k for k in await self._redis.hkeys(self._key)]


class RedisCacheStorage(CacheStorage):
    """
    Named caches in Redis. Cache names are kept in a sorted set scored by a
    creation counter so ``keys()`` keeps the platform's creation order.
    """

    def __init__(self, client: redis.Redis, namespace: str = "pwa-cache"):
        self._redis = client
        self._namespace = namespace
        self._names_key = f"{namespace}:names"
        self._sequence_key = f"{namespace}:sequence"

    @classmethod
    def from_url(cls, url: str, namespace: str = "pwa-cache") -> "RedisCacheStorage":
        return cls(redis.Redis.from_url(url, decode_responses=True), namespace=namespace)

    def _entries_key(self, name: str) -> str:
        return f"{self._namespace}:entries:{name}"

    async def keys(self):
        names = await self._redis.zrange(self._names_key, 0, -1)
        return [n.decode() if isinstance(n, bytes) else n for n in names]

    async def open(self, name):
        if await self._redis.zscore(self._names_key, name) is None:
            order = await self._redis.incr(self._sequence_key)
            await self._redis.zadd(self._names_key, {name: order}, nx=True)
        return RedisCache(name, self._redis, self._entries_key(name))

    async def has(self, name):
        return await self._redis.zscore(self._names_key, name) is not None

    async def delete(self, name):
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self._names_key, name)
            pipe.delete(self._entries_key(name))
            removed, _ = await pipe.execute()
        return removed > 0

    async def close(self):
        await self._redis.aclose()


def open_cache_storage(url: str) -> CacheStorage:
    """Builds the storage backend named by ``url``: ``memory://`` or a redis URL."""
    if url.startswith("memory://"):
        return MemoryCacheStorage()
    if url.startswith(("redis://", "rediss://", "unix://")):
        logger.info(f"Using Redis cache storage at '{url}'.")
        return RedisCacheStorage.from_url(url)
    raise ValueError(f"Unsupported cache storage URL: '{url}'")
