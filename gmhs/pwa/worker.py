# gmhs/pwa/worker.py
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence

import httpx

from .cache_storage import CacheStorage
from .events import ConnectivityMonitor
from .policy import (
    ApiCacheMode, Strategy, WORKER_PURGE_MARKERS, classify, has_marker, no_cache_request,
    no_cache_response, strategy,
)
from ..backend.config.config import settings

logger = logging.getLogger(__name__)

SKIP_WAITING = "SKIP_WAITING"
CLEAR_API_CACHE = "CLEAR_API_CACHE"
BACKGROUND_SYNC_TAG = "background-sync"


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


def origin_of(url: httpx.URL) -> tuple:
    return url.scheme, url.host, url.port


def offline_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        status_code=503,
        json={"error": "Network unavailable", "offline": True},
        request=request,
    )


class CacheWorker:
    """
    Intercepts same-origin fetches for the app. API traffic is left to the
    network (or, in the deprecated mode, rewritten so nothing caches it);
    everything else is served cache-first from the versioned cache.
    """

    def __init__(
        self,
        storage: CacheStorage,
        network: httpx.AsyncBaseTransport,
        origin: str = settings.APP_ORIGIN,
        cache_name: str = settings.CACHE_NAME,
        precache_urls: Optional[Sequence[str]] = None,
        api_mode: ApiCacheMode = ApiCacheMode(settings.API_CACHE_MODE),
        monitor: Optional[ConnectivityMonitor] = None,
    ):
        self.storage = storage
        self.network = network
        self.origin = httpx.URL(origin)
        self.cache_name = cache_name
        self.precache_urls = list(settings.PRECACHE_URLS if precache_urls is None else precache_urls)
        self.api_mode = ApiCacheMode(api_mode)
        self.monitor = monitor
        self.state = WorkerState.PARSED
        self.skip_waiting_requested = False
        self.clients_claimed = False

    def _absolute(self, url: str) -> str:
        return str(self.origin.join(url))

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        response = await self.network.handle_async_request(request)
        await response.aread()
        return response

    # ===== Lifecycle =====

    async def install(self) -> None:
        """Precaches the static assets. A failed precache is logged, not raised."""
        self.state = WorkerState.INSTALLING
        try:
            cache = await self.storage.open(self.cache_name)
            await cache.add_all([self._absolute(url) for url in self.precache_urls], self._fetch)
            logger.info(f"Precached {len(self.precache_urls)} assets into '{self.cache_name}'.")
        except Exception:
            logger.error(f"Precaching into '{self.cache_name}' failed.", exc_info=True)
        self.skip_waiting()
        self.state = WorkerState.INSTALLED

    def skip_waiting(self) -> None:
        self.skip_waiting_requested = True

    async def activate(self) -> List[str]:
        """Deletes every cache but the current version, then takes over the clients."""
        self.state = WorkerState.ACTIVATING
        deleted = []
        for name in await self.storage.keys():
            if name != self.cache_name and await self.storage.delete(name):
                deleted.append(name)
        if deleted:
            logger.info(f"Deleted stale caches: {deleted}")
        self.clients_claimed = True
        self.state = WorkerState.ACTIVATED
        return deleted

    # ===== Events =====

    async def handle_fetch(self, request: httpx.Request) -> Optional[httpx.Response]:
        """
        Returns the response for an intercepted request, or None when the
        request is not intercepted and should go straight to the network.
        """
        if origin_of(request.url) != origin_of(self.origin):
            return None

        chosen = strategy(classify(request.url), self.api_mode)
        if chosen == Strategy.BYPASS:
            logger.debug(f"API request bypasses the worker: {request.url}")
            return None
        if chosen == Strategy.NETWORK_NO_CACHE:
            return await self._network_no_cache(request)
        return await self._cache_first(request)

    async def _cache_first(self, request: httpx.Request) -> httpx.Response:
        cached = await self.storage.match(request)
        if cached is not None:
            return cached

        try:
            response = await self._fetch(request)
        except httpx.TransportError:
            logger.error(f"Static asset fetch failed: {request.url}", exc_info=True)
            if request.headers.get("sec-fetch-mode") == "navigate":
                fallback = await self.storage.match(self._absolute("/"))
                if fallback is not None:
                    return fallback
            raise

        # Only complete, same-origin GET responses are stored.
        if response.status_code == 200 and request.method.upper() == "GET":
            cache = await self.storage.open(self.cache_name)
            await cache.put(request, response)
        return response

    async def _network_no_cache(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        try:
            response = await self.network.handle_async_request(no_cache_request(request))
        except httpx.TransportError:
            if self.monitor is not None and not self.monitor.online:
                logger.warning(f"Offline, answering {request.url} with 503.")
                return offline_response(request)
            raise
        return no_cache_response(response)

    async def handle_message(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        message_type = data.get("type")
        if message_type == SKIP_WAITING:
            self.skip_waiting()
        elif message_type == CLEAR_API_CACHE:
            await self.purge_api_caches()

    async def background_sync(self, tag: str) -> None:
        if tag != BACKGROUND_SYNC_TAG:
            return
        try:
            await self.purge_api_caches()
        except Exception:
            logger.error("Background sync failed.", exc_info=True)

    async def purge_api_caches(self) -> List[str]:
        deleted = []
        for name in await self.storage.keys():
            if has_marker(name, WORKER_PURGE_MARKERS) and await self.storage.delete(name):
                deleted.append(name)
        if deleted:
            logger.info(f"Cleared API caches: {deleted}")
        return deleted


class WorkerRegistration:
    """
    Owns the active worker. ``factory`` builds a worker from the current
    code; a new worker replaces the active one only when its cache version
    differs.
    """

    def __init__(self, factory: Callable[[], CacheWorker]):
        self.factory = factory
        self.active: Optional[CacheWorker] = None

    async def _install_and_activate(self, worker: CacheWorker) -> None:
        await worker.install()
        await worker.activate()
        if self.active is not None:
            self.active.state = WorkerState.REDUNDANT
        self.active = worker

    async def register(self) -> CacheWorker:
        if self.active is None:
            await self._install_and_activate(self.factory())
            logger.info(f"Cache worker registered with cache '{self.active.cache_name}'.")
        return self.active

    async def update(self) -> bool:
        """True when a new worker version was installed and took over."""
        candidate = self.factory()
        if self.active is not None and candidate.cache_name == self.active.cache_name:
            return False
        await self._install_and_activate(candidate)
        logger.info(f"Cache worker updated to '{candidate.cache_name}'.")
        return True

    async def post_message(self, data: Any) -> bool:
        if self.active is None:
            return False
        await self.active.handle_message(data)
        return True


class CacheWorkerTransport(httpx.AsyncBaseTransport):
    """
    httpx transport that lets the active worker answer a request first and
    falls through to ``network`` when the worker does not intercept it.
    """

    def __init__(self, registration: WorkerRegistration, network: httpx.AsyncBaseTransport):
        self.registration = registration
        self.network = network

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        worker = self.registration.active
        if worker is not None:
            response = await worker.handle_fetch(request)
            if response is not None:
                return response
        return await self.network.handle_async_request(request)

    async def aclose(self) -> None:
        await self.network.aclose()
