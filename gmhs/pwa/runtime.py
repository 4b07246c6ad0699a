# gmhs/pwa/runtime.py
import logging
from typing import Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from .api_client import SchoolApiClient
from .cache_storage import CacheStorage, open_cache_storage
from .events import ConnectivityMonitor
from .manager import CacheManager, DisplayContext, stop_scheduler
from .policy import ApiCacheMode
from .worker import CacheWorker, CacheWorkerTransport, WorkerRegistration
from ..backend.config.config import settings

logger = logging.getLogger(__name__)


class PWARuntime:
    """
    Wires the client side together: cache storage, the cache worker and its
    registration, connectivity monitor, scheduler, cache manager and an API
    client whose traffic goes through the worker.

        async with PWARuntime() as runtime:
            students = await runtime.api.get_students(teacher_id)
    """

    def __init__(
        self,
        origin: str = settings.APP_ORIGIN,
        network: Optional[httpx.AsyncBaseTransport] = None,
        storage: Optional[CacheStorage] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        display: Optional[DisplayContext] = None,
        cache_name: str = settings.CACHE_NAME,
        api_mode: ApiCacheMode = ApiCacheMode(settings.API_CACHE_MODE),
    ):
        self.origin = origin
        self.cache_name = cache_name
        self.api_mode = api_mode
        self.network = network or httpx.AsyncHTTPTransport()
        self.storage = storage if storage is not None else open_cache_storage(settings.CACHE_STORAGE_URL)
        self.scheduler = scheduler or AsyncIOScheduler()
        self.monitor = monitor or ConnectivityMonitor()

        self.registration = WorkerRegistration(self.build_worker)
        self.manager = CacheManager(
            storage=self.storage,
            registration=self.registration,
            scheduler=self.scheduler,
            monitor=self.monitor,
            display=display,
        )
        self.api = SchoolApiClient(origin, transport=CacheWorkerTransport(self.registration, self.network))

    def build_worker(self) -> CacheWorker:
        return CacheWorker(
            storage=self.storage,
            network=self.network,
            origin=self.origin,
            cache_name=self.cache_name,
            api_mode=self.api_mode,
            monitor=self.monitor,
        )

    async def start(self) -> None:
        await self.registration.register()
        if not self.scheduler.running:
            self.scheduler.start()
        await self.manager.initialize()
        logger.info(f"PWA runtime started for {self.origin}.")

    async def stop(self) -> None:
        await self.manager.shutdown()
        await stop_scheduler(self.scheduler)
        # Also closes the network transport.
        await self.api.aclose()
        await self.storage.close()
        logger.info("PWA runtime stopped.")

    async def __aenter__(self) -> "PWARuntime":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
