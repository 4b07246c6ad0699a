# gmhs/pwa/manager.py
"""
Page-side cache hygiene.

``CacheManager`` clears API-like caches on start-up, on a fixed interval,
when the page comes back online and before it unloads. The ``try_*``
methods report failures as ``Result`` values; the plain methods are the
adapters the page calls, which log failures and never raise.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import BaseModel

from .cache_storage import CacheStorage, open_cache_storage
from .events import BEFORE_UNLOAD, ONLINE, ConnectivityMonitor
from .policy import API_CACHE_MARKERS, api_like, has_marker
from .worker import CLEAR_API_CACHE, WorkerRegistration
from ..backend.config.config import settings

logger = logging.getLogger(__name__)

CLEAR_JOB_ID = "clear_api_caches"


@dataclass(frozen=True)
class Result:
    ok: bool
    value: Any = None
    error: Optional[BaseException] = None

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Result":
        return cls(ok=False, error=error)


class CacheOptions(BaseModel):
    clear_api_cache: bool = True
    clear_all_caches: bool = False
    update_service_worker: bool = True


class CacheStats(BaseModel):
    total_caches: Optional[int] = None
    cache_names: Optional[List[str]] = None
    api_caches: Optional[List[str]] = None
    static_caches: Optional[List[str]] = None
    error: Optional[str] = None


class DisplayContext(BaseModel):
    """What the page knows about how it was launched."""
    display_mode: str = "browser"
    navigator_standalone: bool = False
    referrer: str = ""


class CacheManager:
    def __init__(
        self,
        storage: Optional[CacheStorage],
        registration: Optional[WorkerRegistration],
        scheduler: AsyncIOScheduler,
        monitor: ConnectivityMonitor,
        display: Optional[DisplayContext] = None,
        interval_minutes: float = settings.CACHE_CLEAR_INTERVAL_MINUTES,
    ):
        self.storage = storage
        self.registration = registration
        self.scheduler = scheduler
        self.monitor = monitor
        self.display = display or DisplayContext()
        self.interval_minutes = interval_minutes
        self.initialized = False
        self._owns_scheduler = False

    # ===== Maintenance =====

    async def try_clear_api_caches(self) -> Result:
        """Asks the worker to purge and deletes API-like caches itself. Value: deleted names."""
        try:
            if self.registration is not None and self.registration.active is not None:
                await self.registration.post_message({"type": CLEAR_API_CACHE})
                logger.info("API cache clearing requested from the worker.")

            deleted = []
            if self.storage is not None:
                for name in await self.storage.keys():
                    if has_marker(name, API_CACHE_MARKERS) and await self.storage.delete(name):
                        deleted.append(name)
            return Result.success(deleted)
        except Exception as e:
            return Result.failure(e)

    async def clear_api_caches(self) -> None:
        result = await self.try_clear_api_caches()
        if not result.ok:
            logger.error(f"Failed to clear API caches: {result.error}", exc_info=result.error)
        elif result.value:
            logger.info(f"Cleared caches: {result.value}")

    async def try_update_service_worker(self) -> Result:
        """Value: whether a new worker version took over."""
        if self.registration is None:
            return Result.success(False)
        try:
            return Result.success(await self.registration.update())
        except Exception as e:
            return Result.failure(e)

    async def update_service_worker(self) -> None:
        result = await self.try_update_service_worker()
        if not result.ok:
            logger.error(f"Failed to update the cache worker: {result.error}", exc_info=result.error)
        elif result.value:
            logger.info("Cache worker updated.")

    async def try_clear_all_caches(self) -> Result:
        if self.storage is None:
            return Result.success([])
        try:
            deleted = [name for name in await self.storage.keys() if await self.storage.delete(name)]
            return Result.success(deleted)
        except Exception as e:
            return Result.failure(e)

    async def manage_caches(self, options: Optional[CacheOptions] = None) -> None:
        options = options or CacheOptions()
        if options.update_service_worker:
            await self.update_service_worker()
        if options.clear_api_cache:
            await self.clear_api_caches()
        if options.clear_all_caches:
            result = await self.try_clear_all_caches()
            if not result.ok:
                logger.error(f"Failed to clear all caches: {result.error}", exc_info=result.error)
        logger.info("Cache management completed.")

    # ===== Diagnostics =====

    def is_pwa(self) -> bool:
        return (
            self.display.display_mode == "standalone"
            or self.display.navigator_standalone
            or "android-app://" in self.display.referrer
        )

    async def get_cache_stats(self) -> CacheStats:
        if self.storage is None:
            return CacheStats(error="Cache API not supported")
        try:
            names = await self.storage.keys()
        except Exception as e:
            logger.error("Failed to read cache names.", exc_info=True)
            return CacheStats(error=str(e) or "Unknown error")

        api_caches = api_like(names)
        return CacheStats(
            total_caches=len(names),
            cache_names=names,
            api_caches=api_caches,
            static_caches=[name for name in names if name not in api_caches],
        )

    # ===== Lifecycle =====

    async def initialize(self) -> None:
        """
        Clears API caches now, then every ``interval_minutes``, when the page
        comes back online and before it unloads. Starts the scheduler if nobody
        has yet; a scheduler started here is stopped again by ``shutdown()``.
        Calling it again is a no-op.
        """
        if self.initialized:
            return
        self.initialized = True

        if not self.scheduler.running:
            self.scheduler.start()
            self._owns_scheduler = True
        await self.clear_api_caches()
        self.scheduler.add_job(
            self.clear_api_caches, "interval", minutes=self.interval_minutes,
            id=CLEAR_JOB_ID, replace_existing=True,
        )
        self.monitor.add_listener(ONLINE, self._on_online)
        self.monitor.add_listener(BEFORE_UNLOAD, self.clear_api_caches)
        logger.info(f"Cache manager initialized, clearing API caches every {self.interval_minutes} minutes.")

    async def _on_online(self) -> None:
        logger.info("Back online, clearing API caches.")
        await self.clear_api_caches()

    async def shutdown(self) -> None:
        if not self.initialized:
            return
        try:
            self.scheduler.remove_job(CLEAR_JOB_ID)
        except JobLookupError:
            pass
        self.monitor.remove_listener(ONLINE, self._on_online)
        self.monitor.remove_listener(BEFORE_UNLOAD, self.clear_api_caches)
        if self._owns_scheduler:
            await stop_scheduler(self.scheduler)
            self._owns_scheduler = False
        self.initialized = False
        logger.info("Cache manager shut down.")


async def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Shuts ``scheduler`` down and lets the loop run the stop it may defer."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        await asyncio.sleep(0)


_manager: Optional[CacheManager] = None


def get_cache_manager(
    storage: Optional[CacheStorage] = None,
    registration: Optional[WorkerRegistration] = None,
    scheduler: Optional[AsyncIOScheduler] = None,
    monitor: Optional[ConnectivityMonitor] = None,
    display: Optional[DisplayContext] = None,
    interval_minutes: float = settings.CACHE_CLEAR_INTERVAL_MINUTES,
) -> CacheManager:
    """
    The shared manager. Arguments only matter on the first call; later calls
    return the same instance until ``dispose_cache_manager()``.
    """
    global _manager
    if _manager is None:
        _manager = CacheManager(
            storage=storage if storage is not None else open_cache_storage(settings.CACHE_STORAGE_URL),
            registration=registration,
            scheduler=scheduler or AsyncIOScheduler(),
            monitor=monitor or ConnectivityMonitor(),
            display=display,
            interval_minutes=interval_minutes,
        )
    return _manager


async def dispose_cache_manager() -> None:
    global _manager
    if _manager is not None:
        await _manager.shutdown()
        _manager = None
