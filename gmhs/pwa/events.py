# gmhs/pwa/events.py
import inspect
import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

ONLINE = "online"
OFFLINE = "offline"
BEFORE_UNLOAD = "beforeunload"

Listener = Callable[[], Any]


class ConnectivityMonitor:
    """
    Tracks whether the page is online and dispatches ``online`` / ``offline``
    on state changes and ``beforeunload`` when the page goes away.
    Listeners may be plain functions or coroutine functions.
    """

    def __init__(self, online: bool = True):
        self._online = online
        self._listeners: Dict[str, List[Listener]] = {}

    @property
    def online(self) -> bool:
        return self._online

    def add_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.setdefault(event, [])
        # Same listener twice is still one registration.
        if listener not in listeners:
            listeners.append(listener)

    def remove_listener(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        await self.emit(ONLINE if online else OFFLINE)

    async def unload(self) -> None:
        await self.emit(BEFORE_UNLOAD)

    async def emit(self, event: str) -> None:
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error(f"Listener for '{event}' failed.", exc_info=True)
