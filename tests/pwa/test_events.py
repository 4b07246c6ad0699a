import pytest
from unittest.mock import AsyncMock, MagicMock

from gmhs.pwa.events import BEFORE_UNLOAD, OFFLINE, ONLINE, ConnectivityMonitor


@pytest.mark.asyncio
class TestConnectivityMonitor:

    async def test_emits_only_on_transitions(self):
        monitor = ConnectivityMonitor(online=True)
        on_online, on_offline = MagicMock(), AsyncMock()
        monitor.add_listener(ONLINE, on_online)
        monitor.add_listener(OFFLINE, on_offline)

        await monitor.set_online(True)
        await monitor.set_online(False)
        await monitor.set_online(False)
        await monitor.set_online(True)

        assert on_online.call_count == 1
        assert on_offline.await_count == 1
        assert monitor.online

    async def test_duplicate_listener_registers_once(self):
        monitor = ConnectivityMonitor()
        listener = MagicMock()
        monitor.add_listener(BEFORE_UNLOAD, listener)
        monitor.add_listener(BEFORE_UNLOAD, listener)

        await monitor.unload()

        assert monitor.listener_count(BEFORE_UNLOAD) == 1
        listener.assert_called_once()

    async def test_failing_listener_does_not_stop_others(self):
        monitor = ConnectivityMonitor(online=False)
        after = MagicMock()
        monitor.add_listener(ONLINE, MagicMock(side_effect=RuntimeError("boom")))
        monitor.add_listener(ONLINE, after)

        await monitor.set_online(True)

        after.assert_called_once()

    async def test_remove_listener(self):
        monitor = ConnectivityMonitor()
        listener = MagicMock()
        monitor.add_listener(BEFORE_UNLOAD, listener)
        monitor.remove_listener(BEFORE_UNLOAD, listener)
        monitor.remove_listener(BEFORE_UNLOAD, listener)

        await monitor.unload()

        listener.assert_not_called()
