"""Network state and WiFi transition notifications."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from yogaageproof.services.retry import Sleep

CONNECTION_WIFI = "wifi"
CONNECTION_ETHERNET = "ethernet"
CONNECTION_NONE = "none"
CONNECTION_UNKNOWN = "unknown"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkState:
    """Link type and reachability at a point in time."""

    connection_type: str
    is_connected: bool
    is_internet_reachable: bool

    @property
    def is_wifi_ready(self) -> bool:
        """Connected over WiFi with the internet reachable."""
        return (
            self.is_connected
            and self.connection_type == CONNECTION_WIFI
            and self.is_internet_reachable
        )


OFFLINE = NetworkState(
    connection_type=CONNECTION_NONE, is_connected=False, is_internet_reachable=False
)

NetworkListener = Callable[[NetworkState], Awaitable[None]]


class NetworkMonitor(Protocol):
    """Interface for reading the current network state."""

    async def current(self) -> NetworkState:
        """Return the current network state."""


class NetworkWatcher:
    """Polls a monitor and notifies listeners when WiFi becomes ready."""

    def __init__(
        self,
        monitor: NetworkMonitor,
        poll_interval: float = 30.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.monitor = monitor
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._listeners: list[NetworkListener] = []
        self._task: asyncio.Task[None] | None = None
        self._was_ready = False
        self.last_state: NetworkState | None = None

    def subscribe(self, listener: NetworkListener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def check(self) -> NetworkState:
        """Poll once, notifying listeners on a transition into WiFi+reachable."""
        state = await self.monitor.current()
        became_ready = state.is_wifi_ready and not self._was_ready
        self._was_ready = state.is_wifi_ready
        self.last_state = state
        if became_ready:
            _logger.info("WiFi connection available")
            for listener in list(self._listeners):
                try:
                    await listener(state)
                except Exception:
                    _logger.exception("Network listener failed")
        return state

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                await self.check()
            except Exception:
                _logger.exception("Network check failed")
            await self._sleep(self.poll_interval)
