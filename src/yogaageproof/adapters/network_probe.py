"""Network monitor using sysfs link detection and an HTTP probe."""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from yogaageproof.services.network import (
    CONNECTION_ETHERNET,
    CONNECTION_NONE,
    CONNECTION_UNKNOWN,
    CONNECTION_WIFI,
    NetworkMonitor,
    NetworkState,
)

_SERVER_ERROR_STATUS = 500


@dataclass
class ProbeNetworkMonitor(NetworkMonitor):
    """Detects the active link type and checks internet reachability."""

    probe_url: str
    http_client: httpx.AsyncClient
    connection_type_override: str | None = None
    sys_class_net: Path = field(default=Path("/sys/class/net"))

    @classmethod
    def create(
        cls, probe_url: str, connection_type_override: str | None = None
    ) -> "ProbeNetworkMonitor":
        """Create a monitor with a managed httpx session."""
        return cls(
            probe_url=probe_url,
            http_client=httpx.AsyncClient(),
            connection_type_override=connection_type_override,
        )

    async def current(self) -> NetworkState:
        connection_type = self.connection_type_override or await asyncio.to_thread(
            self.detect_connection_type
        )
        if connection_type == CONNECTION_NONE:
            return NetworkState(
                connection_type=CONNECTION_NONE,
                is_connected=False,
                is_internet_reachable=False,
            )
        return NetworkState(
            connection_type=connection_type,
            is_connected=True,
            is_internet_reachable=await self.is_reachable(),
        )

    def detect_connection_type(self) -> str:
        """Return wifi, ethernet or none from interface state in sysfs."""
        if not self.sys_class_net.is_dir():
            return CONNECTION_UNKNOWN
        wired_up = False
        for interface in sorted(self.sys_class_net.iterdir()):
            if interface.name == "lo" or not _is_up(interface):
                continue
            if (interface / "wireless").exists() or (interface / "phy80211").exists():
                return CONNECTION_WIFI
            wired_up = True
        return CONNECTION_ETHERNET if wired_up else CONNECTION_NONE

    async def is_reachable(self) -> bool:
        try:
            response = await self.http_client.head(self.probe_url, timeout=5)
        except httpx.HTTPError:
            return False
        return response.status_code < _SERVER_ERROR_STATUS

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _is_up(interface: Path) -> bool:
    operstate = interface / "operstate"
    if not operstate.exists():
        return False
    return operstate.read_text(encoding="utf-8").strip() in {"up", "unknown"}
