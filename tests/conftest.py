from __future__ import annotations

import logging
from typing import Iterator

import pytest

from wired_hotspot.errors import AdapterUnavailable, PlatformError
from wired_hotspot.network import (
    AccessPointSettings,
    ActivationRecord,
    ConnectionProfile,
    Interface,
    LinkState,
    MediumKind,
)

MUTATING_CALLS = {
    "add_access_point",
    "connection_up",
    "connection_down",
    "connection_delete",
    "set_wifi_radio",
}


class FakeNetworkBackend:
    """In-memory stand-in for NetworkManager."""

    def __init__(self) -> None:
        self.devices: list[Interface] = [
            Interface("eth0", MediumKind.WIRED, LinkState.DISCONNECTED),
            Interface("wlan0", MediumKind.WIRELESS, LinkState.DISCONNECTED),
            Interface("lo", MediumKind.OTHER, LinkState.UNMANAGED),
        ]
        self.profiles: dict[str, str] = {}
        self.active: dict[str, str | None] = {}
        self.radio = True
        self.addresses: dict[str, str] = {}
        self.calls: list[tuple[str, object]] = []
        self.added: list[AccessPointSettings] = []
        self.unavailable = False
        self.errors: dict[str, PlatformError] = {}

    # ------------------------------ scenario helpers -----------------------
    def set_wired(self, state: LinkState, name: str = "eth0") -> None:
        self.devices = [
            Interface(iface.name, iface.kind, state) if iface.name == name else iface
            for iface in self.devices
        ]

    def add_profile(self, name: str, *, active_on: str | None = None) -> None:
        self.profiles[name] = "802-11-wireless"
        if active_on is not None:
            self.active[name] = active_on

    def mutating_calls(self) -> list[tuple[str, object]]:
        return [call for call in self.calls if call[0] in MUTATING_CALLS]

    def _check(self, method: str, argument: object = None) -> None:
        self.calls.append((method, argument))
        if self.unavailable:
            raise AdapterUnavailable("nmcli command timed out after 5s")
        error = self.errors.get(method)
        if error is not None:
            raise error

    # ---------------------------------- backend ----------------------------
    def list_devices(self) -> list[Interface]:
        self._check("list_devices")
        return list(self.devices)

    def list_connections(self) -> list[ConnectionProfile]:
        self._check("list_connections")
        return [ConnectionProfile(name, kind) for name, kind in self.profiles.items()]

    def list_active_connections(self) -> list[ActivationRecord]:
        self._check("list_active_connections")
        return [ActivationRecord(name, device) for name, device in self.active.items()]

    def add_access_point(self, settings: AccessPointSettings) -> None:
        self._check("add_access_point", settings.connection_name)
        self.added.append(settings)
        self.profiles[settings.connection_name] = "802-11-wireless"

    def connection_up(self, name: str) -> None:
        self._check("connection_up", name)
        if name not in self.profiles:
            raise PlatformError(f"Error: unknown connection '{name}'.")
        self.active[name] = "wlan0"

    def connection_down(self, name: str) -> None:
        self._check("connection_down", name)
        if name not in self.active:
            raise PlatformError(f"Error: '{name}' is not an active connection.")
        self.active.pop(name)

    def connection_delete(self, name: str) -> None:
        self._check("connection_delete", name)
        if name not in self.profiles:
            raise PlatformError(f"Error: cannot delete unknown connection(s): '{name}'.")
        self.profiles.pop(name)
        self.active.pop(name, None)

    def wifi_radio_enabled(self) -> bool:
        self._check("wifi_radio_enabled")
        return self.radio

    def set_wifi_radio(self, enabled: bool) -> None:
        self._check("set_wifi_radio", enabled)
        self.radio = enabled

    def interface_address(self, interface: str) -> str | None:
        self._check("interface_address", interface)
        return self.addresses.get(interface)


@pytest.fixture
def backend() -> FakeNetworkBackend:
    return FakeNetworkBackend()


@pytest.fixture(autouse=True)
def restore_package_logger() -> Iterator[None]:
    logger = logging.getLogger("wired_hotspot")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate
