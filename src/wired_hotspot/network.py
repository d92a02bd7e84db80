"""Read-only view of NetworkManager state plus the nmcli command backend."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Sequence

from .errors import AdapterUnavailable, ConfigError, PlatformError

logger = logging.getLogger(__name__)


class MediumKind(str, Enum):
    WIRED = "wired"
    WIRELESS = "wireless"
    OTHER = "other"


class LinkState(str, Enum):
    UNMANAGED = "unmanaged"
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


_DEVICE_TYPES = {
    "ethernet": MediumKind.WIRED,
    "wifi": MediumKind.WIRELESS,
}


def medium_from_nmcli(value: str) -> MediumKind:
    return _DEVICE_TYPES.get(value.strip().lower(), MediumKind.OTHER)


def link_state_from_nmcli(value: str) -> LinkState:
    """Map nmcli's device state text onto the four states we act on."""

    text = value.strip().lower()
    if text.startswith("connected"):
        return LinkState.CONNECTED
    if text.startswith("connecting"):
        return LinkState.CONNECTING
    if text == "unmanaged":
        return LinkState.UNMANAGED
    return LinkState.DISCONNECTED


@dataclass(frozen=True, slots=True)
class Interface:
    """A network device as reported by NetworkManager."""

    name: str
    kind: MediumKind
    state: LinkState

    @property
    def connected(self) -> bool:
        return self.state is LinkState.CONNECTED

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "kind": self.kind.value, "state": self.state.value}


@dataclass(frozen=True, slots=True)
class ConnectionProfile:
    """A saved NetworkManager connection."""

    name: str
    connection_type: str


@dataclass(frozen=True, slots=True)
class ActivationRecord:
    """Runtime fact that a profile is active on a device."""

    name: str
    device: str | None


@dataclass(frozen=True, slots=True)
class AccessPointSettings:
    """Attributes of the access-point profile handed to the platform."""

    connection_name: str
    interface: str
    ssid: str
    password: str
    band: str = "bg"
    autoconnect: bool = True


class NetworkBackend:
    """Abstract command/query interface onto the platform network manager."""

    def list_devices(self) -> Sequence[Interface]:  # pragma: no cover - interface only
        raise NotImplementedError

    def list_connections(self) -> Sequence[ConnectionProfile]:  # pragma: no cover - interface only
        raise NotImplementedError

    def list_active_connections(self) -> Sequence[ActivationRecord]:  # pragma: no cover - interface only
        raise NotImplementedError

    def add_access_point(self, settings: AccessPointSettings) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def connection_up(self, name: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def connection_down(self, name: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def connection_delete(self, name: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def wifi_radio_enabled(self) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    def set_wifi_radio(self, enabled: bool) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def interface_address(self, interface: str) -> str | None:  # pragma: no cover - interface only
        raise NotImplementedError


def split_nmcli_fields(line: str) -> list[str]:
    """Split a terse nmcli line on unescaped colons.

    nmcli escapes literal colons and backslashes in ``-t`` output, so profile
    names such as ``Cafe: Guest`` arrive as ``Cafe\\: Guest``.
    """

    fields: list[str] = []
    current: list[str] = []
    escaped = False
    for char in line:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ":":
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
    if escaped:
        current.append("\\")
    fields.append("".join(current))
    return fields


def _redact(args: Sequence[str]) -> str:
    redacted: list[str] = []
    hide_next = False
    for arg in args:
        if hide_next:
            redacted.append("<hidden>")
            hide_next = False
            continue
        redacted.append(arg)
        if arg.endswith(".psk") or arg == "password":
            hide_next = True
    return " ".join(redacted)


class NMCLIBackend(NetworkBackend):
    """Interact with NetworkManager via nmcli commands."""

    def __init__(self, *, timeout: float = 5.0, binary: str = "nmcli") -> None:
        self._timeout = timeout
        self._binary = binary

    # ------------------------------- helpers -------------------------------
    def _run(self, args: Sequence[str]) -> str:
        command = [self._binary, *args]
        description = _redact(command)
        logger.debug("Running %s", description)
        try:
            completed = subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise AdapterUnavailable(
                f"{self._binary} command unavailable", command=description
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise AdapterUnavailable(
                f"{self._binary} command timed out after {self._timeout:g}s",
                command=description,
            ) from exc
        except subprocess.CalledProcessError as exc:
            error_output = (exc.stderr or "").strip() or (exc.stdout or "").strip() or str(exc)
            raise PlatformError(error_output, command=description) from exc
        return completed.stdout

    @staticmethod
    def _rows(output: str, width: int) -> Iterable[list[str]]:
        for line in output.splitlines():
            if not line.strip():
                continue
            fields = split_nmcli_fields(line)
            if len(fields) < width:
                continue
            yield [field.strip() for field in fields[:width]]

    # ---------------------------- interface impl ---------------------------
    def list_devices(self) -> list[Interface]:
        output = self._run(["-t", "-f", "DEVICE,TYPE,STATE", "device", "status"])
        return [
            Interface(
                name=device,
                kind=medium_from_nmcli(dev_type),
                state=link_state_from_nmcli(state),
            )
            for device, dev_type, state in self._rows(output, 3)
            if device
        ]

    def list_connections(self) -> list[ConnectionProfile]:
        output = self._run(["-t", "-f", "NAME,TYPE", "connection", "show"])
        return [
            ConnectionProfile(name=name, connection_type=conn_type)
            for name, conn_type in self._rows(output, 2)
            if name
        ]

    def list_active_connections(self) -> list[ActivationRecord]:
        output = self._run(["-t", "-f", "NAME,DEVICE", "connection", "show", "--active"])
        return [
            ActivationRecord(name=name, device=device or None)
            for name, device in self._rows(output, 2)
            if name
        ]

    def add_access_point(self, settings: AccessPointSettings) -> None:
        self._run(
            [
                "connection",
                "add",
                "type",
                "wifi",
                "ifname",
                settings.interface,
                "con-name",
                settings.connection_name,
                "autoconnect",
                "yes" if settings.autoconnect else "no",
                "ssid",
                settings.ssid,
                "802-11-wireless.mode",
                "ap",
                "802-11-wireless.band",
                settings.band,
                "ipv4.method",
                "shared",
                "wifi-sec.key-mgmt",
                "wpa-psk",
                "wifi-sec.psk",
                settings.password,
            ]
        )

    def connection_up(self, name: str) -> None:
        self._run(["connection", "up", name])

    def connection_down(self, name: str) -> None:
        self._run(["connection", "down", name])

    def connection_delete(self, name: str) -> None:
        self._run(["connection", "delete", name])

    def wifi_radio_enabled(self) -> bool:
        output = self._run(["radio", "wifi"]).strip().lower()
        if output not in {"enabled", "disabled"}:
            raise PlatformError(f"Unexpected radio state {output!r}")
        return output == "enabled"

    def set_wifi_radio(self, enabled: bool) -> None:
        self._run(["radio", "wifi", "on" if enabled else "off"])

    def interface_address(self, interface: str) -> str | None:
        output = self._run(["-g", "IP4.ADDRESS", "device", "show", interface])
        for line in output.splitlines():
            for candidate in line.split("|"):
                address = candidate.strip()
                if address:
                    return address.split("/")[0]
        return None


# ------------------------------- wired policies -----------------------------
WiredPolicy = Callable[[Sequence[Interface]], bool]


def any_wired_connected(interfaces: Sequence[Interface]) -> bool:
    """Default policy: any connected ethernet device counts."""

    return any(
        iface.kind is MediumKind.WIRED and iface.connected for iface in interfaces
    )


def only_interfaces(*names: str) -> WiredPolicy:
    """Policy restricted to the named wired devices."""

    wanted = frozenset(name for name in names if name)

    def _policy(interfaces: Sequence[Interface]) -> bool:
        return any(
            iface.kind is MediumKind.WIRED and iface.connected and iface.name in wanted
            for iface in interfaces
        )

    _policy.__name__ = f"only_interfaces({', '.join(sorted(wanted))})"
    return _policy


def wired_policy_for(name: str, wired_interface: str | None = None) -> WiredPolicy:
    """Resolve a named wired policy from configuration."""

    if name == "any":
        return any_wired_connected
    if name == "configured":
        if not wired_interface:
            raise ConfigError("The 'configured' wired policy requires a wired interface")
        return only_interfaces(wired_interface)
    raise ConfigError(f"Unknown wired policy {name!r}")


class NetworkStateQuery:
    """Point-in-time probes against the platform.

    Nothing is cached: each call re-queries the backend, and any platform
    failure surfaces as :class:`AdapterUnavailable` rather than a falsy answer.
    """

    def __init__(
        self,
        backend: NetworkBackend,
        *,
        wired_policy: WiredPolicy = any_wired_connected,
    ) -> None:
        self._backend = backend
        self._wired_policy = wired_policy

    @property
    def backend(self) -> NetworkBackend:
        return self._backend

    def _query(self, description: str, func: Callable[[], object]) -> object:
        try:
            return func()
        except AdapterUnavailable:
            raise
        except PlatformError as exc:
            raise AdapterUnavailable(
                f"Unable to {description}: {exc}", command=exc.command
            ) from exc

    def list_interfaces(self) -> list[Interface]:
        return list(self._query("list devices", self._backend.list_devices))

    def is_wired_connected(self) -> bool:
        interfaces = self.list_interfaces()
        wired = [iface for iface in interfaces if iface.kind is MediumKind.WIRED]
        logger.debug(
            "Wired devices: %s",
            ", ".join(f"{iface.name}={iface.state.value}" for iface in wired) or "none",
        )
        return bool(self._wired_policy(interfaces))

    def active_records(self) -> list[ActivationRecord]:
        return list(
            self._query("list active connections", self._backend.list_active_connections)
        )

    def active_device(self, name: str) -> str | None:
        if not name:
            return None
        for record in self.active_records():
            if record.name == name:
                return record.device
        return None

    def is_profile_active(self, name: str) -> bool:
        if not name:
            return False
        return any(record.name == name for record in self.active_records())

    def profile_exists(self, name: str) -> bool:
        if not name:
            return False
        profiles = self._query("list connections", self._backend.list_connections)
        return any(profile.name == name for profile in profiles)

    def wifi_radio_enabled(self) -> bool:
        return bool(self._query("read the Wi-Fi radio state", self._backend.wifi_radio_enabled))

    def interface_address(self, interface: str) -> str | None:
        return self._query(
            f"read the address of {interface}",
            lambda: self._backend.interface_address(interface),
        )


__all__ = [
    "MediumKind",
    "LinkState",
    "Interface",
    "ConnectionProfile",
    "ActivationRecord",
    "AccessPointSettings",
    "NetworkBackend",
    "NMCLIBackend",
    "NetworkStateQuery",
    "WiredPolicy",
    "any_wired_connected",
    "only_interfaces",
    "wired_policy_for",
    "split_nmcli_fields",
    "medium_from_nmcli",
    "link_state_from_nmcli",
]
