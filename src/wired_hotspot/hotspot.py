"""Lifecycle management for the hotspot connection profile."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from .config import MIN_PASSWORD_LENGTH, HotspotConfig
from .errors import (
    ActivationError,
    ConfigError,
    CreateError,
    DeactivationError,
    DeleteError,
    HotspotError,
    NoWirelessInterface,
    PlatformError,
    RadioError,
)
from .network import AccessPointSettings, MediumKind, NetworkStateQuery
from .system_log import SystemLog

logger = logging.getLogger(__name__)

DEFAULT_HELPER_TIMEOUT = 30.0
MAX_SSID_LENGTH = 32

_MISSING_CONNECTION_TOKENS = (
    "unknown connection",
    "no such connection",
    "not find connection",
    "cannot find connection",
    "does not exist",
    "not exist",
)
_INACTIVE_CONNECTION_TOKENS = (
    "not an active connection",
    "no active connection",
    "is not active",
    "already disconnected",
)


def _matches(message: str | None, tokens: tuple[str, ...]) -> bool:
    if not message:
        return False
    normalized = message.strip().lower()
    return any(token in normalized for token in tokens)


@dataclass(frozen=True, slots=True)
class InterfaceSelection:
    """Interfaces chosen for hosting the hotspot and for the shared uplink."""

    wireless: str
    wired: str | None


@dataclass(slots=True)
class VerificationReport:
    """Outcome of the post-activation diagnostics."""

    connection: str
    interface: str | None = None
    active: bool | None = None
    address: str | None = None
    dhcp_running: bool | None = None
    ip_forwarding: bool | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def to_dict(self) -> dict[str, object | None]:
        return {
            "connection": self.connection,
            "interface": self.interface,
            "active": self.active,
            "address": self.address,
            "dhcp_running": self.dhcp_running,
            "ip_forwarding": self.ip_forwarding,
            "warnings": list(self.warnings),
            "ok": self.ok,
        }


class HotspotHelper:
    """Secondary activation path: run the manual-control helper executable."""

    def __init__(
        self,
        helper_path: Path | str,
        config_path: Path | str | None,
        *,
        timeout: float = DEFAULT_HELPER_TIMEOUT,
    ) -> None:
        self._helper_path = Path(helper_path)
        self._config_path = Path(config_path) if config_path is not None else None
        self._timeout = timeout

    @property
    def command(self) -> list[str]:
        return [str(self._helper_path), "-c", str(self._config_path), "start"]

    def available(self) -> bool:
        if self._config_path is None or not self._config_path.is_file():
            return False
        return self._helper_path.is_file() and os.access(self._helper_path, os.X_OK)

    def start(self) -> None:
        try:
            completed = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ActivationError(
                f"Helper {self._helper_path} timed out after {self._timeout:g}s", cause=exc
            ) from exc
        except OSError as exc:
            raise ActivationError(
                f"Unable to run helper {self._helper_path}: {exc}", cause=exc
            ) from exc
        if completed.returncode != 0:
            output = " ".join(
                part.strip()
                for part in (completed.stdout or "", completed.stderr or "")
                if part.strip()
            ).replace("\n", " ")
            message = f"Helper {self._helper_path} exited with status {completed.returncode}"
            if output:
                message = f"{message}: {output}"
            raise ActivationError(message)


class HotspotConnectionManager:
    """Create, start, stop and remove the named access-point profile.

    Every mutating call checks the live state first so repeated or concurrent
    invocations converge on the same result without locking.
    """

    def __init__(
        self,
        query: NetworkStateQuery,
        *,
        system_log: SystemLog | None = None,
        proc_root: Path | str = Path("/proc"),
    ) -> None:
        self._query = query
        self._backend = query.backend
        self._system_log = system_log or SystemLog()
        self._proc_root = Path(proc_root)

    @property
    def query(self) -> NetworkStateQuery:
        return self._query

    def _record(
        self, event: str, message: str, *, level: int = logging.INFO, **metadata: object | None
    ) -> None:
        self._system_log.record("hotspot", event, message, level=level, metadata=metadata or None)

    # ------------------------------ detection ------------------------------
    def detect_interfaces(self, config: HotspotConfig) -> InterfaceSelection:
        """Resolve the hotspot and uplink interfaces.

        Explicit configuration wins. Otherwise the first wireless device hosts
        the hotspot and a connected ethernet device is preferred as uplink.
        """

        if config.wifi_interface and config.wired_interface:
            return InterfaceSelection(config.wifi_interface, config.wired_interface)
        interfaces = self._query.list_interfaces()

        wireless = config.wifi_interface
        if not wireless:
            wireless = next(
                (iface.name for iface in interfaces if iface.kind is MediumKind.WIRELESS),
                None,
            )
        if not wireless:
            raise NoWirelessInterface("No wireless interface available for the hotspot")

        wired = config.wired_interface
        if not wired:
            wired_devices = [iface for iface in interfaces if iface.kind is MediumKind.WIRED]
            connected = next((iface.name for iface in wired_devices if iface.connected), None)
            wired = connected or (wired_devices[0].name if wired_devices else None)
        if not wired:
            logger.warning("No wired interface detected; the hotspot will have no uplink to share")
        return InterfaceSelection(wireless, wired)

    # ------------------------------ operations -----------------------------
    @staticmethod
    def check_profile_settings(config: HotspotConfig) -> str:
        """Validate the settings needed to create a profile; returns its name."""

        name = config.connection_name.strip()
        if not name:
            raise ConfigError("Hotspot connection name is not configured")
        if not config.ssid:
            raise ConfigError("Hotspot SSID is not configured")
        if len(config.ssid) > MAX_SSID_LENGTH:
            raise ConfigError(f"Hotspot SSID too long (max {MAX_SSID_LENGTH} characters)")
        if len(config.password) < MIN_PASSWORD_LENGTH:
            raise ConfigError(
                f"Hotspot password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        return name

    def ensure_profile(self, config: HotspotConfig) -> bool:
        """Create the access-point profile unless it already exists.

        Returns ``True`` when a profile was created. An existing profile is
        never modified.
        """

        name = self.check_profile_settings(config)
        if self._query.profile_exists(name):
            self._record("profile_exists", f"Hotspot profile {name} already exists.", connection=name)
            return False

        selection = self.detect_interfaces(config)
        settings = AccessPointSettings(
            connection_name=name,
            interface=selection.wireless,
            ssid=config.ssid,
            password=config.password,
        )
        try:
            self._backend.add_access_point(settings)
        except PlatformError as exc:
            self._record(
                "profile_create_error",
                f"Unable to create hotspot profile {name}: {exc}.",
                connection=name,
            )
            raise CreateError(f"Unable to create hotspot profile {name}: {exc}", cause=exc) from exc
        self._record(
            "profile_created",
            f"Created hotspot profile {name}.",
            connection=name,
            interface=selection.wireless,
            uplink=selection.wired,
            ssid=config.ssid,
        )
        return True

    def activate(self, name: str) -> bool:
        """Bring the profile up; returns ``False`` if it was already active."""

        if self._query.is_profile_active(name):
            self._record("activate_skipped", f"Hotspot {name} already active.", connection=name)
            return False
        try:
            self._backend.connection_up(name)
        except PlatformError as exc:
            self._record(
                "activate_error", f"Unable to activate hotspot {name}: {exc}.", connection=name
            )
            raise ActivationError(f"Unable to activate hotspot {name}: {exc}", cause=exc) from exc
        self._record("activated", f"Hotspot {name} activated.", connection=name)
        return True

    def deactivate(self, name: str) -> bool:
        """Bring the profile down; returns ``False`` if it was not active."""

        if not self._query.is_profile_active(name):
            self._record("deactivate_skipped", f"Hotspot {name} not active.", connection=name)
            return False
        try:
            self._backend.connection_down(name)
        except PlatformError as exc:
            message = str(exc)
            if _matches(message, _INACTIVE_CONNECTION_TOKENS) or _matches(
                message, _MISSING_CONNECTION_TOKENS
            ):
                self._record(
                    "deactivate_race",
                    f"Hotspot {name} went down concurrently.",
                    connection=name,
                    detail=message,
                )
                return True
            self._record(
                "deactivate_error", f"Unable to deactivate hotspot {name}: {exc}.", connection=name
            )
            raise DeactivationError(
                f"Unable to deactivate hotspot {name}: {exc}", cause=exc
            ) from exc
        self._record("deactivated", f"Hotspot {name} deactivated.", connection=name)
        return True

    def delete(self, name: str) -> bool:
        """Remove the profile; returns ``False`` if it did not exist."""

        try:
            self.deactivate(name)
        except DeactivationError as exc:
            raise DeleteError(f"Unable to stop hotspot {name} before removal: {exc}", cause=exc) from exc
        try:
            self._backend.connection_delete(name)
        except PlatformError as exc:
            if _matches(str(exc), _MISSING_CONNECTION_TOKENS):
                self._record("delete_skipped", f"Hotspot profile {name} does not exist.", connection=name)
                return False
            self._record(
                "delete_error", f"Unable to delete hotspot profile {name}: {exc}.", connection=name
            )
            raise DeleteError(f"Unable to delete hotspot profile {name}: {exc}", cause=exc) from exc
        self._record("deleted", f"Deleted hotspot profile {name}.", connection=name)
        return True

    def set_wifi_radio(self, enabled: bool) -> None:
        state = "on" if enabled else "off"
        try:
            self._backend.set_wifi_radio(enabled)
        except PlatformError as exc:
            self._record("radio_error", f"Unable to switch Wi-Fi radio {state}: {exc}.")
            raise RadioError(f"Unable to switch Wi-Fi radio {state}: {exc}", cause=exc) from exc
        self._record("radio", f"Wi-Fi radio switched {state}.", radio=state)

    def ensure_wifi_radio(self, enabled: bool) -> bool:
        """Switch the radio only when it differs; returns ``True`` if toggled."""

        if self._query.wifi_radio_enabled() == enabled:
            logger.debug("Wi-Fi radio already %s", "on" if enabled else "off")
            return False
        self.set_wifi_radio(enabled)
        return True

    # ----------------------------- diagnostics -----------------------------
    def verify(self, name: str, interface: str | None = None) -> VerificationReport:
        """Best-effort health checks after activation; never raises."""

        report = VerificationReport(connection=name, interface=interface)
        try:
            device = self._query.active_device(name)
            report.active = self._query.is_profile_active(name)
        except HotspotError as exc:
            report.warn(f"Unable to read activation state: {exc}")
            device = None
        else:
            if not report.active:
                report.warn(f"Hotspot {name} is not active")
        if report.interface is None:
            report.interface = device

        if report.interface:
            try:
                report.address = self._query.interface_address(report.interface)
            except HotspotError as exc:
                report.warn(f"Unable to read address of {report.interface}: {exc}")
            else:
                if not report.address:
                    report.warn(f"No IPv4 address assigned to {report.interface}")
        else:
            report.warn("Hotspot interface unknown; address check skipped")

        report.dhcp_running = self._process_running("dnsmasq")
        if not report.dhcp_running:
            report.warn("dnsmasq is not running; clients will not receive addresses")

        forwarding_path = self._proc_root / "sys" / "net" / "ipv4" / "ip_forward"
        try:
            report.ip_forwarding = forwarding_path.read_text(encoding="utf-8").strip() == "1"
        except OSError as exc:
            report.warn(f"Unable to read IP forwarding state: {exc}")
        else:
            if not report.ip_forwarding:
                report.warn("IP forwarding is disabled (net.ipv4.ip_forward=0)")

        for warning in report.warnings:
            self._record("verify_warning", warning, level=logging.WARNING, connection=name)
        return report

    def _process_running(self, process_name: str) -> bool:
        try:
            candidates = list(self._proc_root.glob("[0-9]*/comm"))
        except OSError:
            return False
        for comm_path in candidates:
            try:
                if comm_path.read_text(encoding="utf-8").strip() == process_name:
                    return True
            except OSError:
                # Process exited while scanning.
                continue
        return False


__all__ = [
    "DEFAULT_HELPER_TIMEOUT",
    "InterfaceSelection",
    "VerificationReport",
    "HotspotHelper",
    "HotspotConnectionManager",
]
