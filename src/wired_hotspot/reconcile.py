"""State reconciliation between wired link state and the hotspot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .config import HotspotConfig
from .errors import ActivationError, ConfigError, ProfileMissing
from .hotspot import HotspotConnectionManager, HotspotHelper, VerificationReport
from .network import NetworkBackend, NetworkStateQuery, NMCLIBackend, wired_policy_for
from .system_log import SystemLog


class TriggerAction(str, Enum):
    LINK_UP = "up"
    LINK_DOWN = "down"
    CONNECTIVITY_CHANGE = "connectivity-change"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | None) -> "TriggerAction":
        text = (value or "").strip().lower()
        aliases = {
            "up": cls.LINK_UP,
            "link-up": cls.LINK_UP,
            "down": cls.LINK_DOWN,
            "link-down": cls.LINK_DOWN,
            "connectivity-change": cls.CONNECTIVITY_CHANGE,
        }
        return aliases.get(text, cls.OTHER)


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    """Notification delivered by the NetworkManager dispatcher."""

    interface: str
    action: TriggerAction
    raw_action: str = ""

    @classmethod
    def from_args(cls, interface: str | None, action: str | None) -> "TriggerEvent":
        return cls(
            interface=(interface or "").strip(),
            action=TriggerAction.parse(action),
            raw_action=(action or "").strip(),
        )

    @property
    def relevant(self) -> bool:
        return self.action is not TriggerAction.OTHER


class Action(str, Enum):
    NONE = "none"
    ENABLE_RADIO = "enable-radio"
    DISABLE_RADIO = "disable-radio"
    STOP_HOTSPOT_ENABLE_RADIO = "stop-hotspot-enable-radio"
    STOP_HOTSPOT_DISABLE_RADIO = "stop-hotspot-disable-radio"
    START_HOTSPOT = "start-hotspot"


def decide(wired_up: bool, hotspot_mode: bool, hotspot_active: bool) -> Action:
    """Pick the corrective action for an observed state.

    Wired presence is evaluated first; the hotspot mode only matters while a
    wired link is up.
    """

    if not wired_up:
        return Action.STOP_HOTSPOT_ENABLE_RADIO if hotspot_active else Action.ENABLE_RADIO
    if hotspot_mode:
        return Action.NONE if hotspot_active else Action.START_HOTSPOT
    return Action.STOP_HOTSPOT_DISABLE_RADIO if hotspot_active else Action.DISABLE_RADIO


@dataclass(frozen=True, slots=True)
class ObservedState:
    wired_up: bool
    hotspot_mode: bool
    hotspot_active: bool

    def to_dict(self) -> dict[str, bool]:
        return {
            "wired_up": self.wired_up,
            "hotspot_mode": self.hotspot_mode,
            "hotspot_active": self.hotspot_active,
        }


@dataclass(slots=True)
class ReconcileResult:
    """What a reconciliation pass observed and did."""

    observed: ObservedState
    action: Action
    event: TriggerEvent | None = None
    mutated: bool = False
    used_fallback: bool = False
    verification: VerificationReport | None = None

    def to_dict(self) -> dict[str, object | None]:
        return {
            "observed": self.observed.to_dict(),
            "action": self.action.value,
            "interface": self.event.interface if self.event else None,
            "trigger": self.event.raw_action if self.event else None,
            "mutated": self.mutated,
            "used_fallback": self.used_fallback,
            "verification": self.verification.to_dict() if self.verification else None,
        }


class Reconciler:
    """Drive the platform toward the state implied by wired link and mode.

    Each pass re-reads everything from the platform, takes exactly one
    corrective action and never retries; the next trigger is the retry.
    Query failures propagate before any mutation is attempted.
    """

    def __init__(
        self,
        config: HotspotConfig,
        manager: HotspotConnectionManager,
        *,
        helper: HotspotHelper | None = None,
        system_log: SystemLog | None = None,
    ) -> None:
        self._config = config
        self._manager = manager
        self._query = manager.query
        self._helper = helper
        self._system_log = system_log or SystemLog()

    @classmethod
    def from_config(
        cls,
        config: HotspotConfig,
        *,
        backend: NetworkBackend | None = None,
        system_log: SystemLog | None = None,
    ) -> "Reconciler":
        """Wire the query adapter, connection manager and helper for *config*."""

        backend = backend or NMCLIBackend(timeout=config.command_timeout)
        query = NetworkStateQuery(
            backend,
            wired_policy=wired_policy_for(config.wired_policy, config.wired_interface),
        )
        log = system_log or SystemLog()
        manager = HotspotConnectionManager(query, system_log=log)
        helper = (
            HotspotHelper(config.helper_path, config.source)
            if config.source is not None
            else None
        )
        return cls(config, manager, helper=helper, system_log=log)

    @property
    def config(self) -> HotspotConfig:
        return self._config

    @property
    def manager(self) -> HotspotConnectionManager:
        return self._manager

    def _record(
        self, event: str, message: str, *, level: int = logging.INFO, **metadata: object | None
    ) -> None:
        self._system_log.record("reconcile", event, message, level=level, metadata=metadata or None)

    def observe(self) -> ObservedState:
        wired_up = self._query.is_wired_connected()
        hotspot_active = self._query.is_profile_active(self._config.connection_name)
        return ObservedState(
            wired_up=wired_up,
            hotspot_mode=self._config.hotspot_mode_enabled,
            hotspot_active=hotspot_active,
        )

    def status(self) -> dict[str, object | None]:
        """Snapshot of everything the decision table looks at."""

        name = self._config.connection_name
        interfaces = self._query.list_interfaces()
        observed = self.observe()
        return {
            "config": self._config.to_dict(),
            "observed": observed.to_dict(),
            "pending_action": decide(
                observed.wired_up, observed.hotspot_mode, observed.hotspot_active
            ).value,
            "profile_exists": self._query.profile_exists(name),
            "active_device": self._query.active_device(name),
            "wifi_radio": self._query.wifi_radio_enabled(),
            "interfaces": [iface.to_dict() for iface in interfaces],
        }

    def reconcile(self, event: TriggerEvent | None = None) -> ReconcileResult:
        observed = self.observe()
        action = decide(observed.wired_up, observed.hotspot_mode, observed.hotspot_active)
        self._record(
            "decision",
            f"Decided {action.value}.",
            interface=event.interface if event else None,
            trigger=event.raw_action if event else None,
            wired_up=observed.wired_up,
            hotspot_mode=observed.hotspot_mode,
            hotspot_active=observed.hotspot_active,
        )
        result = ReconcileResult(observed=observed, action=action, event=event)
        name = self._config.connection_name

        if action is Action.NONE:
            self._record("noop", "Hotspot already active, nothing to do.", connection=name)
        elif action is Action.ENABLE_RADIO:
            result.mutated = self._manager.ensure_wifi_radio(True)
        elif action is Action.DISABLE_RADIO:
            result.mutated = self._manager.ensure_wifi_radio(False)
        elif action is Action.STOP_HOTSPOT_ENABLE_RADIO:
            self._manager.deactivate(name)
            self._manager.set_wifi_radio(True)
            result.mutated = True
        elif action is Action.STOP_HOTSPOT_DISABLE_RADIO:
            self._manager.deactivate(name)
            self._manager.set_wifi_radio(False)
            result.mutated = True
        elif action is Action.START_HOTSPOT:
            self._start_hotspot(result)
        return result

    def _start_hotspot(self, result: ReconcileResult) -> None:
        name = self._config.connection_name
        if not name:
            self._record(
                "config_error",
                "Hotspot mode enabled but no connection name is configured.",
                level=logging.ERROR,
                config=str(self._config.source) if self._config.source else None,
            )
            raise ConfigError("Hotspot mode enabled but no connection name is configured")
        if not self._query.profile_exists(name):
            self._record(
                "profile_missing",
                f"Hotspot connection {name} does not exist.",
                level=logging.ERROR,
                connection=name,
            )
            raise ProfileMissing("hotspot connection profile does not exist")

        try:
            result.mutated = self._manager.activate(name)
        except ActivationError as exc:
            helper = self._helper
            if helper is None or not helper.available():
                raise
            self._record(
                "fallback",
                "Direct activation failed; trying helper.",
                level=logging.WARNING,
                connection=name,
                helper=" ".join(helper.command),
            )
            try:
                helper.start()
            except ActivationError as helper_exc:
                self._record(
                    "fallback_error",
                    f"Helper activation failed: {helper_exc}.",
                    level=logging.ERROR,
                    connection=name,
                )
                raise ActivationError(
                    f"Unable to activate hotspot {name}: direct activation failed ({exc}); "
                    f"helper fallback failed ({helper_exc})",
                    cause=helper_exc,
                ) from helper_exc
            self._record("fallback_ok", "Hotspot started via helper.", connection=name)
            result.mutated = True
            result.used_fallback = True

        result.verification = self._manager.verify(name, self._config.wifi_interface)


__all__ = [
    "TriggerAction",
    "TriggerEvent",
    "Action",
    "decide",
    "ObservedState",
    "ReconcileResult",
    "Reconciler",
]
