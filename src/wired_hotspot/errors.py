"""Error taxonomy shared by the hotspot controller components."""

from __future__ import annotations


class HotspotError(RuntimeError):
    """Base class for failures raised by the hotspot controller."""


class PlatformError(HotspotError):
    """Raised when a NetworkManager command exits unsuccessfully."""

    def __init__(self, message: str, *, command: str | None = None) -> None:
        super().__init__(message)
        self.command = command


class AdapterUnavailable(PlatformError):
    """Raised when NetworkManager cannot be queried or commanded at all."""


class ConfigError(HotspotError):
    """Raised when the supplied configuration is unusable."""


class NoWirelessInterface(HotspotError):
    """Raised when no wireless interface exists to host the hotspot."""


class ProfileMissing(HotspotError):
    """Raised when the hotspot connection profile is not known to the platform."""


class ActionError(HotspotError):
    """Raised when the platform rejects a mutating action."""

    action = "action"

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class CreateError(ActionError):
    action = "create"


class ActivationError(ActionError):
    action = "activate"


class DeactivationError(ActionError):
    action = "deactivate"


class DeleteError(ActionError):
    action = "delete"


class RadioError(ActionError):
    action = "radio"


__all__ = [
    "HotspotError",
    "PlatformError",
    "AdapterUnavailable",
    "ConfigError",
    "NoWirelessInterface",
    "ProfileMissing",
    "ActionError",
    "CreateError",
    "ActivationError",
    "DeactivationError",
    "DeleteError",
    "RadioError",
]
