"""Configuration loading for the wired-aware hotspot controller."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path("/etc/NetworkManager/dispatcher.d/hotspot.env")
DEFAULT_HELPER_PATH = Path("/usr/local/bin/wired-hotspot")
DEFAULT_SSID = "AutoHotspot"
DEFAULT_COMMAND_TIMEOUT = 5.0
MIN_PASSWORD_LENGTH = 8

WIRED_POLICY_ANY = "any"
WIRED_POLICY_CONFIGURED = "configured"
WIRED_POLICIES = (WIRED_POLICY_ANY, WIRED_POLICY_CONFIGURED)

_TRUE_VALUES = {"true", "1", "yes", "on", "enabled"}
_FALSE_VALUES = {"false", "0", "no", "off", "disabled"}
_KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_TRAILING_COMMENT = re.compile(r"\s+#.*$")


@dataclass(frozen=True, slots=True)
class HotspotConfig:
    """Resolved settings consumed by the reconciliation engine."""

    connection_name: str = ""
    ssid: str = DEFAULT_SSID
    password: str = ""
    wifi_interface: str | None = None
    wired_interface: str | None = None
    hotspot_mode_enabled: bool = True
    wired_policy: str = WIRED_POLICY_ANY
    helper_path: Path = DEFAULT_HELPER_PATH
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT
    debug: bool = False
    source: Path | None = None

    def __post_init__(self) -> None:
        if self.wired_policy not in WIRED_POLICIES:
            raise ConfigError(
                f"Unknown wired policy {self.wired_policy!r}; expected one of {', '.join(WIRED_POLICIES)}"
            )
        if not math.isfinite(self.command_timeout) or self.command_timeout <= 0:
            raise ConfigError("Command timeout must be a positive number of seconds")
        if self.wired_policy == WIRED_POLICY_CONFIGURED and not self.wired_interface:
            raise ConfigError("The 'configured' wired policy requires HOTSPOT_WIRED_IFACE")

    def with_overrides(self, **changes: Any) -> "HotspotConfig":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, object | None]:
        return {
            "connection_name": self.connection_name,
            "ssid": self.ssid,
            "password_set": bool(self.password),
            "wifi_interface": self.wifi_interface,
            "wired_interface": self.wired_interface,
            "hotspot_mode_enabled": self.hotspot_mode_enabled,
            "wired_policy": self.wired_policy,
            "helper_path": str(self.helper_path),
            "command_timeout": self.command_timeout,
            "debug": self.debug,
            "source": str(self.source) if self.source is not None else None,
        }


def parse_flag(value: Any, *, default: bool) -> bool:
    """Normalise the boolean spellings accepted in ``hotspot.env``."""

    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if math.isnan(float(value)):
            raise ConfigError("Flags must be boolean values")
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if not text:
            return default
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
    raise ConfigError(f"Flags must be boolean values, got {value!r}")


def _parse_optional_name(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    cleaned = value.strip()
    return cleaned or None


def _parse_timeout(value: Any, *, default: float) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Command timeout must be numeric, got {value!r}") from exc
    return timeout


def _parse_value(value: str) -> str:
    """Remove one level of matching quotes and any trailing ``# comment``.

    As in the shell, ``#`` only starts a comment after whitespace and outside
    quotes.
    """

    text = value.strip()
    if text[:1] in {"'", '"'}:
        end = text.find(text[0], 1)
        if end != -1:
            rest = text[end + 1:].strip()
            if not rest or rest.startswith("#"):
                return text[1:end]
        return text
    if text.startswith("#"):
        return ""
    return _TRAILING_COMMENT.sub("", text)


def parse_env_text(text: str) -> dict[str, str]:
    """Parse shell-style ``KEY=value`` assignments.

    Comments and blank lines are skipped, a leading ``export`` is ignored and
    one level of matching quotes is removed along with trailing comments.
    A ``#`` inside a word or inside quotes is kept, so such passwords survive.
    """

    values: dict[str, str] = {}
    for number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if "=" not in line:
            raise ConfigError(f"Line {number}: expected KEY=value")
        key, value = line.split("=", 1)
        key = key.strip()
        if not _KEY_PATTERN.match(key):
            raise ConfigError(f"Line {number}: invalid key {key!r}")
        values[key] = _parse_value(value)
    return values


def config_from_mapping(
    values: Mapping[str, Any], *, source: Path | None = None
) -> HotspotConfig:
    connection_name = str(values.get("HOTSPOT_CON_NAME") or "").strip()
    ssid = str(values.get("HOTSPOT_SSID") or "").strip() or DEFAULT_SSID
    password = str(values.get("HOTSPOT_PASSWORD") or "")
    policy_raw = values.get("HOTSPOT_WIRED_POLICY")
    policy = (
        policy_raw.strip().lower()
        if isinstance(policy_raw, str) and policy_raw.strip()
        else WIRED_POLICY_ANY
    )
    helper_raw = _parse_optional_name(values.get("HOTSPOT_HELPER"))
    return HotspotConfig(
        connection_name=connection_name,
        ssid=ssid,
        password=password,
        wifi_interface=_parse_optional_name(values.get("HOTSPOT_WIFI_IFACE")),
        wired_interface=_parse_optional_name(values.get("HOTSPOT_WIRED_IFACE")),
        hotspot_mode_enabled=parse_flag(values.get("HOTSPOT_MODE"), default=True),
        wired_policy=policy,
        helper_path=Path(helper_raw) if helper_raw else DEFAULT_HELPER_PATH,
        command_timeout=_parse_timeout(
            values.get("HOTSPOT_TIMEOUT"), default=DEFAULT_COMMAND_TIMEOUT
        ),
        debug=parse_flag(values.get("HOTSPOT_DEBUG"), default=False),
        source=source,
    )


def load_config(path: Path | str = DEFAULT_CONFIG_PATH) -> HotspotConfig:
    """Read ``hotspot.env`` and return the resolved configuration.

    A missing file yields the defaults; the engine only fails later if it
    actually needs the connection name.
    """

    config_path = Path(path)
    if not config_path.exists():
        return HotspotConfig(source=None)
    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration {config_path}: {exc}") from exc
    return config_from_mapping(parse_env_text(text), source=config_path)


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_HELPER_PATH",
    "DEFAULT_SSID",
    "DEFAULT_COMMAND_TIMEOUT",
    "MIN_PASSWORD_LENGTH",
    "WIRED_POLICY_ANY",
    "WIRED_POLICY_CONFIGURED",
    "HotspotConfig",
    "parse_flag",
    "parse_env_text",
    "config_from_mapping",
    "load_config",
]
