"""Manual control of the hotspot profile.

Also serves as the secondary activation path: when a direct ``nmcli
connection up`` fails the dispatcher runs ``wired-hotspot -c <config> start``.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Sequence

from .config import DEFAULT_CONFIG_PATH, HotspotConfig, load_config
from .errors import AdapterUnavailable, ConfigError, HotspotError
from .network import NetworkBackend
from .reconcile import Reconciler, TriggerAction, TriggerEvent
from .system_log import configure_logging
from .version import APP_VERSION

logger = logging.getLogger("wired_hotspot.cli")

COMMANDS = ("start", "stop", "status", "verify", "create", "delete", "reconcile")


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the control CLI."""

    parser = argparse.ArgumentParser(
        prog="wired-hotspot",
        description="Manage the wired-triggered Wi-Fi hotspot profile.",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Configuration file (default: {DEFAULT_CONFIG_PATH}).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON for scripting.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {APP_VERSION}",
    )
    parser.add_argument("command", choices=COMMANDS, help="Operation to perform.")
    return parser


def _require_name(config: HotspotConfig) -> str:
    if not config.connection_name:
        raise ConfigError("Hotspot connection name is not configured (HOTSPOT_CON_NAME)")
    return config.connection_name


def _start(reconciler: Reconciler) -> dict[str, object | None]:
    config = reconciler.config
    manager = reconciler.manager
    name = _require_name(config)
    # An existing profile carries its own SSID and secret.
    exists = manager.query.profile_exists(name)
    if not exists:
        manager.check_profile_settings(config)
    radio_toggled = manager.ensure_wifi_radio(True)
    created = False if exists else manager.ensure_profile(config)
    activated = manager.activate(name)
    report = manager.verify(name, config.wifi_interface)
    return {
        "connection": name,
        "radio_toggled": radio_toggled,
        "created": created,
        "activated": activated,
        "verification": report.to_dict(),
    }


def _stop(reconciler: Reconciler) -> dict[str, object | None]:
    name = _require_name(reconciler.config)
    return {"connection": name, "deactivated": reconciler.manager.deactivate(name)}


def _verify(reconciler: Reconciler) -> dict[str, object | None]:
    name = _require_name(reconciler.config)
    return reconciler.manager.verify(name, reconciler.config.wifi_interface).to_dict()


def _create(reconciler: Reconciler) -> dict[str, object | None]:
    created = reconciler.manager.ensure_profile(reconciler.config)
    return {"connection": reconciler.config.connection_name, "created": created}


def _delete(reconciler: Reconciler) -> dict[str, object | None]:
    name = _require_name(reconciler.config)
    return {"connection": name, "deleted": reconciler.manager.delete(name)}


def _reconcile(reconciler: Reconciler) -> dict[str, object | None]:
    event = TriggerEvent(interface="", action=TriggerAction.CONNECTIVITY_CHANGE, raw_action="manual")
    return reconciler.reconcile(event).to_dict()


_HANDLERS: dict[str, Callable[[Reconciler], dict[str, object | None]]] = {
    "start": _start,
    "stop": _stop,
    "status": Reconciler.status,
    "verify": _verify,
    "create": _create,
    "delete": _delete,
    "reconcile": _reconcile,
}


def _print_human(command: str, payload: dict[str, object | None]) -> None:
    print(f"wired-hotspot {command}")
    for key, value in payload.items():
        if isinstance(value, dict):
            print(f" - {key}:")
            for inner_key, inner_value in value.items():
                print(f"     {inner_key}: {inner_value}")
        elif isinstance(value, list):
            print(f" - {key}:")
            for item in value:
                print(f"     {item}")
        else:
            print(f" - {key}: {value}")


def run(argv: Sequence[str] | None = None, *, backend: NetworkBackend | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(args.config)
        configure_logging(debug=config.debug)
        reconciler = Reconciler.from_config(config, backend=backend)
        payload = _HANDLERS[args.command](reconciler)
    except AdapterUnavailable as exc:
        print(f"NetworkManager unavailable: {exc}", file=sys.stderr)
        return 1
    except HotspotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except Exception:
        logger.exception("Unexpected failure running %s", args.command)
        return 1
    if args.json:
        print(json.dumps(payload, indent=2, sort_keys=True))
    else:
        _print_human(args.command, payload)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by the ``wired-hotspot`` console script."""

    return run(argv)


__all__ = ["COMMANDS", "build_parser", "run", "main"]


if __name__ == "__main__":  # pragma: no cover - module behaviour
    sys.exit(main())
