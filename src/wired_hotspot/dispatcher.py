"""NetworkManager dispatcher hook.

NetworkManager runs every executable in ``/etc/NetworkManager/dispatcher.d``
with ``<interface> <action>``; the exit status is all it looks at. Only link
up/down and connectivity changes are acted upon.
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Sequence

from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import HotspotError
from .network import NetworkBackend
from .reconcile import Reconciler, TriggerEvent
from .system_log import configure_logging

logger = logging.getLogger("wired_hotspot.dispatcher")

CONFIG_ENV_VAR = "WIRED_HOTSPOT_CONFIG"
EXIT_OK = 0
EXIT_FAILURE = 1

_DEBUG_ENVIRONMENT = ("DEVICE_IFACE", "IP4_ADDRESS_0", "CONNECTION_ID", "CONNECTIVITY_STATE")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wired-hotspot-dispatch",
        description="Switch between Wi-Fi client mode and hotspot when wired links change.",
    )
    parser.add_argument("interface", nargs="?", default="", help="Interface that triggered the event.")
    parser.add_argument("action", nargs="?", default="", help="Dispatcher action (up, down, ...).")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Configuration file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH}).",
    )
    return parser


def resolve_config_path(
    explicit: Path | None, environ: Mapping[str, str]
) -> Path:
    if explicit is not None:
        return explicit
    override = environ.get(CONFIG_ENV_VAR, "").strip()
    return Path(override) if override else DEFAULT_CONFIG_PATH


def handle_event(
    event: TriggerEvent,
    config_path: Path,
    *,
    backend: NetworkBackend | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Reconcile for a relevant *event* and map the outcome to an exit code."""

    if not event.relevant:
        logger.debug("Ignoring event type: %s", event.raw_action or "<none>")
        return EXIT_OK
    try:
        config = load_config(config_path)
        if config.debug:
            configure_logging(debug=True)
        if environ is not None:
            logger.debug(
                "Environment: %s",
                " ".join(f"{key}={environ.get(key, '')}" for key in _DEBUG_ENVIRONMENT),
            )
        reconciler = Reconciler.from_config(config, backend=backend)
        result = reconciler.reconcile(event)
    except HotspotError as exc:
        logger.error("fatal: %s", exc)
        return EXIT_FAILURE
    except Exception:
        logger.exception("Unexpected failure while handling %s on %s", event.raw_action, event.interface)
        return EXIT_FAILURE
    logger.info(
        "Handled %s on %s: action=%s mutated=%s",
        event.raw_action,
        event.interface or "<none>",
        result.action.value,
        result.mutated,
    )
    return EXIT_OK


def main(
    argv: Sequence[str] | None = None,
    *,
    backend: NetworkBackend | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Entry point used by the dispatcher script and `python -m wired_hotspot.dispatcher`."""

    environ = os.environ if environ is None else environ
    args = build_parser().parse_args(argv)
    configure_logging()
    event = TriggerEvent.from_args(args.interface, args.action)
    logger.info("Event: interface=%s action=%s", event.interface, event.raw_action)
    return handle_event(
        event,
        resolve_config_path(args.config, environ),
        backend=backend,
        environ=environ,
    )


__all__ = ["build_parser", "handle_event", "main", "resolve_config_path"]


if __name__ == "__main__":  # pragma: no cover - module behaviour
    sys.exit(main())
