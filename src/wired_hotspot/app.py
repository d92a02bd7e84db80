"""FastAPI application exposing hotspot status and manual control."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel

from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import (
    ActionError,
    AdapterUnavailable,
    ConfigError,
    HotspotError,
    NoWirelessInterface,
    ProfileMissing,
)
from .network import NetworkBackend
from .reconcile import Reconciler, TriggerEvent
from .system_log import SystemLog
from .version import APP_VERSION


class ReconcilePayload(BaseModel):
    interface: str = ""
    action: str = "connectivity-change"


def _http_error(exc: HotspotError) -> HTTPException:
    if isinstance(exc, AdapterUnavailable):
        return HTTPException(status_code=503, detail=str(exc))
    if isinstance(exc, (ConfigError, ProfileMissing, NoWirelessInterface)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ActionError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def create_app(
    config_path: Path | str = DEFAULT_CONFIG_PATH,
    *,
    backend: NetworkBackend | None = None,
    system_log: SystemLog | None = None,
) -> FastAPI:
    app = FastAPI(title="Wired Hotspot", version=APP_VERSION)

    logger = logging.getLogger(__name__)

    config_path = Path(config_path)
    shared_system_log = system_log or SystemLog()

    def _reconciler() -> Reconciler:
        # Configuration is re-read per request so edits apply without a restart.
        config = load_config(config_path)
        return Reconciler.from_config(config, backend=backend, system_log=shared_system_log)

    def _require_name(reconciler: Reconciler) -> str:
        name = reconciler.config.connection_name
        if not name:
            raise ConfigError("Hotspot connection name is not configured")
        return name

    def _status() -> dict[str, object | None]:
        return _reconciler().status()

    def _verify() -> dict[str, object | None]:
        reconciler = _reconciler()
        name = _require_name(reconciler)
        return reconciler.manager.verify(name, reconciler.config.wifi_interface).to_dict()

    def _reconcile(event: TriggerEvent) -> dict[str, object | None]:
        return _reconciler().reconcile(event).to_dict()

    def _create_profile() -> dict[str, object | None]:
        reconciler = _reconciler()
        created = reconciler.manager.ensure_profile(reconciler.config)
        return {"connection": reconciler.config.connection_name, "created": created}

    def _delete_profile() -> dict[str, object | None]:
        reconciler = _reconciler()
        name = _require_name(reconciler)
        return {"connection": name, "deleted": reconciler.manager.delete(name)}

    @app.get("/api/hotspot/status")
    async def get_hotspot_status() -> dict[str, object | None]:
        try:
            return await run_in_threadpool(_status)
        except HotspotError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/hotspot/verify")
    async def verify_hotspot() -> dict[str, object | None]:
        try:
            return await run_in_threadpool(_verify)
        except HotspotError as exc:
            raise _http_error(exc) from exc

    @app.post("/api/hotspot/reconcile")
    async def reconcile_hotspot(payload: ReconcilePayload) -> dict[str, object | None]:
        event = TriggerEvent.from_args(payload.interface, payload.action)
        if not event.relevant:
            return {"ignored": True, "trigger": event.raw_action}
        try:
            return await run_in_threadpool(_reconcile, event)
        except HotspotError as exc:
            logger.warning("Reconciliation request failed: %s", exc)
            raise _http_error(exc) from exc

    @app.post("/api/hotspot/profile")
    async def create_hotspot_profile() -> dict[str, object | None]:
        try:
            return await run_in_threadpool(_create_profile)
        except HotspotError as exc:
            raise _http_error(exc) from exc

    @app.delete("/api/hotspot/profile")
    async def delete_hotspot_profile() -> dict[str, object | None]:
        try:
            return await run_in_threadpool(_delete_profile)
        except HotspotError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/logs")
    async def get_system_log_entries(limit: int = 100, category: str | None = None) -> dict[str, object]:
        entries = shared_system_log.tail(max(1, min(limit, 1000)), category=category)
        ordered = list(reversed(entries))
        return {"entries": [entry.to_dict() for entry in ordered]}

    app.state.system_log = shared_system_log
    return app


__all__ = ["create_app", "ReconcilePayload"]
