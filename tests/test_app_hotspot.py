"""Integration tests for the hotspot status API."""

from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from wired_hotspot.app import create_app
from wired_hotspot.errors import PlatformError
from wired_hotspot.network import LinkState
from wired_hotspot.system_log import SystemLog


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "hotspot.env"
    path.write_text(
        "HOTSPOT_CON_NAME=auto-hotspot\n"
        "HOTSPOT_SSID=AutoHotspot\n"
        "HOTSPOT_PASSWORD=supersecret\n"
    )
    return path


@pytest.fixture
def client(backend, config_path: Path) -> TestClient:
    app = create_app(config_path, backend=backend, system_log=SystemLog())
    with TestClient(app) as test_client:
        yield test_client


def test_status_endpoint(client: TestClient, backend) -> None:
    backend.set_wired(LinkState.CONNECTED)
    backend.add_profile("auto-hotspot", active_on="wlan0")

    response = client.get("/api/hotspot/status")

    assert response.status_code == 200
    payload = response.json()
    assert payload["observed"] == {"wired_up": True, "hotspot_mode": True, "hotspot_active": True}
    assert payload["pending_action"] == "none"
    assert payload["active_device"] == "wlan0"
    assert payload["config"]["password_set"] is True
    assert "supersecret" not in response.text


def test_status_reports_unavailable_adapter(client: TestClient, backend) -> None:
    backend.unavailable = True

    response = client.get("/api/hotspot/status")

    assert response.status_code == 503
    assert "timed out" in response.json()["detail"]


def test_reconcile_endpoint_runs_pass(client: TestClient, backend) -> None:
    backend.set_wired(LinkState.CONNECTED)
    backend.add_profile("auto-hotspot")

    response = client.post("/api/hotspot/reconcile", json={"interface": "eth0", "action": "up"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["action"] == "start-hotspot"
    assert payload["interface"] == "eth0"
    assert payload["mutated"] is True
    assert backend.active["auto-hotspot"] == "wlan0"


def test_reconcile_endpoint_ignores_irrelevant_actions(client: TestClient, backend) -> None:
    response = client.post(
        "/api/hotspot/reconcile", json={"interface": "eth0", "action": "dhcp4-change"}
    )

    assert response.status_code == 200
    assert response.json() == {"ignored": True, "trigger": "dhcp4-change"}
    assert backend.calls == []


def test_reconcile_missing_profile_is_bad_request(client: TestClient, backend) -> None:
    backend.set_wired(LinkState.CONNECTED)

    response = client.post("/api/hotspot/reconcile", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "hotspot connection profile does not exist"


def test_reconcile_activation_failure_is_bad_gateway(client: TestClient, backend) -> None:
    backend.set_wired(LinkState.CONNECTED)
    backend.add_profile("auto-hotspot")
    backend.errors["connection_up"] = PlatformError("Error: Connection activation failed")

    response = client.post("/api/hotspot/reconcile", json={"action": "up"})

    assert response.status_code == 502


def test_profile_create_and_delete(client: TestClient, backend) -> None:
    created = client.post("/api/hotspot/profile")
    assert created.status_code == 200
    assert created.json() == {"connection": "auto-hotspot", "created": True}
    assert "auto-hotspot" in backend.profiles

    again = client.post("/api/hotspot/profile")
    assert again.json()["created"] is False

    deleted = client.delete("/api/hotspot/profile")
    assert deleted.status_code == 200
    assert deleted.json() == {"connection": "auto-hotspot", "deleted": True}
    assert "auto-hotspot" not in backend.profiles


def test_verify_endpoint(client: TestClient, backend) -> None:
    backend.add_profile("auto-hotspot")

    response = client.get("/api/hotspot/verify")

    assert response.status_code == 200
    payload = response.json()
    assert payload["connection"] == "auto-hotspot"
    assert payload["active"] is False
    assert payload["ok"] is False


def test_log_endpoint_returns_recent_decisions(client: TestClient, backend) -> None:
    client.post("/api/hotspot/reconcile", json={"interface": "eth0", "action": "down"})

    response = client.get("/api/logs", params={"category": "reconcile", "limit": 5})

    assert response.status_code == 200
    entries = response.json()["entries"]
    assert entries
    assert entries[-1]["event"] == "decision"
    assert all(entry["category"] == "reconcile" for entry in entries)


def test_missing_config_file_is_bad_request_for_verify(backend, tmp_path: Path) -> None:
    app = create_app(tmp_path / "absent.env", backend=backend)
    with TestClient(app) as test_client:
        response = test_client.get("/api/hotspot/verify")
    assert response.status_code == 400
