import logging
from pathlib import Path

import pytest

from wired_hotspot import dispatcher
from wired_hotspot.network import LinkState


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> list[bool]:
    calls: list[bool] = []

    def fake_configure_logging(*, debug: bool = False, use_syslog: bool = True) -> logging.Logger:
        calls.append(debug)
        return logging.getLogger("wired_hotspot")

    monkeypatch.setattr(dispatcher, "configure_logging", fake_configure_logging)
    return calls


def _write_config(tmp_path: Path, **values: str) -> Path:
    defaults = {
        "HOTSPOT_CON_NAME": "auto-hotspot",
        "HOTSPOT_SSID": "AutoHotspot",
        "HOTSPOT_PASSWORD": "supersecret",
    }
    defaults.update(values)
    path = tmp_path / "hotspot.env"
    path.write_text("".join(f"{key}={value}\n" for key, value in defaults.items()))
    return path


def test_irrelevant_events_touch_nothing(backend, tmp_path: Path) -> None:
    config_path = tmp_path / "unreadable.env"
    config_path.mkdir()

    code = dispatcher.main(
        ["eth0", "dhcp4-change", "-c", str(config_path)], backend=backend, environ={}
    )

    assert code == 0
    assert backend.calls == []


def test_missing_arguments_are_ignored(backend) -> None:
    assert dispatcher.main([], backend=backend, environ={}) == 0
    assert backend.calls == []


def test_link_up_starts_hotspot(backend, tmp_path: Path) -> None:
    backend.set_wired(LinkState.CONNECTED)
    backend.add_profile("auto-hotspot")
    config_path = _write_config(tmp_path)

    code = dispatcher.main(["eth0", "up", "-c", str(config_path)], backend=backend, environ={})

    assert code == 0
    assert backend.active["auto-hotspot"] == "wlan0"


def test_fatal_errors_exit_non_zero(
    backend, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    backend.set_wired(LinkState.CONNECTED)
    config_path = _write_config(tmp_path)

    with caplog.at_level(logging.ERROR, logger="wired_hotspot"):
        code = dispatcher.main(
            ["eth0", "up", "-c", str(config_path)], backend=backend, environ={}
        )

    assert code == 1
    assert "fatal: hotspot connection profile does not exist" in caplog.text
    assert backend.mutating_calls() == []


def test_adapter_unavailable_exits_non_zero(backend, tmp_path: Path) -> None:
    backend.unavailable = True
    code = dispatcher.main(
        ["eth0", "down", "-c", str(_write_config(tmp_path))], backend=backend, environ={}
    )
    assert code == 1
    assert backend.mutating_calls() == []


def test_unexpected_errors_exit_non_zero(
    backend, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def explode(self, event=None):
        raise ValueError("boom")

    monkeypatch.setattr(dispatcher.Reconciler, "reconcile", explode)

    code = dispatcher.main(
        ["eth0", "connectivity-change", "-c", str(_write_config(tmp_path))],
        backend=backend,
        environ={},
    )
    assert code == 1


def test_debug_flag_raises_log_level(backend, tmp_path: Path, quiet_logging: list[bool]) -> None:
    config_path = _write_config(tmp_path, HOTSPOT_DEBUG="yes")

    dispatcher.main(["eth0", "down", "-c", str(config_path)], backend=backend, environ={})

    assert quiet_logging == [False, True]


def test_config_path_resolution(tmp_path: Path) -> None:
    explicit = tmp_path / "explicit.env"
    assert dispatcher.resolve_config_path(explicit, {}) == explicit
    assert dispatcher.resolve_config_path(
        None, {"WIRED_HOTSPOT_CONFIG": "/srv/hotspot.env"}
    ) == Path("/srv/hotspot.env")
    assert dispatcher.resolve_config_path(None, {}) == dispatcher.DEFAULT_CONFIG_PATH


def test_missing_config_file_uses_defaults(backend, tmp_path: Path) -> None:
    backend.radio = False
    code = dispatcher.main(
        ["eth0", "down", "-c", str(tmp_path / "absent.env")], backend=backend, environ={}
    )
    assert code == 0
    assert backend.mutating_calls() == [("set_wifi_radio", True)]
