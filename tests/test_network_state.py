import pytest

from wired_hotspot.errors import AdapterUnavailable, ConfigError, PlatformError
from wired_hotspot.network import (
    Interface,
    LinkState,
    MediumKind,
    NetworkStateQuery,
    any_wired_connected,
    only_interfaces,
    wired_policy_for,
)


def test_any_wired_interface_counts(backend) -> None:
    backend.devices.append(Interface("eth1", MediumKind.WIRED, LinkState.DISCONNECTED))
    query = NetworkStateQuery(backend)

    assert query.is_wired_connected() is False

    backend.set_wired(LinkState.CONNECTED, name="eth1")
    assert query.is_wired_connected() is True


def test_connecting_wired_link_is_not_connected(backend) -> None:
    backend.set_wired(LinkState.CONNECTING)
    assert NetworkStateQuery(backend).is_wired_connected() is False


def test_wireless_connection_does_not_count_as_wired(backend) -> None:
    backend.devices = [Interface("wlan0", MediumKind.WIRELESS, LinkState.CONNECTED)]
    assert NetworkStateQuery(backend).is_wired_connected() is False


def test_named_policy_ignores_other_wired_links(backend) -> None:
    backend.devices.append(Interface("eth1", MediumKind.WIRED, LinkState.CONNECTED))
    query = NetworkStateQuery(backend, wired_policy=only_interfaces("eth0"))

    assert query.is_wired_connected() is False

    backend.set_wired(LinkState.CONNECTED, name="eth0")
    assert query.is_wired_connected() is True


def test_wired_policy_lookup() -> None:
    assert wired_policy_for("any") is any_wired_connected
    policy = wired_policy_for("configured", "eth0")
    assert policy([Interface("eth0", MediumKind.WIRED, LinkState.CONNECTED)]) is True
    with pytest.raises(ConfigError):
        wired_policy_for("configured")
    with pytest.raises(ConfigError):
        wired_policy_for("majority")


def test_profile_queries_are_fresh_every_call(backend) -> None:
    query = NetworkStateQuery(backend)
    assert query.profile_exists("auto-hotspot") is False
    assert query.is_profile_active("auto-hotspot") is False

    backend.add_profile("auto-hotspot", active_on="wlan0")

    assert query.profile_exists("auto-hotspot") is True
    assert query.is_profile_active("auto-hotspot") is True
    assert query.active_device("auto-hotspot") == "wlan0"

    backend.active.clear()
    assert query.is_profile_active("auto-hotspot") is False
    assert query.active_device("auto-hotspot") is None


def test_empty_profile_name_is_never_active(backend) -> None:
    query = NetworkStateQuery(backend)
    assert query.is_profile_active("") is False
    assert query.profile_exists("") is False
    assert backend.calls == []


def test_query_failures_surface_as_adapter_unavailable(backend) -> None:
    backend.errors["list_devices"] = PlatformError("Error: NetworkManager is not running.")
    query = NetworkStateQuery(backend)

    with pytest.raises(AdapterUnavailable, match="NetworkManager is not running"):
        query.is_wired_connected()


def test_timeouts_are_not_coerced_to_false(backend) -> None:
    backend.unavailable = True
    query = NetworkStateQuery(backend)

    with pytest.raises(AdapterUnavailable):
        query.is_profile_active("auto-hotspot")
    with pytest.raises(AdapterUnavailable):
        query.profile_exists("auto-hotspot")
    with pytest.raises(AdapterUnavailable):
        query.wifi_radio_enabled()
