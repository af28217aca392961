"""Tests for the per-technology status mapping."""

import pytest

from connmgrd.registry import IPv4Config, Service
from connmgrd.status.mapper import (
    CONNECT_STATUSES,
    CONNECTION_STATES,
    ConnectStatus,
    ConnectionState,
    TechnologyStatus,
    connect_status,
    connection_state,
    map_service,
)
from connmgrd.types import ServiceState, TechnologyType


def _wired(state, **kwargs):
    return Service(identifier="ethernet_0", technology=TechnologyType.WIRED, state=state, **kwargs)


def test_tables_cover_every_state():
    assert set(CONNECTION_STATES) == set(ServiceState)
    assert set(CONNECT_STATUSES) == set(ServiceState)


@pytest.mark.parametrize("state,expected", [
    (ServiceState.READY, ConnectionState.CONNECTED),
    (ServiceState.ONLINE, ConnectionState.CONNECTED),
    (ServiceState.IDLE, ConnectionState.DISCONNECTED),
    (ServiceState.ASSOCIATION, ConnectionState.DISCONNECTED),
    (ServiceState.FAILURE, ConnectionState.DISCONNECTED),
])
def test_connection_state(state, expected):
    assert connection_state(state) is expected


@pytest.mark.parametrize("state,expected", [
    (ServiceState.ASSOCIATION, ConnectStatus.CONNECTING),
    (ServiceState.CONFIGURATION, ConnectStatus.CONNECTING),
    (ServiceState.READY, ConnectStatus.CONNECTING),
    (ServiceState.ONLINE, ConnectStatus.ACTIVE),
    (ServiceState.DISCONNECT, ConnectStatus.DISCONNECTED),
    (ServiceState.UNKNOWN, ConnectStatus.DISCONNECTED),
])
def test_connect_status(state, expected):
    assert connect_status(state) is expected


def test_no_service_is_disconnected_only():
    assert map_service(None).to_dict() == {"state": "disconnected"}


@pytest.mark.parametrize("state", [
    ServiceState.IDLE,
    ServiceState.ASSOCIATION,
    ServiceState.CONFIGURATION,
    ServiceState.DISCONNECT,
    ServiceState.FAILURE,
    ServiceState.UNKNOWN,
])
def test_unconnected_service_has_no_other_keys(state):
    service = _wired(state, interface="eth0", ipv4=IPv4Config(address="10.0.0.2"), nameservers=["1.1.1.1"])
    assert map_service(service).to_dict() == {"state": "disconnected"}


def test_online_is_on_internet():
    assert map_service(_wired(ServiceState.ONLINE)).to_dict()["onInternet"] == "yes"


def test_ready_is_not_on_internet():
    assert map_service(_wired(ServiceState.READY)).to_dict()["onInternet"] == "no"


def test_dns_keys_keep_order():
    service = _wired(ServiceState.ONLINE, nameservers=["8.8.8.8", "1.1.1.1"])
    result = map_service(service).to_dict()

    assert result["dns1"] == "8.8.8.8"
    assert result["dns2"] == "1.1.1.1"
    assert "dns3" not in result


def test_wired_has_no_wifi_fields():
    result = map_service(_wired(ServiceState.ONLINE, name="Wired", strength=50)).to_dict()

    for key in ("ssid", "isWakeOnWifiEnabled", "signalLevel", "networkConfidenceLevel"):
        assert key not in result


def test_wifi_fields():
    service = Service(
        identifier="wifi_home",
        technology=TechnologyType.WIFI,
        name="HomeNet",
        state=ServiceState.READY,
        interface="wlan0",
        strength=72,
    )
    result = map_service(service).to_dict()

    assert result["ssid"] == "HomeNet"
    assert result["isWakeOnWifiEnabled"] is False
    assert result["signalLevel"] == 72
    assert result["networkConfidenceLevel"] == "excellent"
    assert result["onInternet"] == "no"


def test_key_order():
    service = Service(
        identifier="wifi_home",
        technology=TechnologyType.WIFI,
        name="HomeNet",
        state=ServiceState.ONLINE,
        interface="wlan0",
        ipv4=IPv4Config("dhcp", "10.0.0.2", "255.0.0.0", "10.0.0.1"),
        nameservers=["10.0.0.1"],
        strength=40,
    )
    assert list(map_service(service).to_dict()) == [
        "state", "interfaceName", "ipAddress", "netmask", "gateway", "dns1",
        "method", "ssid", "isWakeOnWifiEnabled", "signalLevel", "onInternet",
        "networkConfidenceLevel",
    ]


def test_refreshes_ipinfo_before_reading(registry):
    service = _wired(ServiceState.ONLINE, ipv4=IPv4Config(address="10.0.0.2"))
    refreshed = []

    def refresh(svc):
        refreshed.append(svc.identifier)
        svc.ipv4 = IPv4Config(address="10.0.0.3")

    registry.refresh_ipinfo = refresh

    assert map_service(service, registry).to_dict()["ipAddress"] == "10.0.0.3"
    assert refreshed == ["ethernet_0"]


def test_technology_status_default_is_disconnected():
    status = TechnologyStatus()
    assert not status.is_connected
    assert status.to_dict() == {"state": "disconnected"}
