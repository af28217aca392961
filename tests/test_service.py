"""Tests for the connection manager and WAN service handlers."""

import json

import pytest

from connmgrd.commands import CommandHandler
from connmgrd.errors import ErrorCode
from connmgrd.registry import Technology
from connmgrd.rpc.server import RPCServer
from connmgrd.service import ConnectionManagerService, WanService
from connmgrd.types import ServiceState, TechnologyType

from conftest import make_service


@pytest.fixture
def server(tmp_path):
    return RPCServer(socket_path=tmp_path / "cm.sock")


@pytest.fixture
def service(registry, aggregator):
    return ConnectionManagerService(registry, aggregator, CommandHandler(registry))


@pytest.fixture
def wan_server(tmp_path, registry, aggregator):
    srv = RPCServer(socket_path=tmp_path / "wan.sock")
    WanService(registry, aggregator).register(srv)
    return srv


def call(server, method, params=None):
    """Run a request through the server's request processing."""
    request = {"jsonrpc": "2.0", "method": method, "params": params or {}, "id": 7}
    response, _ = server._process_request(json.dumps(request).encode())
    assert response["id"] == 7
    return response["result"]


def test_getstatus(server, service, wired_online):
    service.register(server)
    reply = call(server, "getstatus")

    assert reply["returnValue"] is True
    assert reply["wired"]["ipAddress"] == "192.168.1.5"
    assert reply["wifi"] == {"state": "disconnected"}


def test_getstatus_alias(server, service, wired_online):
    service.register(server)
    assert call(server, "getStatus") == call(server, "getstatus")


def test_getstatus_subscribe_must_be_bool(server, service):
    service.register(server)
    reply = call(server, "getstatus", {"subscribe": "yes"})

    assert reply == {
        "returnValue": False,
        "errorCode": ErrorCode.INVALID_PARAMS,
        "errorText": "Invalid parameters",
    }


def test_setstate_reply(server, service, registry):
    service.register(server)

    assert call(server, "setstate", {"wifi": "disabled"}) == {"returnValue": True}
    assert registry.find_technology(TechnologyType.WIFI).powered is False


def test_setstate_error_reply(server, service):
    service.register(server)
    reply = call(server, "setstate", {})

    assert reply["returnValue"] is False
    assert reply["errorCode"] == ErrorCode.INVALID_PARAMS


def test_setdns_not_found_reply(server, service):
    service.register(server)
    reply = call(server, "setdns", {"dns": ["8.8.8.8"], "ssid": "Nowhere"})

    assert reply == {
        "returnValue": False,
        "errorCode": ErrorCode.NOT_FOUND,
        "errorText": "No connected network",
    }


def test_setipv4_reply(server, service, wired_online):
    service.register(server)

    assert call(server, "setipv4", {"method": "manual", "gateway": "192.168.1.254"}) == {"returnValue": True}
    assert wired_online.ipv4.gateway == "192.168.1.254"


def test_getinfo(server, service, registry, wired_online):
    registry.add_service(make_service(
        "wifi_home", TechnologyType.WIFI, ServiceState.ONLINE,
        name="HomeNet", mac_address="b8:27:eb:00:00:02",
    ))
    service.register(server)

    assert call(server, "getinfo") == {
        "returnValue": True,
        "wifiInfo": {"macAddress": "b8:27:eb:00:00:02"},
        "wiredInfo": {"macAddress": "b8:27:eb:00:00:01"},
    }


def test_getinfo_omits_unknown_address(server, service, wired_online, caplog):
    service.register(server)
    reply = call(server, "getinfo")

    assert reply["returnValue"] is True
    assert "wifiInfo" not in reply
    assert reply["wiredInfo"] == {"macAddress": "b8:27:eb:00:00:01"}
    assert "Error in fetching mac address for wifi interface" in caplog.text


def test_getinfo_reads_sysfs(server, service, registry, tmp_path, monkeypatch):
    from connmgrd.registry import base

    (tmp_path / "eth0").mkdir()
    (tmp_path / "eth0" / "address").write_text("b8:27:eb:aa:bb:cc\n")
    monkeypatch.setattr(base, "SYSFS_NET_PATH", tmp_path)
    registry.add_service(make_service("ethernet_0", TechnologyType.WIRED, interface="eth0"))
    service.register(server)

    assert call(server, "getinfo")["wiredInfo"] == {"macAddress": "b8:27:eb:aa:bb:cc"}


def test_debug_registered_with_stats(server, registry, aggregator):
    ConnectionManagerService(
        registry, aggregator, CommandHandler(registry), stats=lambda: {"uptime": 5},
    ).register(server)

    assert call(server, "debug") == {"returnValue": True, "uptime": 5}


# === WAN ===

def test_wan_without_cellular(wan_server):
    assert call(wan_server, "getstatus") == {
        "returnValue": False,
        "errorCode": ErrorCode.UNAVAILABLE,
        "errorText": "Cellular technology unavailable",
    }


def test_wan_daemon_unavailable(wan_server, registry):
    registry.set_available(False)
    reply = call(wan_server, "getstatus")

    assert reply["errorCode"] == ErrorCode.UNAVAILABLE
    assert reply["errorText"] == "Connection manager unavailable"


def test_wan_status(wan_server, registry):
    registry.add_technology(Technology(TechnologyType.CELLULAR, powered=True))
    registry.add_service(make_service("cellular_1", TechnologyType.CELLULAR, ServiceState.ONLINE))

    assert call(wan_server, "getstatus") == {
        "returnValue": True,
        "state": "enabled",
        "networkstatus": "attached",
        "dataaccess": "usable",
        "networktype": "umts",
        "connectedservices": [{"connectstatus": "active", "service": ["internet"]}],
    }
