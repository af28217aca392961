"""Tests for command validation and application."""

import pytest

from connmgrd.commands import CommandHandler, parse_set_ipv4, parse_set_state
from connmgrd.errors import (
    BadRequestError,
    ErrorCode,
    NotFoundError,
    UnavailableError,
    UnknownFailure,
    ValidationError,
)
from connmgrd.registry import RegistryError, Technology
from connmgrd.types import ServiceState, TechnologyType

from conftest import make_service


@pytest.fixture
def handler(registry):
    return CommandHandler(registry)


@pytest.fixture
def wifi_home(registry):
    service = make_service("wifi_home", TechnologyType.WIFI, ServiceState.READY, name="HomeNet")
    registry.add_service(service)
    return service


# === setstate ===

def test_setstate_already_enabled_makes_no_calls(registry, handler, caplog):
    caplog.set_level("DEBUG", logger="connmgrd.commands")

    handler.set_state({"wifi": "enabled"})

    assert registry.calls == []
    assert "Wifi technology already enabled" in caplog.text


def test_setstate_applies_mismatch(registry, handler):
    handler.set_state({"wifi": "disabled", "wired": "enabled"})

    assert registry.calls == [("set_powered", (TechnologyType.WIFI, False))]
    assert registry.find_technology(TechnologyType.WIFI).powered is False


def test_setstate_offline_mode(registry, handler):
    handler.set_state({"offlineMode": "enabled"})
    handler.set_state({"offlineMode": "enabled"})

    assert registry.offline_mode is True
    assert registry.calls == [("set_offline", (True,))]


@pytest.mark.parametrize("params", [
    {},
    {"unrelated": "enabled"},
    {"wifi": "on"},
    {"wifi": True},
    {"wired": "disabled", "wifi": "maybe"},
])
def test_setstate_invalid_params(registry, handler, params):
    with pytest.raises(ValidationError):
        handler.set_state(params)
    assert registry.calls == []


def test_setstate_not_an_object(handler):
    with pytest.raises(BadRequestError) as exc:
        handler.set_state(["wifi"])
    assert exc.value.error_code == ErrorCode.BAD_REQUEST
    assert exc.value.error_text == "Malformed json"


def test_setstate_missing_technology(registry, handler):
    registry.remove_technology(TechnologyType.WIFI)

    # Nothing to do when asked to disable an absent technology
    handler.set_state({"wifi": "disabled"})

    with pytest.raises(UnavailableError):
        handler.set_state({"wifi": "enabled"})
    assert registry.calls == []


def test_setstate_unavailable_target_applies_nothing(registry, handler):
    registry.remove_technology(TechnologyType.WIRED)
    registry.update_technology(TechnologyType.WIFI, powered=False)
    registry.calls.clear()

    with pytest.raises(UnavailableError) as exc:
        handler.set_state({"wifi": "enabled", "wired": "enabled", "offlineMode": "enabled"})

    assert exc.value.error_text == "Wired technology unavailable"
    assert registry.calls == []
    assert registry.find_technology(TechnologyType.WIFI).powered is False
    assert registry.offline_mode is False


def test_setstate_daemon_refusal(registry, handler, caplog):
    registry.fail_mutations = True

    with pytest.raises(UnknownFailure) as exc:
        handler.set_state({"wired": "disabled"})

    assert exc.value.error_code == ErrorCode.UNKNOWN
    assert "rejected" in caplog.text


def test_setstate_registry_error(registry, handler):
    def broken(technology, powered):
        raise RegistryError("bus error")

    registry.set_powered = broken
    with pytest.raises(UnknownFailure):
        handler.set_state({"wifi": "disabled"})


def test_parse_set_state():
    command = parse_set_state({"wifi": "enabled", "offlineMode": "disabled"})
    assert command.wifi is True
    assert command.wired is None
    assert command.offline is False


# === setipv4 ===

def test_setipv4_without_fields(registry, handler, wired_online):
    with pytest.raises(ValidationError) as exc:
        handler.set_ipv4({"subscribe": True})

    assert exc.value.error_code == ErrorCode.INVALID_PARAMS
    assert registry.calls == []


@pytest.mark.parametrize("params", [
    {"method": None},
    {"address": None, "netmask": None, "ssid": None},
])
def test_setipv4_null_fields_are_absent(registry, handler, wired_online, params):
    with pytest.raises(ValidationError):
        handler.set_ipv4(params)

    assert registry.calls == []
    assert wired_online.ipv4.address == "192.168.1.5"


def test_setipv4_wired(registry, handler, wired_online):
    handler.set_ipv4({"method": "manual", "address": "192.168.1.50"})

    assert wired_online.ipv4.method == "manual"
    assert wired_online.ipv4.address == "192.168.1.50"
    assert wired_online.ipv4.netmask == "255.255.255.0"
    assert registry.calls[0][0] == "set_ipv4"


def test_setipv4_wifi_by_ssid(registry, handler, wired_online, wifi_home):
    handler.set_ipv4({"method": "dhcp", "ssid": "HomeNet"})

    assert wifi_home.ipv4.method == "dhcp"
    assert registry.calls[0][1][0] == "wifi_home"


def test_setipv4_unknown_ssid(registry, handler, wired_online):
    with pytest.raises(NotFoundError) as exc:
        handler.set_ipv4({"method": "dhcp", "ssid": "Elsewhere"})

    assert exc.value.error_text == "Network not found"
    assert registry.calls == []


def test_setipv4_no_wired_service(handler):
    with pytest.raises(NotFoundError):
        handler.set_ipv4({"method": "dhcp"})


def test_setipv4_wrong_type(registry, handler, wired_online):
    with pytest.raises(ValidationError):
        handler.set_ipv4({"method": "manual", "address": 17})
    assert registry.calls == []


def test_setipv4_daemon_unavailable(registry, handler, wired_online):
    registry.set_available(False)

    with pytest.raises(UnavailableError) as exc:
        handler.set_ipv4({"method": "dhcp"})
    assert exc.value.error_text == "Connection manager unavailable"


def test_setipv4_daemon_refusal(registry, handler, wired_online):
    registry.fail_mutations = True
    with pytest.raises(UnknownFailure):
        handler.set_ipv4({"method": "dhcp"})


def test_parse_set_ipv4_only_ssid():
    command = parse_set_ipv4({"ssid": "HomeNet"})
    assert command.ssid == "HomeNet"
    assert command.ipv4.method is None


# === setdns ===

def test_setdns_wired(registry, handler, wired_online):
    handler.set_dns({"dns": ["1.1.1.1", "9.9.9.9"]})

    assert wired_online.nameservers == ["1.1.1.1", "9.9.9.9"]
    assert registry.calls == [("set_nameservers", ("ethernet_0", ["1.1.1.1", "9.9.9.9"]))]


def test_setdns_unknown_ssid(registry, handler, wired_online, wifi_home):
    with pytest.raises(NotFoundError) as exc:
        handler.set_dns({"dns": ["1.1.1.1"], "ssid": "Elsewhere"})

    assert exc.value.error_code == ErrorCode.NOT_FOUND
    assert exc.value.error_text == "No connected network"
    assert registry.calls == []


@pytest.mark.parametrize("params", [
    {},
    {"dns": []},
    {"dns": "8.8.8.8"},
    {"dns": ["8.8.8.8", 4]},
    {"dns": ["8.8.8.8"], "ssid": 5},
])
def test_setdns_invalid_params(registry, handler, wired_online, params):
    with pytest.raises(ValidationError):
        handler.set_dns(params)
    assert registry.calls == []


def test_setdns_daemon_refusal(registry, handler, wired_online):
    registry.fail_mutations = True
    with pytest.raises(UnknownFailure):
        handler.set_dns({"dns": ["8.8.8.8"]})
    assert wired_online.nameservers == ["8.8.8.8"]


def test_resolve_service_prefers_first_wired(registry, handler, wired_online):
    registry.add_service(make_service("ethernet_1", TechnologyType.WIRED))
    assert handler.resolve_service(None) is wired_online


def test_setstate_enables_unpowered_wired(registry, handler):
    registry.add_technology(Technology(TechnologyType.WIRED, powered=False))
    handler.set_state({"wired": "enabled"})
    assert registry.find_technology(TechnologyType.WIRED).powered is True
