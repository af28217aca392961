"""Shared fixtures for connmgrd tests."""

from typing import List, Tuple

import pytest

from connmgrd.mainloop import MainLoop
from connmgrd.registry import IPv4Config, MemoryRegistry, Service, Technology
from connmgrd.status import Aggregator
from connmgrd.types import ServiceState, TechnologyType


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingPublisher:
    """Publisher that records every post."""

    def __init__(self, subscribers: int = 1):
        self.posts: List[Tuple[str, dict]] = []
        self.subscribers = subscribers

    def __call__(self, method: str, payload: dict) -> int:
        self.posts.append((method, payload))
        return self.subscribers

    @property
    def payloads(self) -> List[dict]:
        return [payload for _, payload in self.posts]


def make_service(identifier, technology, state=ServiceState.ONLINE, **kwargs) -> Service:
    return Service(identifier=identifier, technology=technology, state=state, **kwargs)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def loop(clock):
    return MainLoop(clock=clock)


@pytest.fixture
def registry():
    """Registry with wired and wifi technologies powered, no services."""
    reg = MemoryRegistry()
    reg.add_technology(Technology(TechnologyType.WIRED, name="Wired", powered=True))
    reg.add_technology(Technology(TechnologyType.WIFI, name="WiFi", powered=True))
    return reg


@pytest.fixture
def wired_online(registry):
    """The wired service of the end-to-end scenario."""
    service = make_service(
        "ethernet_0",
        TechnologyType.WIRED,
        interface="eth0",
        ipv4=IPv4Config(
            method="dhcp",
            address="192.168.1.5",
            netmask="255.255.255.0",
            gateway="192.168.1.1",
        ),
        nameservers=["8.8.8.8"],
        mac_address="b8:27:eb:00:00:01",
    )
    registry.add_service(service)
    return service


@pytest.fixture
def aggregator(registry):
    return Aggregator(registry)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def wan_publisher():
    return RecordingPublisher()
