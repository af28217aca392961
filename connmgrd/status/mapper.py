"""
connmgrd Status Mapper

Projects one service's daemon state and IP information onto the
externally visible per-technology status object.

The projection is a pure read: the only call it makes into the registry
is an IP-info refresh before IP fields are read.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from ..registry.base import Service, ServiceRegistry
from ..types import ServiceState, TechnologyType


class ConnectionState(Enum):
    """Externally visible per-technology connection state."""
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class ConnectStatus(Enum):
    """Externally visible state of one cellular service."""
    CONNECTING = "connecting"
    ACTIVE = "active"
    DISCONNECTED = "disconnected"


# One rendering per daemon state. Both tables must cover every ServiceState.
CONNECTION_STATES: Dict[ServiceState, ConnectionState] = {
    ServiceState.IDLE: ConnectionState.DISCONNECTED,
    ServiceState.ASSOCIATION: ConnectionState.DISCONNECTED,
    ServiceState.CONFIGURATION: ConnectionState.DISCONNECTED,
    ServiceState.READY: ConnectionState.CONNECTED,
    ServiceState.ONLINE: ConnectionState.CONNECTED,
    ServiceState.DISCONNECT: ConnectionState.DISCONNECTED,
    ServiceState.FAILURE: ConnectionState.DISCONNECTED,
    ServiceState.UNKNOWN: ConnectionState.DISCONNECTED,
}

CONNECT_STATUSES: Dict[ServiceState, ConnectStatus] = {
    ServiceState.IDLE: ConnectStatus.DISCONNECTED,
    ServiceState.ASSOCIATION: ConnectStatus.CONNECTING,
    ServiceState.CONFIGURATION: ConnectStatus.CONNECTING,
    ServiceState.READY: ConnectStatus.CONNECTING,
    ServiceState.ONLINE: ConnectStatus.ACTIVE,
    ServiceState.DISCONNECT: ConnectStatus.DISCONNECTED,
    ServiceState.FAILURE: ConnectStatus.DISCONNECTED,
    ServiceState.UNKNOWN: ConnectStatus.DISCONNECTED,
}

# Wake-on-WiFi capability is not queried
WAKE_ON_WIFI_ENABLED = False

# No signal-quality heuristic exists; always reported as this level
NETWORK_CONFIDENCE_LEVEL = "excellent"


def connection_state(state: ServiceState) -> ConnectionState:
    """Render a daemon state as a per-technology connection state."""
    return CONNECTION_STATES[state]


def connect_status(state: ServiceState) -> ConnectStatus:
    """Render a daemon state as a cellular service connect status."""
    return CONNECT_STATUSES[state]


@dataclass
class TechnologyStatus:
    """
    Status of one technology class.

    Only ``state`` is meaningful when disconnected; all other fields are
    omitted from the rendering in that case.
    """
    state: ConnectionState = ConnectionState.DISCONNECTED

    interface_name: Optional[str] = None
    ip_address: Optional[str] = None
    netmask: Optional[str] = None
    gateway: Optional[str] = None
    dns: List[str] = field(default_factory=list)
    method: Optional[str] = None
    on_internet: bool = False

    # WiFi only
    ssid: Optional[str] = None
    wake_on_wifi: Optional[bool] = None
    signal_level: Optional[int] = None
    confidence_level: Optional[str] = None

    @property
    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def to_dict(self) -> dict:
        """Render to the external encoding."""
        result = {"state": self.state.value}
        if not self.is_connected:
            return result

        if self.interface_name:
            result["interfaceName"] = self.interface_name
        if self.ip_address:
            result["ipAddress"] = self.ip_address
        if self.netmask:
            result["netmask"] = self.netmask
        if self.gateway:
            result["gateway"] = self.gateway

        # dns1..dnsN, daemon order
        for index, server in enumerate(self.dns, 1):
            result[f"dns{index}"] = server

        if self.method:
            result["method"] = self.method
        if self.ssid:
            result["ssid"] = self.ssid
        if self.wake_on_wifi is not None:
            result["isWakeOnWifiEnabled"] = self.wake_on_wifi
        if self.signal_level is not None:
            result["signalLevel"] = self.signal_level

        result["onInternet"] = "yes" if self.on_internet else "no"

        if self.confidence_level:
            result["networkConfidenceLevel"] = self.confidence_level
        return result


def map_service(
    service: Optional[Service],
    registry: Optional[ServiceRegistry] = None,
) -> TechnologyStatus:
    """
    Map a representative service to its technology status.

    Args:
        service: Representative service, or None if the technology has none
        registry: Registry to refresh IP info from before reading it

    Returns:
        TechnologyStatus (disconnected unless the service is ready/online)
    """
    if service is None or connection_state(service.state) is ConnectionState.DISCONNECTED:
        return TechnologyStatus()

    if registry is not None:
        registry.refresh_ipinfo(service)

    status = TechnologyStatus(
        state=ConnectionState.CONNECTED,
        interface_name=service.interface or None,
        ip_address=service.ipv4.address or None,
        netmask=service.ipv4.netmask or None,
        gateway=service.ipv4.gateway or None,
        dns=[server for server in service.nameservers if server],
        method=service.ipv4.method or None,
        on_internet=service.state is ServiceState.ONLINE,
    )

    if service.technology is TechnologyType.WIFI:
        status.ssid = service.name or None
        status.wake_on_wifi = WAKE_ON_WIFI_ENABLED
        status.signal_level = int(service.strength)
        status.confidence_level = NETWORK_CONFIDENCE_LEVEL

    return status
