"""
connmgrd Status Aggregator

Builds the composite status documents served by ``getstatus`` and pushed
to subscribers.

Documents are rebuilt from the registry on every call and never mutated
afterwards. For a fixed registry state the rendering is identical.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..registry.base import Service, ServiceRegistry
from ..types import ServiceState, TechnologyType
from .mapper import ConnectStatus, TechnologyStatus, connect_status, map_service


# Network type is not reported by the daemon
DEFAULT_NETWORK_TYPE = "umts"

# The daemon only exposes internet contexts for cellular services
CELLULAR_PROVIDED_SERVICES = ("internet",)


def _flag(enabled: bool) -> str:
    return "enabled" if enabled else "disabled"


def select_representative(services: Sequence[Service]) -> Optional[Service]:
    """
    Pick the service that represents a technology class.

    The first service that is connected or connecting wins; otherwise the
    first service in any non-idle state.

    Args:
        services: Services of one technology class, in daemon order

    Returns:
        Representative service, or None
    """
    for service in services:
        if service.state.is_connecting:
            return service

    for service in services:
        if service.state is not ServiceState.IDLE:
            return service

    return None


@dataclass
class StatusDocument:
    """General connectivity status (wired, wifi, cellular)."""
    internet_available: bool
    offline_mode: bool
    wired: TechnologyStatus = field(default_factory=TechnologyStatus)
    wifi: TechnologyStatus = field(default_factory=TechnologyStatus)
    cellular: TechnologyStatus = field(default_factory=TechnologyStatus)

    def to_dict(self) -> dict:
        return {
            "isInternetConnectionAvailable": self.internet_available,
            "offlineMode": _flag(self.offline_mode),
            "wired": self.wired.to_dict(),
            "wifi": self.wifi.to_dict(),
            "cellular": self.cellular.to_dict(),
        }


@dataclass
class CellularServiceStatus:
    """Connect status of one cellular service."""
    connect_status: ConnectStatus
    services: Tuple[str, ...] = CELLULAR_PROVIDED_SERVICES

    def to_dict(self) -> dict:
        return {
            "connectstatus": self.connect_status.value,
            "service": list(self.services),
        }


@dataclass
class WanStatusDocument:
    """Cellular (WAN) connectivity status."""
    powered: bool
    attached: bool
    data_usable: bool
    network_type: str = DEFAULT_NETWORK_TYPE
    connected_services: List[CellularServiceStatus] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "state": _flag(self.powered),
            "networkstatus": "attached" if self.attached else "notattached",
            "dataaccess": "usable" if self.data_usable else "unusable",
            "networktype": self.network_type,
            "connectedservices": [s.to_dict() for s in self.connected_services],
        }


class Aggregator:
    """
    Turns a registry snapshot into status documents.

    Usage:
        aggregator = Aggregator(registry)
        payload = aggregator.status().to_dict()
        wan_payload = aggregator.wan_status().to_dict()
    """

    def __init__(self, registry: ServiceRegistry):
        """
        Initialize aggregator.

        Args:
            registry: Registry to read services and flags from
        """
        self._registry = registry

    def representative(self, technology: TechnologyType) -> Optional[Service]:
        """Get the representative service of a technology class."""
        return select_representative(self._registry.get_services(technology))

    def technology_status(self, technology: TechnologyType) -> TechnologyStatus:
        """Map the representative service of a technology class."""
        return map_service(self.representative(technology), self._registry)

    def status(self) -> StatusDocument:
        """Build the general status document."""
        return StatusDocument(
            internet_available=self._registry.is_online(),
            offline_mode=self._registry.offline_mode,
            wired=self.technology_status(TechnologyType.WIRED),
            wifi=self.technology_status(TechnologyType.WIFI),
            cellular=self.technology_status(TechnologyType.CELLULAR),
        )

    def wan_status(self) -> WanStatusDocument:
        """Build the WAN status document from all cellular services."""
        technology = self._registry.find_technology(TechnologyType.CELLULAR)
        services = self._registry.get_services(TechnologyType.CELLULAR)

        return WanStatusDocument(
            powered=technology is not None and technology.powered,
            attached=len(services) > 0,
            data_usable=any(s.state is ServiceState.ONLINE for s in services),
            connected_services=[
                CellularServiceStatus(connect_status(s.state)) for s in services
            ],
        )
