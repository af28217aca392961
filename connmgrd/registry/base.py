"""
connmgrd Service Registry Base Class

Defines the interface between the status core and the network-management
daemon that owns the real interfaces.

Design Principles:
- Read side is a cheap, in-memory snapshot (no round trips)
- Mutators are fire-and-forget and report only success/failure
- Property changes are published as typed events through one sink
- The core never constructs or destroys services; backends own them
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..events import Event
from ..types import ServiceState, TechnologyType


# Where the kernel exposes interface hardware addresses
SYSFS_NET_PATH = Path("/sys/class/net")

# Event sink type
EventSink = Callable[[Event], None]


class RegistryError(Exception):
    """Exception raised for registry backend errors."""
    pass


@dataclass
class IPv4Config:
    """IPv4 configuration of a service."""
    method: Optional[str] = None
    address: Optional[str] = None
    netmask: Optional[str] = None
    gateway: Optional[str] = None

    def to_dict(self) -> dict:
        """Fields that are set, keyed by daemon property name."""
        result = {}
        if self.method is not None:
            result["Method"] = self.method
        if self.address is not None:
            result["Address"] = self.address
        if self.netmask is not None:
            result["Netmask"] = self.netmask
        if self.gateway is not None:
            result["Gateway"] = self.gateway
        return result


@dataclass
class Service:
    """
    One connection endpoint (a wired link, a WiFi network, a cellular
    context).
    """
    # Daemon object identifier (stable for the lifetime of the object)
    identifier: str

    technology: TechnologyType

    # Display name; the SSID for WiFi services
    name: Optional[str] = None

    state: ServiceState = ServiceState.IDLE

    # Kernel interface name (e.g. "eth0")
    interface: Optional[str] = None

    ipv4: IPv4Config = field(default_factory=IPv4Config)

    # DNS servers, in daemon order
    nameservers: List[str] = field(default_factory=list)

    # Signal strength 0-100 (WiFi/cellular)
    strength: int = 0

    mac_address: Optional[str] = None

    @property
    def is_wifi(self) -> bool:
        return self.technology is TechnologyType.WIFI


@dataclass
class Technology:
    """A radio or interface class with a power state."""
    type: TechnologyType
    name: Optional[str] = None
    powered: bool = False
    connected: bool = False


class ServiceRegistry(ABC):
    """
    Abstract base class for service registry backends.

    A backend mirrors the daemon's services and technologies and forwards
    configuration changes back to it.

    Usage:
        registry = ConcreteRegistry()
        registry.set_event_sink(handle_event)

        wifi = registry.find_technology(TechnologyType.WIFI)
        for service in registry.get_services(TechnologyType.WIFI):
            print(service.name, service.state)
    """

    def __init__(self, name: str = "registry"):
        """
        Initialize registry base class.

        Args:
            name: Human-readable name for this backend
        """
        self.name = name
        self._event_sink: Optional[EventSink] = None

    def set_event_sink(self, sink: Optional[EventSink]) -> None:
        """
        Set the function receiving property-change events.

        Args:
            sink: Function to call with each event, or None to clear
        """
        self._event_sink = sink

    def _emit(self, event: Event) -> None:
        """Publish an event to the sink, if one is set."""
        if self._event_sink is not None:
            self._event_sink(event)

    # === Read side ===

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the daemon is reachable."""
        pass

    @abstractmethod
    def is_online(self) -> bool:
        """Whether the daemon considers the system online."""
        pass

    @property
    @abstractmethod
    def offline_mode(self) -> bool:
        """Daemon global offline (flight mode) flag."""
        pass

    @abstractmethod
    def get_services(self, technology: TechnologyType) -> List[Service]:
        """
        Get all services of a technology class, in daemon order.

        Args:
            technology: Technology class

        Returns:
            List of services (possibly empty)
        """
        pass

    @abstractmethod
    def find_technology(self, technology: TechnologyType) -> Optional[Technology]:
        """
        Look up a technology.

        Returns:
            Technology, or None if the system does not have it
        """
        pass

    def refresh_ipinfo(self, service: Service) -> None:
        """
        Bring a service's IP information up to date.

        Backends that keep IP info current need not override this.
        """
        pass

    def get_mac_address(self, service: Optional[Service]) -> Optional[str]:
        """
        Get the hardware address of a service's interface.

        Falls back to sysfs when the backend does not know the address.

        Returns:
            MAC address string, or None if unavailable
        """
        if service is None:
            return None
        if service.mac_address:
            return service.mac_address
        if not service.interface:
            return None

        path = SYSFS_NET_PATH / service.interface / "address"
        try:
            return path.read_text().strip() or None
        except OSError:
            return None

    def find_service_by_name(
        self,
        technology: TechnologyType,
        name: str,
    ) -> Optional[Service]:
        """Find the first service of a technology with the given name."""
        for service in self.get_services(technology):
            if service.name is not None and service.name == name:
                return service
        return None

    # === Mutators ===

    @abstractmethod
    def set_ipv4(self, service: Service, ipv4: IPv4Config) -> bool:
        """
        Apply a new IPv4 configuration to a service.

        Returns:
            bool: True if the daemon accepted the change
        """
        pass

    @abstractmethod
    def set_nameservers(self, service: Service, nameservers: List[str]) -> bool:
        """
        Replace a service's DNS servers.

        Returns:
            bool: True if the daemon accepted the change
        """
        pass

    @abstractmethod
    def set_powered(self, technology: Technology, powered: bool) -> bool:
        """
        Power a technology on or off.

        Returns:
            bool: True if the daemon accepted the change
        """
        pass

    @abstractmethod
    def set_offline(self, enabled: bool) -> bool:
        """
        Enable or disable global offline mode.

        Returns:
            bool: True if the daemon accepted the change
        """
        pass

    def get_statistics(self) -> Dict[str, object]:
        """
        Get a summary of the registry contents.

        Returns:
            dict: Service counts per technology and global flags
        """
        return {
            "name": self.name,
            "available": self.is_available(),
            "online": self.is_online(),
            "offline_mode": self.offline_mode,
            "services": {
                tech.label: len(self.get_services(tech)) for tech in TechnologyType
            },
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name}>"
