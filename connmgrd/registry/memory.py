"""
connmgrd Memory Registry

An in-process service registry that behaves like the network-management
daemon without talking to one.

Useful for:
- Unit testing
- Integration testing
- Development without a running daemon
- Replaying a device's network state from a snapshot file

Mutators update the in-memory state and publish the same events the
daemon would, so the notification loop can be exercised end to end.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import toml

from ..events import ServicePropertyChanged, ServicesChanged, TechnologyPropertyChanged
from ..types import ServiceState, TechnologyType
from .base import IPv4Config, RegistryError, Service, ServiceRegistry, Technology


logger = logging.getLogger("connmgrd.registry")

# Daemon property names for Service attributes
SERVICE_PROPERTIES = {
    "name": "Name",
    "state": "State",
    "interface": "Ethernet",
    "ipv4": "IPv4",
    "nameservers": "Nameservers",
    "strength": "Strength",
    "mac_address": "Ethernet",
}

# Daemon property names for Technology attributes
TECHNOLOGY_PROPERTIES = {
    "name": "Name",
    "powered": "Powered",
    "connected": "Connected",
}


class MemoryRegistry(ServiceRegistry):
    """
    In-memory service registry.

    Usage:
        registry = MemoryRegistry()
        registry.add_technology(Technology(TechnologyType.WIRED, powered=True))
        registry.add_service(Service(
            identifier="ethernet_0",
            technology=TechnologyType.WIRED,
            state=ServiceState.ONLINE,
            interface="eth0",
        ))

        # Simulate the daemon reporting a change
        registry.update_service("ethernet_0", state=ServiceState.READY)

    Every mutator call is recorded in ``calls`` as (method, args) so
    callers can verify which daemon calls were made.
    """

    def __init__(self, name: str = "memory", available: bool = True):
        """
        Initialize memory registry.

        Args:
            name: Registry instance name
            available: Whether the simulated daemon is reachable
        """
        super().__init__(name)

        self._technologies: Dict[TechnologyType, Technology] = {}
        self._services: Dict[TechnologyType, List[Service]] = {
            tech: [] for tech in TechnologyType
        }
        self._offline = False
        self._available = available
        self._lock = threading.RLock()

        # Simulated daemon refusing configuration calls
        self.fail_mutations = False

        # Mutator call log
        self.calls: List[Tuple[str, tuple]] = []

    # === Read side ===

    def is_available(self) -> bool:
        return self._available

    def is_online(self) -> bool:
        with self._lock:
            return any(
                service.state is ServiceState.ONLINE
                for services in self._services.values()
                for service in services
            )

    @property
    def offline_mode(self) -> bool:
        return self._offline

    def get_services(self, technology: TechnologyType) -> List[Service]:
        with self._lock:
            return list(self._services[technology])

    def find_technology(self, technology: TechnologyType) -> Optional[Technology]:
        with self._lock:
            return self._technologies.get(technology)

    def get_service(self, identifier: str) -> Optional[Service]:
        """Look up a service by identifier."""
        with self._lock:
            for services in self._services.values():
                for service in services:
                    if service.identifier == identifier:
                        return service
        return None

    # === Mutators ===

    def set_ipv4(self, service: Service, ipv4: IPv4Config) -> bool:
        self.calls.append(("set_ipv4", (service.identifier, ipv4)))
        if not self._accepts(service):
            return False

        # Fields not given keep their current value
        current = service.ipv4
        service.ipv4 = IPv4Config(
            method=ipv4.method if ipv4.method is not None else current.method,
            address=ipv4.address if ipv4.address is not None else current.address,
            netmask=ipv4.netmask if ipv4.netmask is not None else current.netmask,
            gateway=ipv4.gateway if ipv4.gateway is not None else current.gateway,
        )
        self._emit(ServicePropertyChanged(
            service.identifier, service.technology, "IPv4", service.ipv4.to_dict(),
        ))
        return True

    def set_nameservers(self, service: Service, nameservers: List[str]) -> bool:
        self.calls.append(("set_nameservers", (service.identifier, list(nameservers))))
        if not self._accepts(service):
            return False

        service.nameservers = list(nameservers)
        self._emit(ServicePropertyChanged(
            service.identifier, service.technology, "Nameservers", list(nameservers),
        ))
        return True

    def set_powered(self, technology: Technology, powered: bool) -> bool:
        self.calls.append(("set_powered", (technology.type, powered)))
        if self.fail_mutations or not self._available:
            return False
        if self._technologies.get(technology.type) is not technology:
            return False

        technology.powered = powered
        self._emit(TechnologyPropertyChanged(technology.type, "Powered", powered))
        return True

    def set_offline(self, enabled: bool) -> bool:
        self.calls.append(("set_offline", (enabled,)))
        if self.fail_mutations or not self._available:
            return False

        self._offline = enabled
        return True

    def _accepts(self, service: Service) -> bool:
        """Whether a service mutation would be accepted by the daemon."""
        if self.fail_mutations or not self._available:
            return False
        return self.get_service(service.identifier) is service

    # === Simulation ===

    def set_available(self, available: bool) -> None:
        """Simulate the daemon appearing or disappearing."""
        self._available = available

    def add_technology(self, technology: Technology) -> None:
        """Add (or replace) a technology."""
        with self._lock:
            self._technologies[technology.type] = technology

    def remove_technology(self, technology: TechnologyType) -> None:
        """Remove a technology."""
        with self._lock:
            self._technologies.pop(technology, None)

    def update_technology(self, technology: TechnologyType, **changes: Any) -> None:
        """
        Change technology properties, publishing one event per change.

        Raises:
            RegistryError: If the technology does not exist
        """
        tech = self.find_technology(technology)
        if tech is None:
            raise RegistryError(f"No such technology: {technology.label}")

        for attr, value in changes.items():
            if attr not in TECHNOLOGY_PROPERTIES:
                raise RegistryError(f"Unknown technology property: {attr}")
            setattr(tech, attr, value)
            self._emit(TechnologyPropertyChanged(
                technology, TECHNOLOGY_PROPERTIES[attr], value,
            ))

    def add_service(self, service: Service) -> None:
        """Add a service and publish a services-changed event."""
        with self._lock:
            self._services[service.technology].append(service)
        self._emit(ServicesChanged(service.technology))

    def remove_service(self, identifier: str) -> None:
        """
        Remove a service and publish a services-changed event.

        Raises:
            RegistryError: If the service does not exist
        """
        service = self.get_service(identifier)
        if service is None:
            raise RegistryError(f"No such service: {identifier}")

        with self._lock:
            self._services[service.technology].remove(service)
        self._emit(ServicesChanged(service.technology))

    def update_service(self, identifier: str, **changes: Any) -> None:
        """
        Change service properties, publishing one event per change.

        Raises:
            RegistryError: If the service or property does not exist
        """
        service = self.get_service(identifier)
        if service is None:
            raise RegistryError(f"No such service: {identifier}")

        for attr, value in changes.items():
            if attr not in SERVICE_PROPERTIES:
                raise RegistryError(f"Unknown service property: {attr}")
            setattr(service, attr, value)
            self._emit(ServicePropertyChanged(
                identifier, service.technology, SERVICE_PROPERTIES[attr], value,
            ))

    # === Snapshots ===

    @classmethod
    def load(cls, path: Path) -> 'MemoryRegistry':
        """
        Create a registry from a TOML snapshot file.

        Args:
            path: Snapshot file path

        Returns:
            Populated registry

        Raises:
            RegistryError: If the file cannot be read or is invalid
        """
        try:
            data = toml.load(path)
        except (OSError, toml.TomlDecodeError) as e:
            raise RegistryError(f"Failed to load snapshot {path}: {e}") from e

        registry = cls.from_dict(data)
        logger.info(f"Loaded registry snapshot from {path}")
        return registry

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MemoryRegistry':
        """
        Create a registry from snapshot data.

        Format:
            offline_mode = false

            [[technologies]]
            type = "wifi"
            powered = true

            [[services]]
            id = "wifi_home"
            technology = "wifi"
            name = "HomeNet"
            state = "online"
            nameservers = ["8.8.8.8"]
            [services.ipv4]
            method = "dhcp"

        Raises:
            RegistryError: If the data is invalid
        """
        registry = cls()
        registry._offline = bool(data.get("offline_mode", False))

        try:
            for entry in data.get("technologies", []):
                tech_type = TechnologyType.parse(entry["type"])
                registry._technologies[tech_type] = Technology(
                    type=tech_type,
                    name=entry.get("name"),
                    powered=bool(entry.get("powered", False)),
                    connected=bool(entry.get("connected", False)),
                )

            for entry in data.get("services", []):
                tech_type = TechnologyType.parse(entry["technology"])
                ipv4 = entry.get("ipv4", {})
                registry._services[tech_type].append(Service(
                    identifier=str(entry["id"]),
                    technology=tech_type,
                    name=entry.get("name"),
                    state=ServiceState.parse(entry.get("state", "idle")),
                    interface=entry.get("interface"),
                    ipv4=IPv4Config(
                        method=ipv4.get("method"),
                        address=ipv4.get("address"),
                        netmask=ipv4.get("netmask"),
                        gateway=ipv4.get("gateway"),
                    ),
                    nameservers=[str(ns) for ns in entry.get("nameservers", [])],
                    strength=int(entry.get("strength", 0)),
                    mac_address=entry.get("mac_address"),
                ))
        except (KeyError, TypeError, ValueError) as e:
            raise RegistryError(f"Invalid snapshot: {e}") from e

        return registry
