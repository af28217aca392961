"""
connmgrd Command Handler

Validates and applies the mutation commands (setipv4, setdns, setstate).

Every command runs: parse -> validate -> resolve target -> idempotency
check -> apply. Nothing is applied unless the whole request validates,
and success is reported only after the registry call itself succeeds.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import (
    BadRequestError,
    NotFoundError,
    UnavailableError,
    UnknownFailure,
    ValidationError,
)
from .registry.base import IPv4Config, RegistryError, Service, ServiceRegistry
from .types import TechnologyType


logger = logging.getLogger("connmgrd.commands")

# Fields recognised by setipv4
IPV4_FIELDS = ("method", "address", "netmask", "gateway", "ssid")

# setstate values
STATE_VALUES = {"enabled": True, "disabled": False}

# Pending registry change: (log description, mutator, mutator args)
Change = Tuple[str, Callable[..., bool], tuple]


@dataclass
class SetIPv4Command:
    ipv4: IPv4Config
    ssid: Optional[str] = None


@dataclass
class SetDnsCommand:
    nameservers: List[str]
    ssid: Optional[str] = None


@dataclass
class SetStateCommand:
    wifi: Optional[bool] = None
    wired: Optional[bool] = None
    offline: Optional[bool] = None


# === Parsing ===

def _require_object(params: Any) -> Dict[str, Any]:
    if not isinstance(params, dict):
        raise BadRequestError()
    return params


def _optional_string(params: Dict[str, Any], key: str) -> Optional[str]:
    value = params.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError()
    return value


def _optional_state(params: Dict[str, Any], key: str) -> Optional[bool]:
    if key not in params:
        return None
    value = params[key]
    if not isinstance(value, str) or value not in STATE_VALUES:
        raise ValidationError()
    return STATE_VALUES[value]


def parse_set_ipv4(params: Any) -> SetIPv4Command:
    """
    Parse a setipv4 request.

    Raises:
        BadRequestError: If params is not an object
        ValidationError: If no recognised field is present or a field is
            not a string
    """
    params = _require_object(params)
    if all(params.get(key) is None for key in IPV4_FIELDS):
        raise ValidationError()

    return SetIPv4Command(
        ipv4=IPv4Config(
            method=_optional_string(params, "method"),
            address=_optional_string(params, "address"),
            netmask=_optional_string(params, "netmask"),
            gateway=_optional_string(params, "gateway"),
        ),
        ssid=_optional_string(params, "ssid"),
    )


def parse_set_dns(params: Any) -> SetDnsCommand:
    """
    Parse a setdns request.

    Raises:
        BadRequestError: If params is not an object
        ValidationError: If dns is missing, empty, or not a list of strings
    """
    params = _require_object(params)
    dns = params.get("dns")
    if not isinstance(dns, list) or not dns:
        raise ValidationError()
    if not all(isinstance(server, str) and server for server in dns):
        raise ValidationError()

    return SetDnsCommand(
        nameservers=list(dns),
        ssid=_optional_string(params, "ssid"),
    )


def parse_set_state(params: Any) -> SetStateCommand:
    """
    Parse a setstate request.

    Raises:
        BadRequestError: If params is not an object
        ValidationError: If no key is present or any value is not
            "enabled"/"disabled"
    """
    params = _require_object(params)
    command = SetStateCommand(
        wifi=_optional_state(params, "wifi"),
        wired=_optional_state(params, "wired"),
        offline=_optional_state(params, "offlineMode"),
    )
    if command.wifi is None and command.wired is None and command.offline is None:
        raise ValidationError()
    return command


# === Handler ===

class CommandHandler:
    """
    Applies validated commands to the registry.

    Usage:
        handler = CommandHandler(registry)
        try:
            handler.set_state({"wifi": "enabled"})
        except ServiceError as e:
            reply = e.to_reply()
    """

    def __init__(self, registry: ServiceRegistry):
        """
        Initialize command handler.

        Args:
            registry: Registry to resolve targets in and mutate
        """
        self._registry = registry

    def resolve_service(self, ssid: Optional[str]) -> Optional[Service]:
        """
        Resolve a command target.

        Args:
            ssid: WiFi network name, or None for the wired service

        Returns:
            The named WiFi service, the first wired service, or None
        """
        if ssid is not None:
            return self._registry.find_service_by_name(TechnologyType.WIFI, ssid)

        services = self._registry.get_services(TechnologyType.WIRED)
        return services[0] if services else None

    def _require_daemon(self) -> None:
        if not self._registry.is_available():
            raise UnavailableError("Connection manager unavailable")

    def _apply(self, description: str, mutator, *args: Any) -> None:
        """Run a registry mutator, raising UnknownFailure if it fails."""
        try:
            ok = mutator(*args)
        except RegistryError as e:
            logger.warning(f"{description} failed: {e}")
            raise UnknownFailure() from e

        if not ok:
            logger.warning(f"{description} rejected by the daemon")
            raise UnknownFailure()

    def set_ipv4(self, params: Any) -> None:
        """
        Handle setipv4.

        Raises:
            ServiceError: On any failure (see parse_set_ipv4)
            NotFoundError: If no service matches the selector
            UnknownFailure: If the daemon rejected the change
        """
        self._require_daemon()
        command = parse_set_ipv4(params)

        service = self.resolve_service(command.ssid)
        if service is None:
            raise NotFoundError("Network not found")

        self._apply(
            f"Setting IPv4 on {service.identifier}",
            self._registry.set_ipv4, service, command.ipv4,
        )
        logger.info(f"IPv4 configuration updated on {service.identifier}")

    def set_dns(self, params: Any) -> None:
        """
        Handle setdns.

        Raises:
            ServiceError: On any failure (see parse_set_dns)
            NotFoundError: If the target cannot be resolved
            UnknownFailure: If the daemon rejected the change
        """
        self._require_daemon()
        command = parse_set_dns(params)

        service = self.resolve_service(command.ssid)
        if service is None:
            raise NotFoundError("No connected network")

        self._apply(
            f"Setting nameservers on {service.identifier}",
            self._registry.set_nameservers, service, command.nameservers,
        )
        logger.info(f"Nameservers updated on {service.identifier}")

    def set_state(self, params: Any) -> None:
        """
        Handle setstate.

        Every requested technology is resolved and compared against the
        observed state before anything is applied; only differing states
        are changed.

        Raises:
            ServiceError: On any failure (see parse_set_state)
            UnavailableError: If a technology to power on does not exist
            UnknownFailure: If the daemon rejected a change
        """
        command = parse_set_state(params)

        changes: List[Change] = []
        if command.wifi is not None:
            changes.extend(self._plan_powered(TechnologyType.WIFI, command.wifi))
        if command.wired is not None:
            changes.extend(self._plan_powered(TechnologyType.WIRED, command.wired))
        if command.offline is not None:
            changes.extend(self._plan_offline(command.offline))

        for description, mutator, args in changes:
            self._apply(description, mutator, *args)

    def _plan_powered(self, technology: TechnologyType, powered: bool) -> List[Change]:
        tech = self._registry.find_technology(technology)
        current = tech is not None and tech.powered
        name = technology.label.capitalize()

        if current == powered:
            logger.debug(f"{name} technology already {'enabled' if powered else 'disabled'}")
            return []

        if tech is None:
            raise UnavailableError(f"{name} technology unavailable")

        return [(
            f"{'Enabling' if powered else 'Disabling'} {technology.label}",
            self._registry.set_powered, (tech, powered),
        )]

    def _plan_offline(self, enabled: bool) -> List[Change]:
        if self._registry.offline_mode == enabled:
            logger.debug(f"Offline mode is already {'enabled' if enabled else 'disabled'}")
            return []

        return [(
            f"{'Enabling' if enabled else 'Disabling'} offline mode",
            self._registry.set_offline, (enabled,),
        )]
