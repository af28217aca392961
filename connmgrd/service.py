"""
connmgrd Service Surfaces

The two RPC services exposed by the daemon:

- ConnectionManagerService: getstatus (alias getStatus), setipv4, setdns,
  setstate, getinfo
- WanService: getstatus for cellular connectivity

Every handler returns a reply body; failures are reported in the body as
{"returnValue": false, "errorCode", "errorText"} and never raised to the
transport.
"""

import functools
import logging
from typing import Any, Callable, Dict, Optional

from .commands import CommandHandler
from .errors import BadRequestError, ServiceError, UnavailableError, ValidationError
from .registry.base import ServiceRegistry
from .rpc.server import RPCServer
from .status.aggregator import Aggregator
from .types import TechnologyType


logger = logging.getLogger("connmgrd.service")

SUCCESS = {"returnValue": True}


def _check_subscribe(params: Any) -> None:
    """Validate the optional subscribe flag of a status request."""
    if not isinstance(params, dict):
        raise BadRequestError()
    if "subscribe" in params and not isinstance(params["subscribe"], bool):
        raise ValidationError()


def _reply(handler: Callable[[Any], dict]) -> Callable[[Any], dict]:
    """Wrap a handler so ServiceErrors become error replies."""
    @functools.wraps(handler)
    def wrapper(params: Any) -> dict:
        try:
            return handler(params)
        except ServiceError as e:
            logger.debug(f"{handler.__name__} failed: {e.error_text} ({e.error_code})")
            return e.to_reply()
    return wrapper


class ConnectionManagerService:
    """
    The connection manager RPC service.

    Usage:
        service = ConnectionManagerService(registry, aggregator, commands)
        service.register(server)
    """

    def __init__(
        self,
        registry: ServiceRegistry,
        aggregator: Aggregator,
        commands: CommandHandler,
        stats: Optional[Callable[[], Dict[str, Any]]] = None,
    ):
        """
        Initialize service.

        Args:
            registry: Registry for MAC address lookups
            aggregator: Builds status documents
            commands: Applies mutation commands
            stats: Optional provider of daemon statistics for "debug"
        """
        self._registry = registry
        self._aggregator = aggregator
        self._commands = commands
        self._stats = stats

    def register(self, server: RPCServer) -> None:
        """Register all methods on an RPC server."""
        server.register("getstatus", _reply(self.get_status), subscribable=True)
        server.register_alias("getStatus", "getstatus")
        server.register("setipv4", _reply(self.set_ipv4))
        server.register("setdns", _reply(self.set_dns))
        server.register("setstate", _reply(self.set_state))
        server.register("getinfo", _reply(self.get_info))
        if self._stats is not None:
            server.register("debug", _reply(self.debug))

    def get_status(self, params: Any) -> dict:
        _check_subscribe(params)
        reply = dict(SUCCESS)
        reply.update(self._aggregator.status().to_dict())
        return reply

    def set_ipv4(self, params: Any) -> dict:
        self._commands.set_ipv4(params)
        return dict(SUCCESS)

    def set_dns(self, params: Any) -> dict:
        self._commands.set_dns(params)
        return dict(SUCCESS)

    def set_state(self, params: Any) -> dict:
        self._commands.set_state(params)
        return dict(SUCCESS)

    def get_info(self, params: Any) -> dict:
        """
        Report the hardware addresses of the wifi and wired interfaces.

        A section whose address cannot be determined is left out.
        """
        if not isinstance(params, dict):
            raise BadRequestError()

        reply = dict(SUCCESS)
        for technology, key in ((TechnologyType.WIFI, "wifiInfo"), (TechnologyType.WIRED, "wiredInfo")):
            service = self._aggregator.representative(technology)
            mac_address = self._registry.get_mac_address(service)
            if mac_address is None:
                logger.error(f"Error in fetching mac address for {technology.label} interface")
                continue
            reply[key] = {"macAddress": mac_address}
        return reply

    def debug(self, params: Any) -> dict:
        """Report daemon statistics."""
        reply = dict(SUCCESS)
        reply.update(self._stats())
        return reply


class WanService:
    """
    The WAN (cellular) RPC service.

    Usage:
        service = WanService(registry, aggregator)
        service.register(wan_server)
    """

    def __init__(self, registry: ServiceRegistry, aggregator: Aggregator):
        self._registry = registry
        self._aggregator = aggregator

    def register(self, server: RPCServer) -> None:
        """Register all methods on an RPC server."""
        server.register("getstatus", _reply(self.get_status), subscribable=True)

    def get_status(self, params: Any) -> dict:
        _check_subscribe(params)

        if not self._registry.is_available():
            raise UnavailableError("Connection manager unavailable")
        if self._registry.find_technology(TechnologyType.CELLULAR) is None:
            raise UnavailableError("Cellular technology unavailable")

        reply = dict(SUCCESS)
        reply.update(self._aggregator.wan_status().to_dict())
        return reply
