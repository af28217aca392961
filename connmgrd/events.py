"""
connmgrd Events

Typed property-change events published by a ServiceRegistry.

All registry backends push these through a single event sink; the
Notifier consumes them in one dispatch function. Events carry the
identity of their source (technology type or service identifier) as
plain values so that handling never depends on object identity.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Optional

from .types import TechnologyType


@dataclass(frozen=True)
class Event:
    """Base class for registry events."""
    KIND: ClassVar[str] = "event"


@dataclass(frozen=True)
class TechnologyPropertyChanged(Event):
    """A property of a technology changed (e.g. Powered, Connected)."""
    KIND: ClassVar[str] = "technology_property_changed"

    technology: TechnologyType
    name: str
    value: Any = None


@dataclass(frozen=True)
class ServicePropertyChanged(Event):
    """A property of a single service changed (any key)."""
    KIND: ClassVar[str] = "service_property_changed"

    service_id: str
    technology: TechnologyType
    name: str
    value: Any = None


@dataclass(frozen=True)
class ServicesChanged(Event):
    """
    A service list changed structurally (service added or removed).

    technology is None when the daemon does not say which list changed.
    """
    KIND: ClassVar[str] = "services_changed"

    technology: Optional[TechnologyType] = None
