"""
connmgrd Core Types

Closed enumerations shared by the registry, the status mapper and the
event channel. Every daemon-reported state has exactly one member here;
the mapper renders members to external strings through exhaustive
lookup tables.
"""

from enum import Enum


class TechnologyType(Enum):
    """Technology class, valued by the daemon's technology type name."""
    WIRED = "ethernet"
    WIFI = "wifi"
    CELLULAR = "cellular"

    @property
    def label(self) -> str:
        """Key used for this technology in status documents."""
        return _LABELS[self]

    @classmethod
    def parse(cls, value: str) -> 'TechnologyType':
        """
        Parse a technology name.

        Accepts both the daemon name ("ethernet") and the status label
        ("wired").

        Raises:
            ValueError: If the name is not a known technology
        """
        name = str(value).lower()
        for member in cls:
            if name in (member.value, member.label):
                return member
        raise ValueError(f"Unknown technology: {value}")


_LABELS = {
    TechnologyType.WIRED: "wired",
    TechnologyType.WIFI: "wifi",
    TechnologyType.CELLULAR: "cellular",
}


class ServiceState(Enum):
    """Service connection state as reported by the daemon."""
    IDLE = "idle"
    ASSOCIATION = "association"
    CONFIGURATION = "configuration"
    READY = "ready"
    ONLINE = "online"
    DISCONNECT = "disconnect"
    FAILURE = "failure"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> 'ServiceState':
        """Parse a daemon state string; unrecognised values map to UNKNOWN."""
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_connecting(self) -> bool:
        """Service is connected or on its way there."""
        return self in (
            ServiceState.ASSOCIATION,
            ServiceState.CONFIGURATION,
            ServiceState.READY,
            ServiceState.ONLINE,
        )
