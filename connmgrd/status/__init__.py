"""
connmgrd Status Module

Maps daemon service state to the external status schema and aggregates
it into the documents served to RPC clients.
"""

from .mapper import (
    ConnectionState,
    ConnectStatus,
    TechnologyStatus,
    map_service,
    connection_state,
    connect_status,
)

from .aggregator import (
    Aggregator,
    StatusDocument,
    WanStatusDocument,
    CellularServiceStatus,
    select_representative,
)

__all__ = [
    # Mapper
    'ConnectionState',
    'ConnectStatus',
    'TechnologyStatus',
    'map_service',
    'connection_state',
    'connect_status',
    # Aggregator
    'Aggregator',
    'StatusDocument',
    'WanStatusDocument',
    'CellularServiceStatus',
    'select_representative',
]
