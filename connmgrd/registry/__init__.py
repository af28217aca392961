"""
connmgrd Service Registry

Read-only view of the daemon's services and technologies plus the
mutators used to change them.

Backends:
- memory : in-process registry (testing, development, snapshot replay)
"""

from .base import (
    ServiceRegistry,
    Service,
    Technology,
    IPv4Config,
    RegistryError,
)

from .memory import MemoryRegistry

__all__ = [
    'ServiceRegistry',
    'Service',
    'Technology',
    'IPv4Config',
    'RegistryError',
    'MemoryRegistry',
]
