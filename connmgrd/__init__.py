"""
connmgrd - Connection Manager Status Daemon

Aggregates connectivity state from the network daemon's service registry
into status documents, pushes them to subscribed clients, and applies
IPv4, DNS and power/offline commands.

This package contains:
- registry/  : Service registry abstraction and in-memory backend
- status/    : Status mapper and aggregator
- rpc/       : IPC interface for connctl and other clients
"""

__version__ = "0.1.0"
__author__ = "connmgr Project"

# Service names
CONNECTION_MANAGER_SERVICE = "connectionmanager"
WAN_SERVICE = "wan"
