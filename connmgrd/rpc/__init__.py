"""
connmgrd RPC Module

Provides the IPC interface for connctl and other local clients via Unix
domain sockets.

Protocol: newline-delimited JSON-RPC over Unix socket, with subscriptions.
"""

from .server import (
    RPCServer,
    RPCClient,
    RPCError,
    RPCErrorCode,
)

__all__ = [
    'RPCServer',
    'RPCClient',
    'RPCError',
    'RPCErrorCode',
]
