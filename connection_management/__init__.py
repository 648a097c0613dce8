"""
Connection Management Module

This module provides resilient connection management for PostgreSQL:

Key capabilities:
- Bounded connect retry with immediate re-attempts
- Lazy connection on first query
- Busy-handle detection that fails fast instead of sharing a handle
- Transaction control (BEGIN / COMMIT / ROLLBACK)
- Classification of server errors into specific exception types
- A thread-safe registry holding one connection per host:port endpoint
- A narrow transport interface with a libpq implementation
"""

from .pg_connection import (
    PgConnection,
    ConnectionState,
    build_connection_descriptor,
    SQL_QUERY_BEGIN,
    SQL_QUERY_COMMIT,
    SQL_QUERY_ROLLBACK
)
from .connection_registry import ConnectionRegistry
from .transport import (
    Transport,
    TransportHandle,
    TransportResult,
    LibpqTransport,
    LibpqHandle
)
from .connection_exceptions import (
    ConnectionError,
    TransportError,
    TransportConnectError,
    TriesExceededError,
    ConnectionBusyError
)

__all__ = [
    'PgConnection',
    'ConnectionState',
    'build_connection_descriptor',
    'SQL_QUERY_BEGIN',
    'SQL_QUERY_COMMIT',
    'SQL_QUERY_ROLLBACK',
    'ConnectionRegistry',
    'Transport',
    'TransportHandle',
    'TransportResult',
    'LibpqTransport',
    'LibpqHandle',
    'ConnectionError',
    'TransportError',
    'TransportConnectError',
    'TriesExceededError',
    'ConnectionBusyError'
]
