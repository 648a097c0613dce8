"""
Connection Management Exceptions

This module defines specialized exceptions for PostgreSQL connection management,
providing detailed error reporting and handling for connection-related issues.

These exceptions contribute to system robustness by:
- Enabling precise error handling and recovery strategies
- Providing clear diagnostic information for debugging
- Allowing applications to distinguish an unreachable server from a busy handle
"""

from typing import Optional

from pg_ops_exceptions import ErrorKind, ConnectionError as BaseConnectionError


class ConnectionError(BaseConnectionError):
    """
    Base exception for all connection-related errors.

    This base class ensures consistent error handling across the connection
    management system and allows applications to catch all connection errors
    uniformly while still providing access to specific error details.
    """
    pass


class TransportError(ConnectionError):
    """
    Raised when the wire-level transport fails outside of a query result,
    for example when the socket drops while a query is being sent.
    """
    pass


class TransportConnectError(TransportError):
    """
    Raised by a transport when a single attempt to open a connection fails.

    Connections retry on this exception; once every attempt has failed it is
    chained as the cause of TriesExceededError.
    """
    pass


class TriesExceededError(ConnectionError):
    """
    Raised when every configured connect attempt has failed.

    Attributes:
        tries: Number of attempts that were made
        endpoint: host:port the attempts were made against
    """
    kind = ErrorKind.TRIES_EXCEEDED

    def __init__(self, message: str, tries: Optional[int] = None, endpoint: Optional[str] = None):
        super().__init__(message)
        self.tries = tries
        self.endpoint = endpoint


class ConnectionBusyError(ConnectionError):
    """
    Raised when a query is requested while the connection is still
    processing a previous one and the caller asked to fail fast.

    No query has been sent when this is raised.
    """
    kind = ErrorKind.CONNECTION_BUSY
