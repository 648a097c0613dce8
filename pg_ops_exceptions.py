"""
PG Operations Exceptions

This module defines the root exceptions for the PG_Ops package
to provide clear error handling and reporting.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """
    Tagged kinds for every failure the connection layer reports.

    Exceptions expose their kind through the ``kind`` attribute so that
    callers can branch on the kind instead of on concrete classes.
    """
    TRIES_EXCEEDED = "tries_exceeded"
    CONNECTION_BUSY = "connection_busy"
    DUPLICATE_ENTRY = "duplicate_entry"
    UNDEFINED_TABLE = "undefined_table"
    DUPLICATE_TABLE = "duplicate_table"
    DUPLICATE_TYPE = "duplicate_type"
    GENERIC_QUERY_ERROR = "generic_query_error"


class PgOpsError(Exception):
    """Base exception for all PG_Ops errors"""
    kind = None


class ConnectionError(PgOpsError):
    """Raised when connection to the PostgreSQL server fails"""
    pass


class ConfigurationError(PgOpsError):
    """Raised when configuration is invalid or missing"""
    pass


class QueryError(PgOpsError):
    """Raised when a query operation fails"""
    pass
