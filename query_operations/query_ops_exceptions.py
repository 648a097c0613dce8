"""
Query Operations Exceptions

This module defines a granular exception hierarchy for query execution.
Each class corresponds to one provider error condition recognized by the
error classifier; anything unrecognized surfaces as GenericQueryError
with the original SQLSTATE, message and query text attached.

Typical usage:
    from query_operations import DuplicateEntryError

    try:
        connection.query("INSERT INTO users (email) VALUES ({{ email }})", {"email": email})
    except DuplicateEntryError:
        # Handle the unique violation specifically
        ...
    except QueryError as e:
        print(f"Query failed with SQLSTATE {e.code}: {e.message}")
"""

from typing import Optional

from pg_ops_exceptions import ErrorKind, QueryError as BaseQueryError
from .query_result import QueryErrorInfo


class QueryError(BaseQueryError):
    """
    Base exception for all server-reported query errors.

    Attributes:
        message: Error text reported by the server
        code: SQLSTATE reported by the server, if any
        query: Query text that was sent
    """
    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        query: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.query = query

    @property
    def info(self) -> QueryErrorInfo:
        """The tagged form of this error."""
        return QueryErrorInfo(
            kind=self.kind,
            message=self.message,
            code=self.code,
            query=self.query
        )


class DuplicateEntryError(QueryError):
    """Raised on a unique constraint violation (SQLSTATE 23505)."""
    kind = ErrorKind.DUPLICATE_ENTRY


class UndefinedTableError(QueryError):
    """Raised when the query references a table that does not exist (42P01)."""
    kind = ErrorKind.UNDEFINED_TABLE


class DuplicateTableError(QueryError):
    """Raised when creating a table that already exists (42P07)."""
    kind = ErrorKind.DUPLICATE_TABLE


class DuplicateTypeError(QueryError):
    """Raised when creating a type or object that already exists (42710)."""
    kind = ErrorKind.DUPLICATE_TYPE


class GenericQueryError(QueryError):
    """
    Raised for any provider error without a dedicated class.

    The string form appends the query text to the server message so the
    failing statement shows up in logs and tracebacks.
    """
    kind = ErrorKind.GENERIC_QUERY_ERROR

    def __str__(self) -> str:
        if self.query:
            return f"{self.message}: {self.query}"
        return self.message


class QueryTemplateError(QueryError):
    """
    Raised when a query template cannot be rendered.

    Nothing has been sent to the server when this is raised.
    """
    pass
