"""
Provider Error Classification

Maps PostgreSQL SQLSTATE codes to the error taxonomy of this package.
"""

from typing import Dict, Optional, Type

from pg_ops_exceptions import ErrorKind
from .query_result import QueryErrorInfo
from .query_ops_exceptions import (
    QueryError,
    DuplicateEntryError,
    UndefinedTableError,
    DuplicateTableError,
    DuplicateTypeError,
    GenericQueryError
)

CODE_DUPLICATE_ENTRY = "23505"
CODE_UNDEFINED_TABLE = "42P01"
CODE_DUPLICATE_TABLE = "42P07"
CODE_DUPLICATE_TYPE = "42710"

PROVIDER_CODE_TABLE: Dict[str, ErrorKind] = {
    CODE_DUPLICATE_ENTRY: ErrorKind.DUPLICATE_ENTRY,
    CODE_UNDEFINED_TABLE: ErrorKind.UNDEFINED_TABLE,
    CODE_DUPLICATE_TABLE: ErrorKind.DUPLICATE_TABLE,
    CODE_DUPLICATE_TYPE: ErrorKind.DUPLICATE_TYPE,
}

_EXCEPTION_BY_KIND: Dict[ErrorKind, Type[QueryError]] = {
    ErrorKind.DUPLICATE_ENTRY: DuplicateEntryError,
    ErrorKind.UNDEFINED_TABLE: UndefinedTableError,
    ErrorKind.DUPLICATE_TABLE: DuplicateTableError,
    ErrorKind.DUPLICATE_TYPE: DuplicateTypeError,
    ErrorKind.GENERIC_QUERY_ERROR: GenericQueryError,
}


def classify(code: Optional[str], message: str, query: Optional[str] = None) -> QueryErrorInfo:
    """
    Classify a provider error.

    Codes are matched exactly. Unknown or missing codes map to
    GENERIC_QUERY_ERROR with the original code and message preserved.

    Example:
        >>> classify("99999", "oops").kind
        <ErrorKind.GENERIC_QUERY_ERROR: 'generic_query_error'>
    """
    kind = PROVIDER_CODE_TABLE.get(code, ErrorKind.GENERIC_QUERY_ERROR) if code else ErrorKind.GENERIC_QUERY_ERROR
    return QueryErrorInfo(kind=kind, message=message, code=code, query=query)


def error_for(info: QueryErrorInfo) -> QueryError:
    """Build the exception matching a classified query error."""
    exc_class = _EXCEPTION_BY_KIND.get(info.kind, GenericQueryError)
    return exc_class(info.message, code=info.code, query=info.query)
