"""
Query Operations Module

This module provides the query-side building blocks used by connections:
- Result value objects (QueryResult, QueryOutcome, QueryErrorInfo)
- Classification of provider error codes into a typed error taxonomy
- Named-parameter template rendering with SQL literal quoting
"""

from .query_result import QueryResult, QueryErrorInfo, QueryOutcome
from .error_classifier import classify, error_for, PROVIDER_CODE_TABLE
from .query_template import QueryTemplate, TemplateRenderer, sql_literal
from .query_ops_exceptions import (
    QueryError,
    DuplicateEntryError,
    UndefinedTableError,
    DuplicateTableError,
    DuplicateTypeError,
    GenericQueryError,
    QueryTemplateError
)

__all__ = [
    'QueryResult',
    'QueryErrorInfo',
    'QueryOutcome',
    'classify',
    'error_for',
    'PROVIDER_CODE_TABLE',
    'QueryTemplate',
    'TemplateRenderer',
    'sql_literal',
    'QueryError',
    'DuplicateEntryError',
    'UndefinedTableError',
    'DuplicateTableError',
    'DuplicateTypeError',
    'GenericQueryError',
    'QueryTemplateError'
]
