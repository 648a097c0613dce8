"""
Query Result Types

Value objects returned by Connection.query() and Connection.try_query().
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pg_ops_exceptions import ErrorKind

Row = Tuple[Optional[str], ...]


@dataclass(frozen=True)
class QueryResult:
    """
    Immutable wrapper around the output of one completed query.

    Values are kept in the server's text representation; ``None`` stands
    for SQL NULL. ``query`` is the caller's query text or template;
    rendered parameter values are not kept.
    """
    columns: Tuple[str, ...] = ()
    rows: Tuple[Row, ...] = ()
    status: str = ""
    affected_rows: Optional[int] = None
    query: str = field(default="", repr=False)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    def first(self) -> Optional[Row]:
        """Return the first row, or None for an empty result."""
        return self.rows[0] if self.rows else None

    def scalar(self) -> Optional[str]:
        """Return the first column of the first row, or None."""
        row = self.first()
        if not row:
            return None
        return row[0]

    def as_dicts(self) -> List[Dict[str, Any]]:
        """Return rows as dictionaries keyed by column name."""
        return [dict(zip(self.columns, row)) for row in self.rows]


@dataclass(frozen=True)
class QueryErrorInfo:
    """
    Tagged description of a failed operation.

    ``code`` and ``message`` are the provider's SQLSTATE and error text
    where the server reported one; ``query`` is the caller's query text
    or template, never the rendered SQL.
    """
    kind: ErrorKind
    message: str
    code: Optional[str] = None
    query: Optional[str] = None


@dataclass(frozen=True)
class QueryOutcome:
    """Either a QueryResult or a QueryErrorInfo, never both."""
    result: Optional[QueryResult] = None
    error: Optional[QueryErrorInfo] = None

    @property
    def ok(self) -> bool:
        return self.error is None
