"""
Query Template Rendering

Substitutes named parameters into SQL text using Jinja2. Every
``{{ name }}`` expression is rendered as a quoted SQL literal unless a
filter has already produced SQL (``raw``, ``ident``, ``in_list``,
``like_start``, ``json``).

Example:
    >>> QueryTemplate().render(
    ...     "SELECT * FROM users WHERE email = {{ email }} AND id IN {{ ids }}",
    ...     {"email": "o'neil@example.com", "ids": [1, 2]},
    ... )
    "SELECT * FROM users WHERE email = 'o''neil@example.com' AND id IN (1, 2)"
"""

import hashlib
import json
import math
import threading
from collections import OrderedDict
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, List, Mapping, Protocol, runtime_checkable

from jinja2 import Environment, StrictUndefined, Template, TemplateError, UndefinedError, meta

from .query_ops_exceptions import QueryTemplateError

_SQL_QUOTE_ESCAPE = str.maketrans({"'": "''"})
_EMPTY_IN_LIST = "(SELECT 1 WHERE 1=0)"


@runtime_checkable
class TemplateRenderer(Protocol):
    """Anything that turns a template plus named parameters into SQL text."""

    def render(self, template: str, params: Mapping[str, Any]) -> str:
        ...


class SqlSafe(str):
    """String subclass marking a value as already rendered SQL."""


def _quote(text: str) -> str:
    return "'" + text.translate(_SQL_QUOTE_ESCAPE) + "'"


def sql_literal(value: Any) -> SqlSafe:
    """Render a Python value as an SQL literal."""
    if isinstance(value, SqlSafe):
        return value
    if value is None:
        return SqlSafe("NULL")
    if isinstance(value, bool):
        return SqlSafe("TRUE" if value else "FALSE")
    if isinstance(value, int):
        return SqlSafe(str(value))
    if isinstance(value, float):
        if math.isnan(value):
            return SqlSafe("'NaN'::float8")
        if math.isinf(value):
            return SqlSafe("'Infinity'::float8" if value > 0 else "'-Infinity'::float8")
        return SqlSafe(repr(value))
    if isinstance(value, Decimal):
        if not value.is_finite():
            if value.is_nan():
                return SqlSafe("'NaN'::numeric")
            return SqlSafe("'Infinity'::numeric" if value > 0 else "'-Infinity'::numeric")
        return SqlSafe(str(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SqlSafe("'\\x" + bytes(value).hex() + "'::bytea")
    if isinstance(value, (datetime, date, time)):
        return SqlSafe(_quote(value.isoformat()))
    if isinstance(value, Mapping):
        return sql_json(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return sql_in_list(value)
    return SqlSafe(_quote(str(value)))


def sql_in_list(value: Any) -> SqlSafe:
    """Render an iterable as a parenthesised list for ``IN``."""
    if value is None:
        return SqlSafe(_EMPTY_IN_LIST)
    items = list(value)
    if not items:
        return SqlSafe(_EMPTY_IN_LIST)
    return SqlSafe("(" + ", ".join(sql_literal(item) for item in items) + ")")


def sql_ident(value: Any) -> SqlSafe:
    """Quote a (possibly schema-qualified) identifier."""
    parts = str(value).split(".")
    return SqlSafe(".".join('"' + part.replace('"', '""') + '"' for part in parts))


def sql_like_start(value: Any) -> SqlSafe:
    """Prefix match pattern with LIKE wildcards in the value escaped."""
    if value is None:
        return SqlSafe("NULL")
    escaped = str(value).replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return SqlSafe(_quote(escaped + "%"))


def sql_json(value: Any) -> SqlSafe:
    if value is None:
        return SqlSafe("NULL")
    return SqlSafe(_quote(json.dumps(value, default=str)))


def sql_raw(value: Any) -> SqlSafe:
    """Insert trusted SQL verbatim. Never use on user input."""
    return SqlSafe(str(value))


SQL_FILTERS = {
    "raw": sql_raw,
    "ident": sql_ident,
    "in_list": sql_in_list,
    "like_start": sql_like_start,
    "json": sql_json,
}


class QueryTemplate:
    """
    Jinja2-backed template collaborator.

    Compiled templates are cached in a small LRU keyed by a hash of the
    template source.
    """

    def __init__(self, cache_size: int = 256):
        self._env = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            finalize=sql_literal,
        )
        self._env.filters.update(SQL_FILTERS)
        self._cache_size = cache_size
        self._cache: "OrderedDict[str, Template]" = OrderedDict()
        self._lock = threading.Lock()

    def _compile(self, source: str) -> Template:
        key = hashlib.md5(source.encode(), usedforsecurity=False).hexdigest()
        with self._lock:
            template = self._cache.get(key)
            if template is not None:
                self._cache.move_to_end(key)
                return template
        template = self._env.from_string(source)
        with self._lock:
            self._cache[key] = template
            if len(self._cache) > self._cache_size:
                self._cache.popitem(last=False)
        return template

    def render(self, template: str, params: Mapping[str, Any]) -> str:
        """Render ``template`` with ``params`` into the literal query text."""
        try:
            return self._compile(template).render(**params)
        except UndefinedError as e:
            raise QueryTemplateError(
                f"Query template variable not found: {e}. "
                f"Available params: {sorted(params)}",
                query=template
            ) from e
        except TemplateError as e:
            raise QueryTemplateError(f"Query template error: {e}", query=template) from e

    def parameters(self, template: str) -> List[str]:
        """Names referenced by ``template``, sorted."""
        try:
            ast = self._env.parse(template)
        except TemplateError as e:
            raise QueryTemplateError(f"Query template error: {e}", query=template) from e
        return sorted(meta.find_undeclared_variables(ast))
