"""
PostgreSQL Connection

This module provides the Connection object that owns a single transport
handle. It covers the connection lifecycle (connect with bounded retry,
disconnect, reconnect), query dispatch with busy detection, optional
template rendering, transaction control and classification of
server-reported errors.
"""

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Mapping, Optional

from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception_type, stop_after_attempt, wait_none

from config import ConnectionConfig
from pg_ops_exceptions import PgOpsError
from query_operations import (
    QueryError,
    QueryErrorInfo,
    QueryOutcome,
    QueryResult,
    QueryTemplate,
    TemplateRenderer,
    classify,
    error_for
)
from .transport import LibpqTransport, Transport, TransportHandle
from .connection_exceptions import (
    ConnectionBusyError,
    TransportConnectError,
    TriesExceededError
)

logger = logging.getLogger(__name__)

SQL_QUERY_BEGIN = "BEGIN"
SQL_QUERY_COMMIT = "COMMIT"
SQL_QUERY_ROLLBACK = "ROLLBACK"

_MASKED_PASSWORD = "********"


class ConnectionState(str, Enum):
    """Lifecycle states of a Connection."""
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


def _conninfo_value(value: Any) -> str:
    # libpq conninfo: empty values and values with spaces, quotes or
    # backslashes must be single-quoted with backslash escapes
    text = str(value)
    if text and not any(ch.isspace() or ch in "'\\" for ch in text):
        return text
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_connection_descriptor(config: ConnectionConfig, mask_password: bool = False) -> str:
    """
    Build the connection descriptor handed to the transport.

    ``host``, ``connect_timeout`` and ``user`` are always present; ``port``,
    ``password`` and ``dbname`` are appended only when configured, in that
    order.

    Example:
        >>> build_connection_descriptor(ConnectionConfig(host="db1", connect_timeout=5, user="u"))
        'host=db1 connect_timeout=5 user=u'
    """
    parameters = [
        "host=" + _conninfo_value(config.host),
        "connect_timeout=" + _conninfo_value(config.connect_timeout),
        "user=" + _conninfo_value(config.user),
    ]
    if config.port is not None:
        parameters.append("port=" + _conninfo_value(config.port))
    if config.password:
        password = _MASKED_PASSWORD if mask_password else _conninfo_value(config.password)
        parameters.append("password=" + password)
    if config.database:
        parameters.append("dbname=" + _conninfo_value(config.database))
    return " ".join(parameters)


class _OwnedHandle:
    """
    Sole owner of an open transport handle.

    ``release`` is the only path that closes the handle and it runs at most
    once. Copying is refused so the handle cannot end up with two owners.
    """
    __slots__ = ("_handle",)

    def __init__(self, handle: TransportHandle):
        self._handle: Optional[TransportHandle] = handle

    @property
    def handle(self) -> TransportHandle:
        if self._handle is None:
            raise RuntimeError("transport handle already released")
        return self._handle

    def release(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()

    def __copy__(self):
        raise TypeError("transport handles cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("transport handles cannot be copied")


def _open_with_retry(transport: Transport, config: ConnectionConfig) -> TransportHandle:
    """
    Open a transport handle, retrying up to ``config.connect_tries`` times.

    Module level so that tenacity's retry state never references the
    owning PgConnection.

    Raises:
        TriesExceededError: If every attempt failed. The last transport
                            error is chained as the cause.
    """
    tries = config.connect_tries
    endpoint = f"{config.host}:{config.port}"
    descriptor = build_connection_descriptor(config)

    def _log_failed_attempt(retry_state: RetryCallState) -> None:
        logger.warning(
            f"Connect attempt {retry_state.attempt_number}/{tries} to {endpoint} failed: "
            f"{retry_state.outcome.exception()}"
        )

    retrying = Retrying(
        stop=stop_after_attempt(tries),
        wait=wait_none(),
        retry=retry_if_exception_type(TransportConnectError),
        after=_log_failed_attempt,
    )

    try:
        for attempt in retrying:
            with attempt:
                handle = transport.open(descriptor)
    except RetryError as e:
        last_error = e.last_attempt.exception()
        masked = build_connection_descriptor(config, mask_password=True)
        logger.error(f"Giving up on {endpoint} after {tries} connect attempt(s) [{masked}]")
        raise TriesExceededError(
            f"Could not connect to {endpoint} after {tries} attempt(s): {last_error}",
            tries=tries,
            endpoint=endpoint
        ) from last_error

    logger.info(f"Connected to {endpoint} (attempt {attempt.retry_state.attempt_number}/{tries})")
    return handle


class PgConnection:
    """
    A single PostgreSQL connection with bounded connect retry.

    The connection connects lazily on the first query, fails fast when its
    handle is still busy with an earlier request, and raises a typed
    exception for every server-reported error. Query failures are never
    retried; only connect() retries.

    Handle use is serialized with a re-entrant lock, so threads of this
    process cannot interleave the busy check and the send. The handle can
    still report busy because of activity outside this object, in which
    case ConnectionBusyError is raised as usual.

    Example:
        >>> connection = PgConnection(ConnectionConfig(host="localhost", port=5432))
        >>> with connection.transaction():
        ...     connection.query("INSERT INTO tags (name) VALUES ({{ name }})", {"name": "blue"})
    """

    def __init__(
        self,
        config: ConnectionConfig,
        transport: Optional[Transport] = None,
        renderer: Optional[TemplateRenderer] = None
    ):
        """
        Initialize the connection without opening it.

        Args:
            config: Validated connection settings.
            transport: Wire transport used to open handles. Defaults to libpq.
            renderer: Template collaborator for parameterized queries.
                      Defaults to QueryTemplate.
        """
        self._config = config
        self._transport = transport if transport is not None else LibpqTransport()
        self._renderer = renderer if renderer is not None else QueryTemplate()
        self._handle: Optional[_OwnedHandle] = None
        self._lock = threading.RLock()

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    @property
    def endpoint(self) -> str:
        return f"{self._config.host}:{self._config.port}"

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.CONNECTED if self._handle is not None else ConnectionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    def connect(self) -> bool:
        """
        Open the transport, retrying up to ``config.connect_tries`` times.

        Attempts follow each other immediately. The first successful attempt
        ends the loop. Calling connect() on a connected instance is a no-op.

        Returns:
            bool: True once connected.

        Raises:
            TriesExceededError: If every attempt failed. The last transport
                                error is chained as the cause.
        """
        with self._lock:
            if self._handle is not None:
                return True

            handle = _open_with_retry(self._transport, self._config)
            self._handle = _OwnedHandle(handle)
            return True

    def disconnect(self) -> None:
        """Close the transport handle. Safe to call when already disconnected."""
        with self._lock:
            if self._handle is None:
                return
            owned, self._handle = self._handle, None
            owned.release()
            logger.info(f"Disconnected from {self.endpoint}")

    def reconnect(self) -> bool:
        """Disconnect unconditionally, then connect."""
        with self._lock:
            self.disconnect()
            return self.connect()

    def query(
        self,
        text: str,
        params: Optional[Mapping[str, Any]] = None,
        fail_on_busy: bool = True
    ) -> QueryResult:
        """
        Execute a query and wait for its result.

        Args:
            text: Query text, or a template when ``params`` is given.
            params: Named parameters rendered into ``text`` by the template
                    collaborator. When None, ``text`` is sent verbatim.
            fail_on_busy: Raise ConnectionBusyError instead of sending when
                          the handle still has a request in flight.

        Returns:
            QueryResult: Rows, columns and command status of the query.

        Raises:
            TriesExceededError: If the implicit connect failed.
            ConnectionBusyError: If the handle is busy and fail_on_busy is set.
            QueryTemplateError: If ``text`` could not be rendered.
            QueryError: A subclass matching the provider error code when the
                        server rejected the query.
        """
        with self._lock:
            if self._handle is None:
                self.connect()

            handle = self._handle.handle
            if handle.is_busy() and fail_on_busy:
                raise ConnectionBusyError(
                    f"Connection to {self.endpoint} is busy with another request"
                )

            sql = self._renderer.render(text, params) if params is not None else text
            logger.debug(f"Sending query to {self.endpoint}: {text}")
            handle.send_query(sql)
            raw = handle.get_result()

        if raw.failed:
            info = classify(raw.error_code, raw.error_message or "", text)
            logger.warning(f"Query on {self.endpoint} failed with {info.kind.value} (SQLSTATE {info.code})")
            raise error_for(info)

        return QueryResult(
            columns=raw.columns,
            rows=raw.rows,
            status=raw.status,
            affected_rows=raw.affected_rows,
            query=text
        )

    def try_query(
        self,
        text: str,
        params: Optional[Mapping[str, Any]] = None,
        fail_on_busy: bool = True
    ) -> QueryOutcome:
        """
        Like query(), but taxonomy errors are returned instead of raised.

        Example:
            >>> outcome = connection.try_query("CREATE TABLE tags (name text)")
            >>> if not outcome.ok and outcome.error.kind is ErrorKind.DUPLICATE_TABLE:
            ...     pass
        """
        try:
            return QueryOutcome(result=self.query(text, params, fail_on_busy))
        except PgOpsError as e:
            if e.kind is None:
                raise
            if isinstance(e, QueryError):
                return QueryOutcome(error=e.info)
            return QueryOutcome(error=QueryErrorInfo(kind=e.kind, message=str(e), query=text))

    def begin(self) -> None:
        """Start a transaction."""
        self.query(SQL_QUERY_BEGIN, None, False)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.query(SQL_QUERY_COMMIT, None, False)

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self.query(SQL_QUERY_ROLLBACK, None, False)

    @contextmanager
    def transaction(self) -> Iterator["PgConnection"]:
        """
        Run a block inside BEGIN/COMMIT, rolling back if it raises.

        Transactions do not nest; opening one inside another sends a second
        BEGIN, which the server answers with a warning only.
        """
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()

    def __enter__(self) -> "PgConnection":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()

    def __repr__(self) -> str:
        return f"PgConnection(endpoint={self.endpoint!r}, state={self.state.value!r})"

    def __del__(self):
        """Release the handle if the connection is garbage collected while open."""
        try:
            owned = self._handle
            self._handle = None
            if owned is not None:
                owned.release()
        except Exception:
            pass
