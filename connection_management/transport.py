"""
Wire Transport

Defines the narrow interface a Connection needs from the wire-level client
and the libpq implementation of it, built on the bindings shipped with
psycopg (``psycopg.pq``). The libpq asynchronous command API maps directly
onto the interface: ``send_query`` dispatches, ``is_busy`` reports whether a
result is still pending and ``get_result`` blocks until it arrives.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple, runtime_checkable

import psycopg
from psycopg import pq

from .connection_exceptions import TransportConnectError, TransportError

logger = logging.getLogger(__name__)

_ERROR_STATUSES = (pq.ExecStatus.FATAL_ERROR, pq.ExecStatus.BAD_RESPONSE)


@dataclass(frozen=True)
class TransportResult:
    """Raw outcome of one dispatched query as reported by the transport."""
    columns: Tuple[str, ...] = ()
    rows: Tuple[Tuple[Optional[str], ...], ...] = ()
    status: str = ""
    affected_rows: Optional[int] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_code is not None or self.error_message is not None


@runtime_checkable
class TransportHandle(Protocol):
    """An open connection owned by exactly one Connection."""

    def is_busy(self) -> bool:
        ...

    def send_query(self, text: str) -> None:
        ...

    def get_result(self) -> TransportResult:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Transport(Protocol):
    """Factory for transport handles."""

    def open(self, descriptor: str) -> TransportHandle:
        """
        Open a connection described by ``descriptor``.

        Raises:
            TransportConnectError: If the server cannot be reached or rejects
                                   the connection.
        """
        ...


def _decode(value: Optional[bytes], encoding: str) -> Optional[str]:
    if value is None:
        return None
    return value.decode(encoding, errors="replace")


class LibpqHandle:
    """TransportHandle over a ``psycopg.pq.PGconn``."""

    def __init__(self, pgconn: "pq.abc.PGconn", encoding: str = "utf-8"):
        self._pgconn = pgconn
        self._encoding = encoding

    def is_busy(self) -> bool:
        return bool(self._pgconn.is_busy())

    def send_query(self, text: str) -> None:
        try:
            self._pgconn.send_query(text.encode(self._encoding))
        except psycopg.OperationalError as e:
            raise TransportError(f"Failed to send query: {e}") from e

    def get_result(self) -> TransportResult:
        """
        Drain every pending result of the last dispatched query.

        The last result is returned, except that an error result always
        wins over the successful results of earlier statements.
        """
        outcome: Optional[TransportResult] = None
        while True:
            res = self._pgconn.get_result()
            if res is None:
                break
            try:
                converted = self._convert(res)
            finally:
                res.clear()
            if outcome is None or not outcome.failed:
                outcome = converted

        if outcome is None:
            message = _decode(self._pgconn.error_message, self._encoding) or "no result returned"
            return TransportResult(error_message=message.strip())
        return outcome

    def close(self) -> None:
        self._pgconn.finish()

    def _convert(self, res: "pq.abc.PGresult") -> TransportResult:
        if res.status in _ERROR_STATUSES:
            message = _decode(res.error_message, self._encoding) or ""
            if not message:
                message = _decode(self._pgconn.error_message, self._encoding) or "query failed"
            return TransportResult(
                error_code=_decode(res.error_field(pq.DiagnosticField.SQLSTATE), self._encoding),
                error_message=message.strip(),
            )

        nfields = res.nfields
        columns = tuple(_decode(res.fname(i), self._encoding) or "" for i in range(nfields))
        rows = tuple(
            tuple(_decode(res.get_value(row, col), self._encoding) for col in range(nfields))
            for row in range(res.ntuples)
        )
        return TransportResult(
            columns=columns,
            rows=rows,
            status=_decode(res.command_status, self._encoding) or "",
            affected_rows=res.command_tuples,
        )


class LibpqTransport:
    """Opens libpq connections from a conninfo descriptor."""

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding

    def open(self, descriptor: str) -> LibpqHandle:
        pgconn = pq.PGconn.connect(descriptor.encode(self._encoding))
        if pgconn.status != pq.ConnStatus.OK:
            message = _decode(pgconn.error_message, self._encoding) or "connection failed"
            pgconn.finish()
            raise TransportConnectError(message.strip())
        logger.debug(f"libpq connection opened (server version {pgconn.server_version})")
        return LibpqHandle(pgconn, encoding=self._encoding)
