"""Tests for the libpq transport, with psycopg.pq replaced by fakes."""

from __future__ import annotations

from types import SimpleNamespace
from typing import List, Optional

import psycopg
import pytest
from psycopg import pq

from connection_management import LibpqHandle, LibpqTransport, TransportConnectError, TransportError
from connection_management import transport as transport_module


class _FakeResult:
    def __init__(
        self,
        status=pq.ExecStatus.TUPLES_OK,
        columns: tuple = (),
        rows: tuple = (),
        command_status: Optional[bytes] = b"SELECT 0",
        command_tuples: Optional[int] = 0,
        sqlstate: Optional[bytes] = None,
        error_message: bytes = b"",
    ) -> None:
        self.status = status
        self._columns = columns
        self._rows = rows
        self.command_status = command_status
        self.command_tuples = command_tuples
        self._sqlstate = sqlstate
        self.error_message = error_message
        self.cleared = False

    @property
    def nfields(self) -> int:
        return len(self._columns)

    @property
    def ntuples(self) -> int:
        return len(self._rows)

    def fname(self, index: int) -> bytes:
        return self._columns[index]

    def get_value(self, row: int, col: int) -> Optional[bytes]:
        return self._rows[row][col]

    def error_field(self, field) -> Optional[bytes]:
        assert field == pq.DiagnosticField.SQLSTATE
        return self._sqlstate

    def clear(self) -> None:
        self.cleared = True


class _FakePGconn:
    def __init__(self, results: List[_FakeResult], status=pq.ConnStatus.OK, error_message: bytes = b"") -> None:
        self._results = list(results)
        self.status = status
        self.error_message = error_message
        self.server_version = 160000
        self.sent: List[bytes] = []
        self.busy = 0
        self.finished = False
        self.send_error: Optional[Exception] = None

    def is_busy(self) -> int:
        return self.busy

    def send_query(self, command: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(command)

    def get_result(self) -> Optional[_FakeResult]:
        return self._results.pop(0) if self._results else None

    def finish(self) -> None:
        self.finished = True


def test_get_result_decodes_rows_and_status() -> None:
    result = _FakeResult(
        columns=(b"id", b"name"),
        rows=((b"1", "café".encode()), (b"2", None)),
        command_status=b"SELECT 2",
        command_tuples=2,
    )
    handle = LibpqHandle(_FakePGconn([result]))

    outcome = handle.get_result()

    assert outcome.columns == ("id", "name")
    assert outcome.rows == (("1", "café"), ("2", None))
    assert outcome.status == "SELECT 2"
    assert outcome.affected_rows == 2
    assert not outcome.failed
    assert result.cleared


def test_get_result_reports_sqlstate_and_message() -> None:
    error = _FakeResult(
        status=pq.ExecStatus.FATAL_ERROR,
        sqlstate=b"23505",
        error_message=b"ERROR:  duplicate key value violates unique constraint\n",
    )
    handle = LibpqHandle(_FakePGconn([error]))

    outcome = handle.get_result()

    assert outcome.failed
    assert outcome.error_code == "23505"
    assert outcome.error_message == "ERROR:  duplicate key value violates unique constraint"


def test_error_result_wins_over_earlier_statements() -> None:
    ok = _FakeResult(command_status=b"INSERT 0 1", command_tuples=1)
    error = _FakeResult(status=pq.ExecStatus.FATAL_ERROR, sqlstate=b"42P01", error_message=b"ERROR: missing")
    handle = LibpqHandle(_FakePGconn([ok, error]))

    assert handle.get_result().error_code == "42P01"


def test_last_successful_result_is_returned() -> None:
    first = _FakeResult(command_status=b"BEGIN", command_tuples=None)
    second = _FakeResult(command_status=b"INSERT 0 3", command_tuples=3)
    handle = LibpqHandle(_FakePGconn([first, second]))

    outcome = handle.get_result()

    assert outcome.status == "INSERT 0 3"
    assert first.cleared and second.cleared


def test_send_query_encodes_and_wraps_failures() -> None:
    pgconn = _FakePGconn([])
    handle = LibpqHandle(pgconn)

    handle.send_query("SELECT 'é'")
    assert pgconn.sent == ["SELECT 'é'".encode()]

    pgconn.send_error = psycopg.OperationalError("server closed the connection unexpectedly")
    with pytest.raises(TransportError):
        handle.send_query("SELECT 1")


def test_is_busy_and_close_delegate() -> None:
    pgconn = _FakePGconn([])
    handle = LibpqHandle(pgconn)
    pgconn.busy = 1

    assert handle.is_busy() is True

    handle.close()
    assert pgconn.finished


def _fake_pq(pgconn: _FakePGconn, descriptors: list) -> SimpleNamespace:
    def _connect(conninfo: bytes) -> _FakePGconn:
        descriptors.append(conninfo)
        return pgconn

    return SimpleNamespace(
        PGconn=SimpleNamespace(connect=_connect),
        ConnStatus=pq.ConnStatus,
        DiagnosticField=pq.DiagnosticField,
    )


def test_open_returns_handle(monkeypatch: pytest.MonkeyPatch) -> None:
    descriptors: list = []
    pgconn = _FakePGconn([])
    monkeypatch.setattr(transport_module, "pq", _fake_pq(pgconn, descriptors))

    handle = LibpqTransport().open("host=db1 connect_timeout=5 user=u")

    assert isinstance(handle, LibpqHandle)
    assert descriptors == [b"host=db1 connect_timeout=5 user=u"]


def test_open_failure_raises_and_finishes(monkeypatch: pytest.MonkeyPatch) -> None:
    pgconn = _FakePGconn([], status=pq.ConnStatus.BAD, error_message=b"connection refused\n")
    monkeypatch.setattr(transport_module, "pq", _fake_pq(pgconn, []))

    with pytest.raises(TransportConnectError, match="connection refused"):
        LibpqTransport().open("host=db1 connect_timeout=5 user=u")

    assert pgconn.finished
