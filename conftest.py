"""Shared fixtures: an in-memory transport that records every call."""

from collections import deque
from typing import Any, Deque, List, Mapping, Optional

import pytest

from config import ConnectionConfig
from connection_management import PgConnection, TransportConnectError, TransportResult


class FakeHandle:
    def __init__(self) -> None:
        self.busy = False
        self.sent: List[str] = []
        self.results: Deque[TransportResult] = deque()
        self.busy_checks = 0
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def is_busy(self) -> bool:
        self.busy_checks += 1
        return self.busy

    def send_query(self, text: str) -> None:
        self.sent.append(text)

    def get_result(self) -> TransportResult:
        if self.results:
            return self.results.popleft()
        return TransportResult(status="SELECT 0", affected_rows=0)

    def close(self) -> None:
        self.close_calls += 1


class FakeTransport:
    """Fails the first ``fail_times`` opens (or every open when ``always_fail``)."""

    def __init__(self, fail_times: int = 0, always_fail: bool = False) -> None:
        self.fail_times = fail_times
        self.always_fail = always_fail
        self.descriptors: List[str] = []
        self.handles: List[FakeHandle] = []

    @property
    def open_calls(self) -> int:
        return len(self.descriptors)

    @property
    def last_handle(self) -> Optional[FakeHandle]:
        return self.handles[-1] if self.handles else None

    def open(self, descriptor: str) -> FakeHandle:
        self.descriptors.append(descriptor)
        if self.always_fail or self.open_calls <= self.fail_times:
            raise TransportConnectError("could not connect to server: Connection refused")
        handle = FakeHandle()
        self.handles.append(handle)
        return handle


class RecordingRenderer:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def render(self, template: str, params: Mapping[str, Any]) -> str:
        self.calls.append((template, dict(params)))
        return f"rendered:{template}"


@pytest.fixture(autouse=True)
def _isolate_pg_env(monkeypatch: pytest.MonkeyPatch) -> None:
    import os

    for name in list(os.environ):
        if name.upper().startswith("PG_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def config() -> ConnectionConfig:
    return ConnectionConfig(host="db1", port=5432, user="app", connect_timeout=5, connect_tries=3)


@pytest.fixture
def connection(config: ConnectionConfig, fake_transport: FakeTransport, renderer: RecordingRenderer) -> PgConnection:
    return PgConnection(config, transport=fake_transport, renderer=renderer)
