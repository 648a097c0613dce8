"""
PostgreSQL Connection Registry

This module provides a thread-safe registry that keeps at most one
PgConnection per network endpoint (host:port).
"""

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional

from config import ConnectionConfig
from pg_ops_exceptions import ConfigurationError
from query_operations import QueryTemplate, TemplateRenderer
from .pg_connection import PgConnection
from .transport import LibpqTransport, Transport

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Keyed store of connections, one per endpoint.

    The registry is an explicit object: create it during application
    startup, hand it to the code that needs connections and close it
    during shutdown. Entries are never evicted while it lives.

    The first configuration registered for an endpoint wins. A later
    request for the same host:port with different credentials, database
    or timeouts returns the existing connection unchanged.

    Example:
        >>> registry = ConnectionRegistry()
        >>> primary = registry.get_connection(ConnectionConfig(host="db1", port=5432))
        >>> primary is registry.get_connection_by_options({"host": "db1", "port": 5432})
        True
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        renderer: Optional[TemplateRenderer] = None
    ):
        """
        Initialize an empty registry.

        Args:
            transport: Transport shared by every connection the registry
                       creates. Defaults to libpq.
            renderer: Template collaborator shared by every connection.
                      Defaults to QueryTemplate.
        """
        self._transport = transport if transport is not None else LibpqTransport()
        self._renderer = renderer if renderer is not None else QueryTemplate()
        self._connections: Dict[str, PgConnection] = {}
        self._lock = threading.Lock()

    @staticmethod
    def endpoint_key(host: str, port: Any) -> str:
        """Key identifying an endpoint: ``host:port``."""
        return f"{host}:{port}"

    def get_connection(self, config: ConnectionConfig) -> PgConnection:
        """
        Return the connection registered for the config's endpoint, creating
        it on first use. The connection is not opened here.

        Raises:
            ConfigurationError: If the config has no port.
        """
        if config.port is None:
            raise ConfigurationError(
                f"A port is required to register a connection for host {config.host!r}"
            )

        key = self.endpoint_key(config.host, config.port)
        with self._lock:
            connection = self._connections.get(key)
            if connection is None:
                connection = PgConnection(config, transport=self._transport, renderer=self._renderer)
                self._connections[key] = connection
                logger.info(f"Registered connection for {key}. Registered endpoints: {len(self._connections)}")
            elif connection.config != config:
                logger.debug(f"Endpoint {key} already registered; ignoring differing configuration")
            return connection

    def get_connection_by_options(self, options: Mapping[str, Any]) -> PgConnection:
        """
        Return the connection for a loose option mapping.

        ``host`` and ``port`` are required; ``connect_timeout`` and
        ``connect_tries`` (and ``user``, ``password``, ``database``) are
        optional.

        Raises:
            ConfigurationError: If a required option is missing or invalid.
        """
        return self.get_connection(ConnectionConfig.from_options(options))

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._connections)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._connections

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def close(self) -> None:
        """
        Disconnect every registered connection.

        Entries stay registered; a later query on any of them reconnects.
        Errors from individual connections are logged and do not stop the
        remaining ones from being closed.
        """
        with self._lock:
            connections = list(self._connections.items())

        for key, connection in connections:
            try:
                connection.disconnect()
            except Exception as e:
                logger.warning(f"Error closing connection {key}: {e}")

        logger.info(f"Connection registry closed ({len(connections)} endpoint(s))")

    def __enter__(self) -> "ConnectionRegistry":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
