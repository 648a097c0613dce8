"""
Configuration Module

This module provides centralized configuration management for PostgreSQL operations:
- Per-endpoint connection configuration (host, port, credentials, timeouts, retries)
- Logging configuration
- Configuration validation and loading from YAML files or environment variables

Implements a strongly-typed configuration system with sensible defaults
and validation at construction time using Pydantic.
"""

from .settings import (
    ConnectionConfig,
    LoggingSettings,
    PgSettings,
    load_settings
)
from .log_setup import configure_logging

__all__ = [
    'ConnectionConfig',
    'LoggingSettings',
    'PgSettings',
    'load_settings',
    'configure_logging'
]
