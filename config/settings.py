"""
Pydantic Settings for PostgreSQL Operations

This module provides strongly-typed configuration settings using Pydantic,
with support for environment variables and YAML configuration files.
"""

from typing import Any, Dict, Mapping, Optional, Union
from pathlib import Path
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_yaml import to_yaml_str

from pg_ops_exceptions import ConfigurationError

# Loose option names accepted by ConnectionConfig.from_options()
_OPTION_ALIASES = {"dbname": "database", "username": "user"}
_REQUIRED_OPTIONS = ("host", "port")


class ConnectionConfig(BaseModel):
    """
    Connection settings for a single PostgreSQL endpoint.

    These settings control how a Connection reaches the server:
    - Server location and authentication
    - Target database
    - Connect timeout and the number of connect attempts

    Instances are immutable and validated on construction, so a missing
    host or an invalid retry count fails immediately rather than inside
    the first connect attempt. Only the values passed in are used;
    environment variables are read by PgSettings.
    """
    host: str = Field(..., min_length=1,
                      description="Hostname or IP address of the PostgreSQL server")
    port: Optional[int] = Field(None, ge=1, le=65535,
                                description="Port the server listens on; omitted from the descriptor when unset")
    user: str = Field("postgres", min_length=1,
                      description="Role name used to authenticate")
    password: Optional[str] = Field(None, repr=False,
                                    description="Password for the role (if the server requires one)")
    database: Optional[str] = Field(None,
                                    description="Database name; the server default is used when unset")
    connect_timeout: int = Field(5, ge=0,
                                 description="Connect timeout in seconds passed to the transport")
    connect_tries: int = Field(3, ge=1,
                               description="Number of connect attempts before giving up")

    model_config = ConfigDict(frozen=True, extra="ignore")

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "ConnectionConfig":
        """
        Build a config from a loose option mapping.

        ``host`` and ``port`` are required; ``connect_timeout``,
        ``connect_tries``, ``user``, ``password`` and ``database`` fall back
        to their defaults when absent.

        Raises:
            ConfigurationError: If a required option is missing or a value
                                fails validation.
        """
        values: Dict[str, Any] = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name in cls.model_fields and value is not None:
                values[name] = value

        missing = [key for key in _REQUIRED_OPTIONS if values.get(key) in (None, "")]
        if missing:
            raise ConfigurationError(
                f"Missing required connection option(s): {', '.join(missing)}"
            )

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid connection options: {e}") from e


class LoggingSettings(BaseSettings):
    """
    Logging settings applied by ``configure_logging``.
    """
    level: str = Field("INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                        description="Format string handed to logging.basicConfig")

    model_config = SettingsConfigDict(env_prefix="PG_LOG_", case_sensitive=False, extra="ignore")


class PgSettings(BaseSettings):
    """
    Main settings class that consolidates all configuration categories.

    Usage:
        # Load from environment variables (PG_CONNECTION__HOST=...)
        settings = PgSettings()

        # Load from YAML file
        settings = PgSettings.from_yaml('config.yaml')

        # Access nested settings
        host = settings.connection.host
        level = settings.logging.level
    """
    connection: ConnectionConfig = Field(...,
                                         description="Connection settings for the PostgreSQL server")
    logging: LoggingSettings = Field(default_factory=LoggingSettings,
                                     description="Logging configuration")

    model_config = SettingsConfigDict(
        env_prefix="PG_",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, yaml_file: Union[str, Path]) -> "PgSettings":
        """Load settings from YAML file"""
        import yaml
        with open(yaml_file, 'r') as f:
            data = yaml.safe_load(f) or {}
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid settings in {yaml_file}: {e}") from e

    def to_yaml(self) -> str:
        """Serialize settings to YAML, leaving the password out."""
        return to_yaml_str(self, exclude={"connection": {"password"}})


def load_settings(config_path: Optional[str] = None) -> PgSettings:
    """
    Load settings from file and/or environment variables.

    - If config_path is provided and exists, loads settings from the YAML file
    - Otherwise, creates a new settings instance with values from environment variables

    Args:
        config_path: Path to YAML configuration file. If None or file doesn't exist,
                    falls back to environment variables and default values.

    Returns:
        PgSettings object with loaded configuration

    Raises:
        ConfigurationError: If the resulting settings are invalid, e.g. no host
                            was configured anywhere.
    """
    if config_path and os.path.exists(config_path):
        return PgSettings.from_yaml(config_path)
    try:
        return PgSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings from environment: {e}") from e
