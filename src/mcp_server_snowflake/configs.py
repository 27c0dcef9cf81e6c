import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

SERVER_NAME = "snowflake-server"
SERVER_VERSION = "0.1.0"

# Startup liveness check, also used as the login timeout
PING_TIMEOUT = 10

# Connection pool defaults
DEFAULT_MAX_OPEN_CONNECTIONS = 5
DEFAULT_MAX_IDLE_CONNECTIONS = 5
DEFAULT_CONNECTION_MAX_LIFETIME = 3600

ENV_PREFIX = "SNOWFLAKE_"
REQUIRED_SETTINGS = ("account", "user", "password", "database", "schema", "warehouse")


class ConfigurationError(ValueError):
    """Raised when a required connection setting is missing."""


@dataclass
class SnowflakeConfig:
    """Connection parameters for the Snowflake warehouse"""

    account: str | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    schema: str | None = None
    warehouse: str | None = None
    role: str | None = None
    login_timeout: int = PING_TIMEOUT

    def __repr__(self) -> str:
        return f"SnowflakeConfig({self.masked_dsn()!r})"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SnowflakeConfig":
        """Read SNOWFLAKE_* variables. Empty values count as missing."""
        if environ is None:
            environ = os.environ
        values = {}
        for name in (*REQUIRED_SETTINGS, "role"):
            values[name] = environ.get(ENV_PREFIX + name.upper()) or None
        return cls(**values)

    def missing_settings(self) -> list[str]:
        return [ENV_PREFIX + name.upper() for name in REQUIRED_SETTINGS if not getattr(self, name)]

    def validate(self) -> None:
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

    def masked_dsn(self) -> str:
        """DSN with the password replaced, safe to log."""
        dsn = f"{self.user}:***@{self.account}/{self.database}/{self.schema}?warehouse={self.warehouse}"
        if self.role:
            dsn += f"&role={self.role}"
        return dsn

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for snowflake.connector.connect"""
        kwargs: dict[str, Any] = {
            "account": self.account,
            "user": self.user,
            "password": self.password,
            "database": self.database,
            "schema": self.schema,
            "warehouse": self.warehouse,
            "login_timeout": self.login_timeout,
            "application": "mcp-server-snowflake",
        }
        if self.role:
            kwargs["role"] = self.role
        return kwargs
