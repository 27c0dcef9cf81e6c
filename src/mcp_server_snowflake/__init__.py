"""
Snowflake MCP Server - An MCP server exposing read-only SQL on Snowflake.

This module provides the CLI entry point for the MCP server.
"""

import logging
from dataclasses import replace

import anyio
import click
from dotenv import load_dotenv

from .configs import (
    DEFAULT_CONNECTION_MAX_LIFETIME,
    DEFAULT_MAX_IDLE_CONNECTIONS,
    DEFAULT_MAX_OPEN_CONNECTIONS,
    PING_TIMEOUT,
    SERVER_VERSION,
    ConfigurationError,
    SnowflakeConfig,
)
from .database import SnowflakeConnectionPool
from .instructions import get_instructions
from .server import build_application, serve_stdio

__version__ = SERVER_VERSION

logger = logging.getLogger("mcp_server_snowflake")
logging.basicConfig(level=logging.INFO, format="[snowflake] %(levelname)s - %(message)s")


@click.command()
@click.option("--account", envvar="SNOWFLAKE_ACCOUNT", help="Snowflake account identifier")
@click.option("--user", envvar="SNOWFLAKE_USER", help="Snowflake user name")
@click.option("--database", envvar="SNOWFLAKE_DATABASE", help="Session database")
@click.option("--schema", envvar="SNOWFLAKE_SCHEMA", help="Session schema")
@click.option("--warehouse", envvar="SNOWFLAKE_WAREHOUSE", help="Virtual warehouse to run queries on")
@click.option("--role", envvar="SNOWFLAKE_ROLE", default=None, help="(Optional) Session role")
@click.option(
    "--max-open-connections",
    type=click.IntRange(min=1),
    default=DEFAULT_MAX_OPEN_CONNECTIONS,
    envvar="MCP_MAX_OPEN_CONNECTIONS",
    help=f"(Default: `{DEFAULT_MAX_OPEN_CONNECTIONS}`) Maximum number of concurrently open warehouse sessions.",
)
@click.option(
    "--max-idle-connections",
    type=click.IntRange(min=0),
    default=DEFAULT_MAX_IDLE_CONNECTIONS,
    envvar="MCP_MAX_IDLE_CONNECTIONS",
    help=f"(Default: `{DEFAULT_MAX_IDLE_CONNECTIONS}`) Maximum number of idle sessions kept in the pool.",
)
@click.option(
    "--connection-max-lifetime",
    type=int,
    default=DEFAULT_CONNECTION_MAX_LIFETIME,
    envvar="MCP_CONNECTION_MAX_LIFETIME",
    help=f"(Default: `{DEFAULT_CONNECTION_MAX_LIFETIME}`) Seconds after which a session is not reused. Set to -1 to disable.",
)
@click.option(
    "--query-timeout",
    type=int,
    default=-1,
    envvar="MCP_QUERY_TIMEOUT",
    help="(Default: `-1`) Query execution timeout in seconds. Set to -1 to disable timeout.",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    envvar="MCP_LOG_LEVEL",
    help="Logging level",
)
def main(
    account: str | None,
    user: str | None,
    database: str | None,
    schema: str | None,
    warehouse: str | None,
    role: str | None,
    max_open_connections: int,
    max_idle_connections: int,
    connection_max_lifetime: int,
    query_timeout: int,
    log_level: str,
) -> None:
    """Snowflake MCP Server - Execute read-only SQL queries on Snowflake.

    The password is read from the SNOWFLAKE_PASSWORD environment variable.
    """
    logger.setLevel(log_level)
    logger.info("❄️  Snowflake MCP Server v" + SERVER_VERSION)

    # Options already fall back to SNOWFLAKE_*; the password only comes from the environment
    config = replace(
        SnowflakeConfig.from_env(),
        account=account or None,
        user=user or None,
        database=database or None,
        schema=schema or None,
        warehouse=warehouse or None,
        role=role or None,
        login_timeout=PING_TIMEOUT,
    )
    try:
        config.validate()
    except ConfigurationError as e:
        raise click.UsageError(str(e)) from e
    logger.info(f"Connecting with DSN (password masked): {config.masked_dsn()}")

    if query_timeout == -1:
        logger.info("Query timeout: disabled")
    else:
        logger.info(f"Query timeout: {query_timeout}s")

    pool = SnowflakeConnectionPool.from_config(
        config,
        max_open=max_open_connections,
        max_idle=max_idle_connections,
        max_lifetime=connection_max_lifetime,
    )
    with pool:
        logger.info("Pinging Snowflake database...")
        try:
            pool.ping(timeout=PING_TIMEOUT)
        except Exception as e:
            logger.error(f"❌ Error pinging Snowflake database: {e}")
            raise click.ClickException(f"Error pinging Snowflake database: {e}") from e
        logger.info("✅ Snowflake database ping successful")
        logger.info(
            f"Connection pool: {max_open_connections} open, {max_idle_connections} idle, "
            f"{connection_max_lifetime}s lifetime"
        )

        server, initialization_options = build_application(
            pool,
            query_timeout=query_timeout,
            instructions=get_instructions(database=database, schema=schema, warehouse=warehouse),
        )
        logger.info("MCP server initialized in \033[32mstdio\033[0m mode")
        logger.info("Waiting for client connection")
        anyio.run(serve_stdio, server, initialization_options)


def cli() -> None:
    """Console script entry point; loads a local .env before parsing options."""
    load_dotenv()
    main()


__all__ = ["main", "cli", "__version__"]

if __name__ == "__main__":
    cli()
