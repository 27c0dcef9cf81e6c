from unittest.mock import patch

import pytest
from click.testing import CliRunner

from mcp_server_snowflake import main
from mcp_server_snowflake.configs import SnowflakeConfig
from mcp_server_snowflake.database import SnowflakeConnectionPool
from mcp_server_snowflake.server import serve_stdio
from tests.fakes import FakeConnector

ENV = {
    "SNOWFLAKE_ACCOUNT": "acme-xy123",
    "SNOWFLAKE_USER": "analyst",
    "SNOWFLAKE_PASSWORD": "hunter2",
    "SNOWFLAKE_DATABASE": "ANALYTICS",
    "SNOWFLAKE_SCHEMA": "PUBLIC",
    "SNOWFLAKE_WAREHOUSE": "COMPUTE_WH",
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Clear Snowflake settings so the developer's environment does not leak in"""
    for var in (*ENV, "SNOWFLAKE_ROLE"):
        monkeypatch.delenv(var, raising=False)


def test_missing_settings_is_usage_error():
    env = {k: v for k, v in ENV.items() if k != "SNOWFLAKE_WAREHOUSE"}
    with patch.object(SnowflakeConnectionPool, "from_config") as from_config:
        result = CliRunner().invoke(main, [], env=env)

    assert result.exit_code == 2
    assert "SNOWFLAKE_WAREHOUSE" in result.output
    from_config.assert_not_called()


def test_ping_failure_is_fatal():
    pool = SnowflakeConnectionPool(FakeConnector(error=OSError("could not connect")))
    with patch.object(SnowflakeConnectionPool, "from_config", return_value=pool), patch(
        "mcp_server_snowflake.anyio.run"
    ) as run:
        result = CliRunner().invoke(main, [], env=ENV)

    assert result.exit_code == 1
    assert "could not connect" in result.output
    run.assert_not_called()


def test_serves_stdio_after_successful_ping():
    connector = FakeConnector()
    pool = SnowflakeConnectionPool(connector)
    with patch.object(SnowflakeConnectionPool, "from_config", return_value=pool) as from_config, patch(
        "mcp_server_snowflake.anyio.run"
    ) as run:
        result = CliRunner().invoke(
            main, ["--max-open-connections", "3", "--query-timeout", "20"], env=ENV
        )

    assert result.exit_code == 0, result.output
    config = from_config.call_args.args[0]
    assert config.password == "hunter2"
    assert from_config.call_args.kwargs["max_open"] == 3
    assert run.call_args.args[0] is serve_stdio
    # pool is closed once serving ends
    assert connector.connections[0].closed is True


def test_options_override_environment():
    with patch.object(SnowflakeConnectionPool, "from_config") as from_config, patch(
        "mcp_server_snowflake.anyio.run"
    ):
        from_config.return_value = SnowflakeConnectionPool(FakeConnector())
        result = CliRunner().invoke(main, ["--warehouse", "ADHOC_WH", "--role", "REPORTER"], env=ENV)

    assert result.exit_code == 0, result.output
    config = from_config.call_args.args[0]
    assert config.warehouse == "ADHOC_WH"
    assert config.role == "REPORTER"


@pytest.mark.parametrize("password", [None, ""])
def test_password_comes_from_environment(password):
    env = {**ENV, "SNOWFLAKE_PASSWORD": password}
    with patch.object(SnowflakeConnectionPool, "from_config") as from_config, patch.object(
        SnowflakeConfig, "from_env", wraps=SnowflakeConfig.from_env
    ) as from_env:
        result = CliRunner().invoke(main, [], env=env)

    assert result.exit_code == 2
    assert "SNOWFLAKE_PASSWORD" in result.output
    from_env.assert_called_once_with()
    from_config.assert_not_called()
