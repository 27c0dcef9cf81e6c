"""
Execute Query tool - Run a read-only SQL statement on Snowflake.
"""

import json
import logging
import time
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any, Protocol

from ..database import CancelToken
from ..values import Scalar

logger = logging.getLogger("mcp_server_snowflake")

NAME = "execute_query"
DESCRIPTION = "Execute a SQL query on Snowflake"
INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": "SQL query to execute",
        },
    },
    "required": ["query"],
}

WRITE_KEYWORDS = ("INSERT", "UPDATE", "DELETE", "CREATE", "DROP", "ALTER")

INVALID_QUERY_PARAMETER = "invalid query parameter"
READ_ONLY_RESTRICTION = "Security restriction: Only read operations (SELECT) are allowed."


class Warehouse(Protocol):
    def query(
        self, sql: str, timeout: float | None = None, cancel: CancelToken | None = None
    ) -> AbstractContextManager[Any]: ...


@dataclass(frozen=True)
class ToolResult:
    text: str
    is_error: bool = False

    @classmethod
    def error(cls, text: str) -> "ToolResult":
        return cls(text, is_error=True)


def is_write_query(sql: str) -> bool:
    """
    Prefix check for statements that modify data.

    Only the leading keyword is inspected: CTEs, multi-statement batches,
    procedure calls and leading comments are not detected.
    """
    return sql.strip().upper().startswith(WRITE_KEYWORDS)


def encode_rows(rows: list[dict[str, Scalar]]) -> str:
    return json.dumps(
        [{column: value.to_json() for column, value in row.items()} for row in rows],
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def format_response(payload: str, elapsed: float) -> str:
    return f"Results: {payload}\nExecution time: {elapsed:.2f}s"


class ExecuteQueryHandler:
    """
    Handles ``execute_query`` tool calls.

    Calling the handler never raises: every failure becomes an error
    ``ToolResult`` so a single bad call cannot interrupt the transport.
    Cancelling ``cancel`` aborts the running statement.
    """

    def __init__(self, warehouse: Warehouse, query_timeout: int = -1):
        self._warehouse = warehouse
        self._timeout = query_timeout if query_timeout > 0 else None

    def __call__(
        self, arguments: dict[str, Any] | None, cancel: CancelToken | None = None
    ) -> ToolResult:
        logger.info(f"Received tool call request: {NAME}::{arguments}")
        raw_query = (arguments or {}).get("query")
        if not isinstance(raw_query, str):
            logger.error(
                f"Invalid query parameter type. Expected str, got {type(raw_query).__name__}"
            )
            return ToolResult.error(INVALID_QUERY_PARAMETER)

        sql = raw_query.strip()
        logger.info(f"Executing query: {sql}")
        if is_write_query(sql):
            logger.info("Security restriction: write operation detected, rejecting")
            return ToolResult.error(READ_ONLY_RESTRICTION)

        start = time.perf_counter()
        try:
            with self._warehouse.query(sql, timeout=self._timeout, cancel=cancel) as cursor:
                logger.info("Query executed successfully")
                try:
                    columns = [d[0] for d in cursor.description] if cursor.description else []
                except Exception as e:
                    logger.error(f"Error getting columns: {e}")
                    return ToolResult.error(f"columns error: {e}")
                logger.info(f"Retrieved columns: {columns}")

                try:
                    rows = self._scan(cursor, columns)
                except Exception as e:
                    logger.error(f"Error scanning row: {e}")
                    return ToolResult.error(f"scan error: {e}")
                elapsed = time.perf_counter() - start
        except Exception as e:
            logger.error(f"Error executing query: {e}")
            return ToolResult.error(f"query error: {e}")
        logger.info(f"Finished scanning {len(rows)} rows in {elapsed:.2f}s")

        try:
            payload = encode_rows(rows)
        except (TypeError, ValueError) as e:
            logger.error(f"Error encoding results as JSON: {e}")
            return ToolResult.error(f"json marshal error: {e}")

        return ToolResult(format_response(payload, elapsed))

    @staticmethod
    def _scan(cursor: Any, columns: list[str]) -> list[dict[str, Scalar]]:
        rows = []
        for raw_row in cursor:
            if len(raw_row) != len(columns):
                raise ValueError(
                    f"expected {len(columns)} destination arguments in row, got {len(raw_row)}"
                )
            rows.append(
                {column: Scalar.from_driver(value) for column, value in zip(columns, raw_row)}
            )
        return rows
