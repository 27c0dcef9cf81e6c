"""
MCP Tools for the Snowflake server.
"""

from .execute_query import ExecuteQueryHandler, ToolResult, is_write_query

__all__ = [
    "ExecuteQueryHandler",
    "ToolResult",
    "is_write_query",
]
