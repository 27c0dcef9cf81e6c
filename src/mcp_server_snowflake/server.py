import logging

import anyio
import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .configs import SERVER_NAME, SERVER_VERSION
from .database import CancelToken
from .instructions import INSTRUCTIONS_BASE
from .tools import execute_query
from .tools.execute_query import ExecuteQueryHandler, Warehouse

logger = logging.getLogger("mcp_server_snowflake")


class ToolCallError(Exception):
    """Reported to the client as a tool result with isError set."""


def build_application(
    warehouse: Warehouse,
    query_timeout: int = -1,
    instructions: str = INSTRUCTIONS_BASE,
) -> tuple[Server, InitializationOptions]:
    logger.info("Initializing MCP server")
    server = Server(SERVER_NAME, version=SERVER_VERSION, instructions=instructions)
    handler = ExecuteQueryHandler(warehouse, query_timeout=query_timeout)

    logger.info(f"Registering '{execute_query.NAME}' tool")

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """
        List available tools.
        Each tool specifies its arguments using JSON Schema validation.
        """
        logger.info("Listing tools")
        return [
            types.Tool(
                name=execute_query.NAME,
                description=execute_query.DESCRIPTION,
                inputSchema=execute_query.INPUT_SCHEMA,
            ),
        ]

    # The handler decides what an invalid argument is, not the schema validator
    @server.call_tool(validate_input=False)
    async def handle_tool_call(name: str, arguments: dict | None) -> list[types.TextContent]:
        if name != execute_query.NAME:
            raise ToolCallError(f"Unknown tool: {name}")

        cancel = CancelToken()
        try:
            result = await anyio.to_thread.run_sync(
                handler, arguments, cancel, abandon_on_cancel=True
            )
        except anyio.get_cancelled_exc_class():
            logger.info(f"Tool call '{name}' cancelled by the client")
            with anyio.CancelScope(shield=True):
                await anyio.to_thread.run_sync(cancel.cancel)
            raise
        if result.is_error:
            raise ToolCallError(result.text)
        logger.info(f"Sending tool result: {result.text}")
        return [types.TextContent(type="text", text=result.text)]

    initialization_options = InitializationOptions(
        server_name=SERVER_NAME,
        server_version=SERVER_VERSION,
        capabilities=server.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
        instructions=instructions,
    )

    return server, initialization_options


async def serve_stdio(server: Server, initialization_options: InitializationOptions) -> None:
    """Run the server over stdin/stdout until the client disconnects."""
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, initialization_options)
