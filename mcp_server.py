# mcp_server.py
import logging
import sys
from typing import Any, Dict, List, Optional

import anyio
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server

from bootstrap import init_client
from errors import ConfigError, FlomoError
from tool_adapter import WriteNoteTool

SERVER_NAME = "mcp-server-flomo"
SERVER_VERSION = "1.0.0"


def build_server(tool: WriteNoteTool, logger: Optional[logging.Logger] = None) -> Server:
    log = logger or logging.getLogger("flomo.server")
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def handle_list_tools() -> List[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
        ]

    # arguments are checked by the tool itself so callers get its error text
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        if name != tool.name:
            raise ValueError(f"Unknown tool: {name}")
        try:
            text = await tool.acall(arguments)
        except FlomoError as e:
            log.error("Tool %s failed: %s", name, e)
            raise
        return [types.TextContent(type="text", text=text)]

    log.info("Registered %s tool handler", tool.name)
    return server


async def serve(server: Server) -> None:
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    log = logging.getLogger("flomo.server")
    try:
        client = init_client("server")
    except ConfigError as e:
        log.error("%s", e)
        print("Please set FLOMO_API_URL in your .env file or environment variables", file=sys.stderr)
        sys.exit(1)

    server = build_server(WriteNoteTool(client), logger=log)
    log.info("Starting MCP server...")
    anyio.run(serve, server)


if __name__ == "__main__":
    main()
