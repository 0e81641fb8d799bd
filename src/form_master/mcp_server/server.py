"""
MCP Server implementation for Form Master.

Provides both stdio and SSE transport support for the Model Context Protocol.
"""

import json
import logging
from typing import Any, Literal
from urllib.parse import parse_qs

from mcp.server import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from form_master.config import get_config
from form_master.exceptions import FormMasterError
from form_master.mcp_server.session_store import connection_session, form_sessions
from form_master.mcp_server.tools import TOOL_HANDLERS, get_mcp_tools

# Configure logging
logging.basicConfig(level=getattr(logging, get_config().log_level, logging.INFO))
logger = logging.getLogger("form-master-mcp")


def _dump(result: Any) -> list[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


def create_mcp_server() -> Server:
    """
    Create and configure the MCP server instance.

    Returns:
        Configured MCP Server with form-master tools registered.
    """
    server = Server("form-master-mcp")

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name=t["name"],
                description=t["description"],
                inputSchema=t["inputSchema"],
            )
            for t in get_mcp_tools()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        """Handle tool calls."""
        logger.info(f"Tool call: {name} with args: {list(arguments)}")

        handler = TOOL_HANDLERS.get(name)
        if handler is None:
            return _dump({"error": f"Unknown tool: {name}"})

        try:
            result = await handler(**arguments)
        except (FormMasterError, ValueError, TypeError, OSError) as e:
            logger.error(f"Error in {name}: {type(e).__name__}: {e}")
            return _dump({"error": str(e)})
        return _dump(result)

    return server


async def run_stdio_server(server: Server) -> None:
    """
    Run MCP server with stdio transport.

    Used for desktop clients and local subprocess communication.
    """
    logger.info("Starting MCP server with stdio transport...")

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def create_sse_app(server: Server) -> Starlette:
    """
    Create Starlette app for SSE transport.

    Used for remote/Docker deployment.
    """
    # SSE transport - messages endpoint is relative to SSE mount point
    sse_transport = SseServerTransport("/messages/")

    async def handle_sse(scope, receive, send):
        """Handle SSE connections - raw ASGI handler."""
        query = parse_qs(scope.get("query_string", b"").decode("utf-8"))
        session_id = query.get("session_id", [None])[0]
        if session_id:
            logger.info(f"SSE connection for session {session_id}")

        async with connection_session(session_id):
            async with sse_transport.connect_sse(scope, receive, send) as streams:
                await server.run(
                    streams[0],
                    streams[1],
                    server.create_initialization_options(),
                )

    async def handle_messages(scope, receive, send):
        """Handle message POST requests - raw ASGI handler."""
        await sse_transport.handle_post_message(scope, receive, send)

    async def health_check(request):
        """Health check endpoint."""
        config = get_config()
        return JSONResponse({
            "status": "healthy",
            "service": "form-master-mcp",
            "transport": "sse",
            "api_base_url": config.api_base_url,
            "open_sessions": len(form_sessions),
        })

    return Starlette(
        debug=get_config().verbose_output,
        routes=[
            Route("/health", health_check, methods=["GET"]),
            Mount("/sse/messages", app=handle_messages),
            Mount("/sse", app=handle_sse),
        ],
    )


async def run_sse_server(server: Server, host: str = "0.0.0.0", port: int = 8080) -> None:
    """
    Run MCP server with SSE transport.

    Args:
        server: MCP Server instance
        host: Host to bind to
        port: Port to listen on
    """
    import uvicorn

    logger.info(f"Starting MCP server with SSE transport on {host}:{port}...")

    app = create_sse_app(server)
    config = uvicorn.Config(app, host=host, port=port, log_level="info")
    server_instance = uvicorn.Server(config)
    await server_instance.serve()


async def run_mcp_server(
    transport: Literal["stdio", "sse"] = "stdio",
    host: str = "0.0.0.0",
    port: int = 8080,
) -> None:
    """
    Run MCP server with specified transport.

    Args:
        transport: Transport type - "stdio" or "sse"
        host: Host for SSE transport (default: 0.0.0.0)
        port: Port for SSE transport (default: 8080)
    """
    server = create_mcp_server()

    if transport == "stdio":
        await run_stdio_server(server)
    elif transport == "sse":
        await run_sse_server(server, host, port)
    else:
        raise ValueError(f"Unknown transport: {transport}. Use 'stdio' or 'sse'.")
