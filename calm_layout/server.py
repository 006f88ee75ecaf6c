"""MCP server exposing hierarchical layout tools for CALM architectures."""

import asyncio
import json
import logging

from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import TextContent, Tool

from calm_layout import __version__
from calm_layout.config.settings import get_all_flags, load_settings
from calm_layout.core.layout_store import create_layout_store
from calm_layout.tools.layout_tools import LayoutTools

logger = logging.getLogger(__name__)


class CalmLayoutMCPServer:
    """MCP server for architecture layout computation and storage."""

    def __init__(self, settings=None):
        """Initialize the server from settings (environment when omitted)."""
        self.settings = settings or load_settings()
        self.layout_store = create_layout_store(self.settings.store_dir)
        self.layout_tools = LayoutTools(self.layout_store, self.settings)

        self.server = Server("calm-layout")
        self._register_handlers()

    def _register_handlers(self):
        """Register all MCP handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> list[Tool]:
            """List all available tools."""
            return self.layout_tools.get_tools()

        @self.server.call_tool()
        async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
            """Route tool calls to the layout tools."""
            result = await self.call_tool(name, arguments)
            return [TextContent(type="text", text=json.dumps(result, indent=2))]

    async def call_tool(self, name: str, arguments: dict) -> dict:
        """Run one tool and return its response envelope."""
        return await self.layout_tools.handle_tool(name, arguments or {})

    async def run(self):
        """Run the MCP server over stdio."""
        from mcp.server.stdio import stdio_server

        logger.info(
            f"Starting calm-layout {__version__} (direction {self.settings.direction}, "
            f"store {self.settings.store_dir or 'in-memory'}, flags {get_all_flags()})"
        )
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name="calm-layout",
                    server_version=__version__,
                    capabilities=self.server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={}
                    )
                )
            )


def main():
    """Main entry point for the MCP server."""
    logging.basicConfig(level=logging.INFO)
    server = CalmLayoutMCPServer()
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
