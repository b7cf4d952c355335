"""
extctl MCP Server

Exposes the extension commands to MCP clients over stdio:
- list_extensions
- install_extension
- uninstall_extension

Each tool runs the same command as the CLI and returns the lines the CLI
would have printed. Nothing is written to stdout (it carries the protocol).

Usage:
    python -m extctl.server
    extctl-mcp
"""

import asyncio
import json
import logging
import sys
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from extctl import __version__
from extctl.core.config import ExtctlConfig
from extctl.core.errors import ExtctlError
from extctl.main import main as run_main

logger = logging.getLogger("extctl.server")

app = Server("extctl")

_config: Optional[ExtctlConfig] = None


def _get_config() -> ExtctlConfig:
    global _config
    if _config is None:
        _config = ExtctlConfig.load()
    return _config


# ─────────────────────────────────────────────────────────────
# Tool Definitions
# ─────────────────────────────────────────────────────────────

@app.list_tools()
async def list_tools() -> list[Tool]:
    """Register the extension tools with the MCP server."""
    return [
        Tool(
            name="list_extensions",
            description="List the ids (publisher.name) of all installed extensions.",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="install_extension",
            description=(
                "Install extensions by marketplace id (publisher.name) or from local "
                ".vsix files. Local files are installed first. Already installed ids "
                "are skipped. Stops at the first failure."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "extensions": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Extension ids and/or .vsix paths.",
                    },
                },
                "required": ["extensions"],
            },
        ),
        Tool(
            name="uninstall_extension",
            description="Uninstall extensions by id (publisher.name). Stops at the first failure.",
            inputSchema={
                "type": "object",
                "properties": {
                    "ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Extension ids to remove.",
                    },
                },
                "required": ["ids"],
            },
        ),
    ]


# ─────────────────────────────────────────────────────────────
# Tool Execution
# ─────────────────────────────────────────────────────────────

_TOOL_ARGS = {
    "list_extensions": lambda args: {"list_extensions": True},
    "install_extension": lambda args: {"install_extension": args.get("extensions") or []},
    "uninstall_extension": lambda args: {"uninstall_extension": args.get("ids") or []},
}


async def run_tool(name: str, arguments: dict, config: Optional[ExtctlConfig] = None) -> dict:
    """Run one extension tool and collect what it reports."""
    to_args = _TOOL_ARGS.get(name)
    if to_args is None:
        return {"error": f"Unknown tool: {name}"}

    lines: list[str] = []
    try:
        await run_main(to_args(arguments or {}), config or _get_config(), report=lines.append)
    except (ExtctlError, OSError) as e:
        logger.error(f"Tool execution error: {name}: {e}")
        return {"error": str(e), "output": lines}

    return {"success": True, "output": lines}


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    result = await run_tool(name, arguments)
    return [TextContent(
        type="text",
        text=json.dumps(result, indent=2, ensure_ascii=False),
    )]


# ─────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────

async def _run_server():
    """Run the MCP server using stdio transport."""
    async with stdio_server() as (read_stream, write_stream):
        init_options = app.create_initialization_options()
        await app.run(read_stream, write_stream, init_options)


def main():
    """Start the extctl MCP server."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    config = _get_config()
    logger.info(f"extctl v{__version__} MCP server starting...")
    logger.info(f"Extensions: {config.extensions_path}")
    logger.info(f"Marketplace: {config.gallery.service_url}")

    asyncio.run(_run_server())


if __name__ == "__main__":
    main()
