"""MCP server implementation for Symlocate."""

from __future__ import annotations

import asyncio
import json
import os
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from symlocate.core.config import SymbolConfig
from symlocate.core.models import ExecutableIdentity, SymbolIdentity
from symlocate.core.resolver import ResolverContext, SymbolResolver
from symlocate.core.search_path import ServerElement
from symlocate.providers.loader import UnavailableProvider, load_provider

PROVIDER_VAR = "SYMLOCATE_PROVIDER"

server = Server("symlocate")


def _get_context(cache_only: bool = False) -> ResolverContext:
    """Build a resolver context from the environment."""
    config = SymbolConfig.from_environment(cache_only=cache_only)
    spec = os.environ.get(PROVIDER_VAR)
    provider = load_provider(spec) if spec else UnavailableProvider(
        f"No debug-info provider configured; set {PROVIDER_VAR}=package.module:name"
    )
    return ResolverContext(config, provider)


@server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="symlocate_find_symbol",
            description=(
                "Find the symbol file (PDB) for a binary by name, GUID and age. "
                "Searches local directories and symbol servers on the search path and "
                "returns the path of the file in the local cache."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Symbol file name, e.g. 'ntdll.pdb'",
                    },
                    "guid": {
                        "type": "string",
                        "description": "GUID recorded in the binary's debug directory",
                    },
                    "age": {
                        "type": "integer",
                        "description": "Age recorded in the binary's debug directory",
                    },
                    "cache_only": {
                        "type": "boolean",
                        "description": "Only look in local caches (default: false)",
                        "default": False,
                    },
                },
                "required": ["name", "guid", "age"],
            },
        ),
        Tool(
            name="symlocate_find_executable",
            description=(
                "Find an executable image (DLL/EXE) by name, build timestamp and image size "
                "on the symbol search path. Returns the path in the local cache."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Executable file name, e.g. 'ntdll.dll'",
                    },
                    "timestamp": {
                        "type": "integer",
                        "description": "TimeDateStamp from the PE header",
                    },
                    "size": {
                        "type": "integer",
                        "description": "SizeOfImage from the PE header",
                    },
                },
                "required": ["name", "timestamp", "size"],
            },
        ),
        Tool(
            name="symlocate_search_path",
            description="Show the configured symbol search path and cache directory.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
    ]


@server.call_tool()  # type: ignore[untyped-decorator]
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "symlocate_find_symbol":
            result = await asyncio.to_thread(
                _handle_find_symbol,
                arguments["name"],
                arguments["guid"],
                arguments["age"],
                arguments.get("cache_only", False),
            )
        elif name == "symlocate_find_executable":
            result = await asyncio.to_thread(
                _handle_find_executable,
                arguments["name"],
                arguments["timestamp"],
                arguments["size"],
            )
        elif name == "symlocate_search_path":
            result = _handle_search_path()
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except Exception as e:
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


def _handle_find_symbol(name: str, guid: str, age: int, cache_only: bool) -> dict[str, Any]:
    """Handle symlocate_find_symbol tool."""
    identity = SymbolIdentity.parse(name, guid, age)
    with _get_context(cache_only) as context:
        path = SymbolResolver(context).find_symbol_file(identity)

    if path is None:
        return {"error": f"Symbol file not found: {identity}", "path": None}
    return {"identity": str(identity), "path": str(path)}


def _handle_find_executable(name: str, timestamp: int, size: int) -> dict[str, Any]:
    """Handle symlocate_find_executable tool."""
    identity = ExecutableIdentity(name, timestamp, size)
    with _get_context() as context:
        path = SymbolResolver(context).find_executable_file(identity)

    if path is None:
        return {"error": f"Executable not found: {identity}", "path": None}
    return {"identity": str(identity), "path": str(path)}


def _handle_search_path() -> dict[str, Any]:
    """Handle symlocate_search_path tool."""
    config = SymbolConfig.from_environment()
    search_path = config.symbol_path.with_extension_directories()
    elements = []
    for element in search_path:
        if isinstance(element, ServerElement):
            elements.append(
                {
                    "type": "http" if element.is_http else "share",
                    "remote": element.remote_root,
                    "cache": str(search_path.cache_dir_for(element)),
                }
            )
        else:
            elements.append({"type": "local", "directory": str(element.directory)})
    return {"elements": elements, "cache_dir": str(config.cache_dir)}


async def serve() -> None:
    """Run the MCP server."""
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())
