"""
MCP server for Symlocate.

Exposes symbol lookup to LLMs via the Model Context Protocol.

Tools:
    - symlocate_find_symbol: Find a symbol file by name, GUID and age
    - symlocate_find_executable: Find a binary by name, timestamp and image size
    - symlocate_search_path: Show the configured symbol search path

The search path and provider come from the environment
(``_NT_SYMBOL_PATH`` and ``SYMLOCATE_PROVIDER``).

Usage:
    Install: pip install symlocate
    Run: mcp-server-symlocate
"""

import asyncio

from symlocate.mcp.server import serve as _serve


def serve() -> None:
    """Entry point for the MCP server."""
    asyncio.run(_serve())


__all__ = ["serve"]
