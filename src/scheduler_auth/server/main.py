"""MCP Server initialization and shared auth context."""

from typing import Optional

from fastmcp import FastMCP

from ..core.context import AuthContext

# Initialize MCP Server
mcp = FastMCP("Classroom Scheduler Auth")

# Process-wide context, created on first use
_context: Optional[AuthContext] = None


async def get_context() -> AuthContext:
    """Get or create the started AuthContext for this server process.

    Returns:
        The AuthContext, hydrated from the local state file.
    """
    global _context
    if _context is None:
        _context = AuthContext.create()
    if not _context.started:
        await _context.start()
    return _context


def set_context(context: Optional[AuthContext]) -> None:
    """Replace the server's AuthContext (None forgets it)."""
    global _context
    _context = context
