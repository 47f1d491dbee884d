"""Classroom Scheduler Auth MCP server."""

import logging

from .main import mcp, get_context, set_context

from . import auth_tools

__all__ = ["mcp", "get_context", "set_context", "main"]


def main():
    """Entry point for the Classroom Scheduler Auth MCP server."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(show_banner=False)
