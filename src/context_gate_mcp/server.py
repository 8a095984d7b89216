"""MCP server entry point.

Builds a FastMCP server with the unified tools registered and runs it over
stdio.
"""

from __future__ import annotations

import logging
from typing import Optional

from mcp.server.fastmcp import FastMCP

from context_gate_mcp.config import ServerConfig, get_config
from context_gate_mcp.core.engine import get_engine
from context_gate_mcp.tools.unified import register_unified_tools

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Token-budget decisions for document context. Use context(action='check') before "
    "building a prompt; when it overflows, keep the recommended documents or call "
    "context(action='recommend') with custom weights, then report the final set with "
    "context(action='apply')."
)


def create_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """Create the FastMCP server with all enabled tools registered."""
    config = config or get_config()
    mcp = FastMCP(config.server_name, instructions=SERVER_INSTRUCTIONS)
    register_unified_tools(mcp, config)
    logger.info("Created %s %s", config.server_name, config.server_version)
    return mcp


def main() -> None:
    """Run the MCP server over stdio."""
    config = get_config()
    config.setup_logging()
    mcp = create_server(config)
    engine = get_engine(config)
    try:
        mcp.run()
    finally:
        engine.close()


if __name__ == "__main__":
    main()
