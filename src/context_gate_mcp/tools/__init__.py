"""MCP tool surfaces for context-gate-mcp."""
