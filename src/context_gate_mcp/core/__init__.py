"""Core decision engine for context-gate-mcp."""
