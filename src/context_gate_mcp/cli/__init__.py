"""Command-line interface for context-gate.

Every command prints a single JSON envelope (the same shape the MCP tools
return) so the CLI can be scripted and piped into other tools.
"""
