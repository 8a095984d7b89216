"""Tests for MCP server construction and unified tool registration."""

from __future__ import annotations

import pytest

from context_gate_mcp.config import ServerConfig, StorageConfig
from context_gate_mcp.server import SERVER_INSTRUCTIONS, create_server


@pytest.fixture
def server_config(tmp_path):
    return ServerConfig(storage=StorageConfig(storage_dir=tmp_path, persist_config=False, persist_analytics=False))


def _tool_names(mcp):
    return set(mcp._tool_manager._tools)


class TestCreateServer:
    def test_registers_unified_tools(self, server_config):
        mcp = create_server(server_config)
        assert _tool_names(mcp) == {"context", "context-config", "analytics"}

    def test_disabled_tools_are_skipped(self, server_config):
        server_config.disabled_tools = ["analytics"]
        mcp = create_server(server_config)
        assert _tool_names(mcp) == {"context", "context-config"}

    def test_server_metadata(self, server_config):
        mcp = create_server(server_config)
        assert mcp.name == "context-gate-mcp"
        assert mcp.instructions == SERVER_INSTRUCTIONS

    def test_context_tool_parameters(self, server_config):
        mcp = create_server(server_config)
        params = mcp._tool_manager._tools["context"].parameters["properties"]
        assert {"action", "project_id", "documents", "requirements_text", "max_tokens", "weights"} <= set(params)
