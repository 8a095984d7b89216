"""Shared fixtures for unified tool dispatch tests."""

from unittest.mock import MagicMock

import pytest

from context_gate_mcp.core.engine import ContextOverflowEngine, set_engine


@pytest.fixture
def mock_config():
    """Create a mock ServerConfig."""
    config = MagicMock()
    return config


@pytest.fixture
def engine():
    """Install an in-memory engine as the process-wide engine."""
    eng = ContextOverflowEngine()
    set_engine(eng)
    yield eng
    set_engine(None)
    eng.close()


@pytest.fixture
def doc():
    """Factory for raw document mappings."""

    def _make(doc_id, *, chars=400, doc_type="reference", **metadata):
        return {"id": doc_id, "type": doc_type, "content": "x" * chars, "metadata": metadata}

    return _make
