"""Shared fixtures for core engine tests."""

from datetime import datetime, timezone

import pytest

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    """Fixed reference time for recency scoring."""
    return NOW


@pytest.fixture
def make_doc():
    """Factory for raw document mappings as callers send them."""

    def _make(doc_id, *, chars=400, doc_type="reference", **metadata):
        return {
            "id": doc_id,
            "type": doc_type,
            "content": "x" * chars,
            "metadata": metadata,
        }

    return _make
