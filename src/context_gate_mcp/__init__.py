"""context-gate-mcp: token-budget overflow decisions for document context."""

from context_gate_mcp.config.server import _PACKAGE_VERSION

__version__ = _PACKAGE_VERSION

__all__ = ["__version__"]
