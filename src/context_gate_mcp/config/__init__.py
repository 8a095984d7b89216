"""Configuration package for context-gate-mcp.

Sub-modules:
    parsing  – Boolean/number parsing helpers
    domains  – StorageConfig, AnalyticsConfig, EngineConfig
    server   – ServerConfig dataclass, get_config/set_config globals
    loader   – ServerConfig loading/validation mixin (_ServerConfigLoader)
"""

from context_gate_mcp.config.domains import (  # noqa: F401
    AnalyticsConfig,
    EngineConfig,
    StorageConfig,
)
from context_gate_mcp.config.parsing import _parse_bool, _try_parse_bool  # noqa: F401
from context_gate_mcp.config.server import (  # noqa: F401
    _PACKAGE_VERSION,
    ServerConfig,
    get_config,
    set_config,
)
