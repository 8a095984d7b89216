"""Domain-specific configuration dataclasses.

Small, focused configuration classes for storage, analytics recording and
the decision engine, each with a ``from_toml_dict`` constructor for its
TOML section.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from context_gate_mcp.config.parsing import _parse_bool

DEFAULT_STORAGE_DIR = "~/.context-gate"


@dataclass
class StorageConfig:
    """Where configuration state and analytics ledgers are kept.

    Attributes:
        storage_dir: Root directory for persisted state
        persist_config: Save configuration changes to storage_dir/configuration.json
        persist_analytics: Append analytics records under storage_dir/analytics/
    """

    storage_dir: Path = field(default_factory=lambda: Path(DEFAULT_STORAGE_DIR).expanduser())
    persist_config: bool = True
    persist_analytics: bool = True

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        """Create config from TOML dict (typically [storage] section)."""
        return cls(
            storage_dir=Path(str(data.get("storage_dir", DEFAULT_STORAGE_DIR))).expanduser(),
            persist_config=_parse_bool(data.get("persist_config", True)),
            persist_analytics=_parse_bool(data.get("persist_analytics", True)),
        )


@dataclass
class AnalyticsConfig:
    """Analytics recorder settings.

    Attributes:
        max_records: Most recent records kept in memory per kind
        queue_size: Capacity of the background persistence queue
        max_retries: Retries for a transient persistence failure
        base_delay: First retry delay (seconds)
        max_delay: Retry delay cap (seconds)
        poll_interval_seconds: Dashboard refresh interval advertised to clients
    """

    max_records: int = 1000
    queue_size: int = 1000
    max_retries: int = 3
    base_delay: float = 0.1
    max_delay: float = 5.0
    poll_interval_seconds: int = 30

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "AnalyticsConfig":
        """Create config from TOML dict (typically [analytics] section)."""
        return cls(
            max_records=int(data.get("max_records", 1000)),
            queue_size=int(data.get("queue_size", 1000)),
            max_retries=int(data.get("max_retries", 3)),
            base_delay=float(data.get("base_delay", 0.1)),
            max_delay=float(data.get("max_delay", 5.0)),
            poll_interval_seconds=int(data.get("poll_interval_seconds", 30)),
        )


@dataclass
class EngineConfig:
    """Decision engine settings.

    Attributes:
        chars_per_token: Characters per token for estimation
        documents_file: JSON file backing the document provider, so
            requests can name documents by id
        history_limit: Configuration history entries to keep
    """

    chars_per_token: int = 4
    documents_file: Optional[Path] = None
    history_limit: int = 200

    @classmethod
    def from_toml_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create config from TOML dict (typically [engine] section)."""
        documents_file = data.get("documents_file")
        return cls(
            chars_per_token=int(data.get("chars_per_token", 4)),
            documents_file=Path(str(documents_file)).expanduser() if documents_file else None,
            history_limit=int(data.get("history_limit", 200)),
        )
