"""ServerConfig loading and validation logic.

Provides ``_ServerConfigLoader``, a mixin class whose methods are inherited by
``ServerConfig`` (defined in ``server.py``). Splitting loading/validation
logic into its own module keeps ``server.py`` focused on field definitions and
simple accessor methods.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, cast

if TYPE_CHECKING:
    from context_gate_mcp.config.server import ServerConfig

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from context_gate_mcp.config.domains import AnalyticsConfig, EngineConfig, StorageConfig
from context_gate_mcp.config.parsing import _parse_bool, _try_parse_bool, _try_parse_number

logger = logging.getLogger(__name__)

ENV_PREFIX = "CONTEXT_GATE_"


class _ServerConfigLoader:
    """Mixin providing config-loading methods for ``ServerConfig``.

    These methods are inherited by the ``ServerConfig`` dataclass defined in
    ``server.py``. At runtime ``self`` is always a ``ServerConfig`` instance.
    """

    if TYPE_CHECKING:
        log_level: str
        structured_logging: bool
        server_name: str
        server_version: str
        disabled_tools: List[str]
        storage: StorageConfig
        analytics: AnalyticsConfig
        engine: EngineConfig
        startup_warnings: List[str]

        def _add_startup_warning(self, message: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ServerConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Project TOML config (./context-gate.toml)
        3. User TOML config (~/.context-gate.toml)
        4. XDG config (~/.config/context-gate/config.toml)
        5. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            # Layered config loading (lowest to highest priority)
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "context-gate" / "config.toml"
            if xdg_config.exists():
                config._load_toml(xdg_config)
                logger.debug(f"Loaded XDG config from {xdg_config}")

            home_config = Path.home() / ".context-gate.toml"
            if home_config.exists():
                config._load_toml(home_config)
                logger.debug(f"Loaded user config from {home_config}")

            project_config = Path("context-gate.toml")
            if project_config.exists():
                config._load_toml(project_config)
                logger.debug(f"Loaded project config from {project_config}")

        config._load_env()
        config._validate_startup_configuration()

        return cast("ServerConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            # Logging settings
            if "logging" in data:
                log = data["logging"]
                if "level" in log:
                    self.log_level = str(log["level"]).upper()
                if "structured" in log:
                    self.structured_logging = _parse_bool(log["structured"])

            # Server settings
            if "server" in data:
                srv = data["server"]
                if "name" in srv:
                    self.server_name = srv["name"]
                if "version" in srv:
                    self.server_version = srv["version"]
                if "disabled_tools" in srv:
                    self.disabled_tools = list(srv["disabled_tools"])

            if "storage" in data:
                self.storage = StorageConfig.from_toml_dict(data["storage"])

            if "analytics" in data:
                self.analytics = AnalyticsConfig.from_toml_dict(data["analytics"])

            if "engine" in data:
                self.engine = EngineConfig.from_toml_dict(data["engine"])

        except Exception as e:
            logger.error(f"Error loading config file {path}: {e}")

    def _load_env(self) -> None:
        """Load configuration from environment variables."""
        # Log level
        if level := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
            self.log_level = level.upper()
        if structured := os.environ.get(f"{ENV_PREFIX}STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

        # Tool registration
        if disabled := os.environ.get(f"{ENV_PREFIX}DISABLED_TOOLS"):
            self.disabled_tools = [t.strip() for t in disabled.split(",") if t.strip()]

        # Storage settings
        if storage_dir := os.environ.get(f"{ENV_PREFIX}STORAGE_DIR"):
            self.storage.storage_dir = Path(storage_dir).expanduser()
        for env_name, attr in (
            ("PERSIST_CONFIG", "persist_config"),
            ("PERSIST_ANALYTICS", "persist_analytics"),
        ):
            if raw := os.environ.get(f"{ENV_PREFIX}{env_name}"):
                parsed = _try_parse_bool(raw)
                if parsed is None:
                    self._add_startup_warning(f"Ignoring {ENV_PREFIX}{env_name}={raw!r}: expected true/false")
                else:
                    setattr(self.storage, attr, parsed)

        # Engine settings
        if documents_file := os.environ.get(f"{ENV_PREFIX}DOCUMENTS_FILE"):
            self.engine.documents_file = Path(documents_file).expanduser()
        self._apply_numeric_env("CHARS_PER_TOKEN", self.engine, "chars_per_token", int)

        # Analytics settings
        self._apply_numeric_env("ANALYTICS_MAX_RETRIES", self.analytics, "max_retries", int)
        self._apply_numeric_env("ANALYTICS_MAX_RECORDS", self.analytics, "max_records", int)
        self._apply_numeric_env("ANALYTICS_BASE_DELAY", self.analytics, "base_delay", float)
        self._apply_numeric_env("DASHBOARD_POLL_INTERVAL", self.analytics, "poll_interval_seconds", int)

    def _apply_numeric_env(self, env_name: str, target: Any, attr: str, cast_type: Any) -> None:
        raw = os.environ.get(f"{ENV_PREFIX}{env_name}")
        if not raw:
            return
        value = _try_parse_number(raw, cast_type)
        if value is None:
            self._add_startup_warning(f"Ignoring {ENV_PREFIX}{env_name}={raw!r}: expected a number")
            return
        setattr(target, attr, value)

    def _validate_startup_configuration(self) -> None:
        """Replace out-of-range values with defaults, recording a warning for each."""
        engine_defaults = EngineConfig()
        analytics_defaults = AnalyticsConfig()

        if self.engine.chars_per_token <= 0:
            self._add_startup_warning(
                f"engine.chars_per_token must be positive (got {self.engine.chars_per_token}); "
                f"using {engine_defaults.chars_per_token}"
            )
            self.engine.chars_per_token = engine_defaults.chars_per_token

        if self.engine.history_limit <= 0:
            self._add_startup_warning(
                f"engine.history_limit must be positive (got {self.engine.history_limit}); "
                f"using {engine_defaults.history_limit}"
            )
            self.engine.history_limit = engine_defaults.history_limit

        for attr in ("max_records", "queue_size", "poll_interval_seconds"):
            if getattr(self.analytics, attr) <= 0:
                default = getattr(analytics_defaults, attr)
                self._add_startup_warning(
                    f"analytics.{attr} must be positive (got {getattr(self.analytics, attr)}); using {default}"
                )
                setattr(self.analytics, attr, default)

        if self.analytics.max_retries < 0:
            self._add_startup_warning(
                f"analytics.max_retries cannot be negative (got {self.analytics.max_retries}); "
                f"using {analytics_defaults.max_retries}"
            )
            self.analytics.max_retries = analytics_defaults.max_retries

        for warning in self.startup_warnings:
            logger.warning(warning)
