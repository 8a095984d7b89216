"""Versioned configuration store.

Readers get the current immutable ``ContextConfiguration`` snapshot
without locking. Writers are serialized by a lock: a patch is merged onto
the current snapshot, the result is validated as a whole, and only a
fully valid configuration replaces the snapshot. An invalid patch leaves
the prior configuration untouched.

Saving to disk happens after the store lock is released, so readers never
wait on persistence retries. Saves are ordered by version: a slow save of
an older version never overwrites a newer one.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from context_gate_mcp.core.errors.storage import (
    TransientPersistenceFailure,
    VersionConflictError,
)
from context_gate_mcp.core.errors.validation import ConfigurationError
from context_gate_mcp.core.observability import get_audit_logger, get_metrics
from context_gate_mcp.core.observability.metrics import CONFIG_PERSIST, CONFIG_UPDATE
from context_gate_mcp.core.resilience import retry_with_backoff

from .models import ConfigurationChange, ContextConfiguration, canonicalize_patch
from .persistence import FileConfigurationPersistence

logger = logging.getLogger(__name__)

# Most recent history entries kept in memory and on disk
DEFAULT_HISTORY_LIMIT = 200

INITIAL_VERSION = 1


def _deep_merge(base: Mapping[str, Any], patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge *patch* into *base* key-wise, recursing into nested mappings."""
    merged: Dict[str, Any] = dict(base)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _error_entries(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    entries = []
    for error in exc.errors(include_url=False):
        entries.append(
            {
                "loc": ".".join(str(part) for part in error.get("loc", ())),
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            }
        )
    return entries


def _diff(old: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    return {key: {"old": old.get(key), "new": new[key]} for key in new if old.get(key) != new[key]}


class ConfigurationStore:
    """Holds the active configuration, its version and its change history.

    Args:
        initial: Starting configuration (defaults when None)
        persistence: Optional file persistence; when given, stored state is
            loaded at construction and every change is saved
        history_limit: Most recent history entries to keep
        persist_retries: Retry attempts for transient persistence failures
    """

    def __init__(
        self,
        initial: Optional[ContextConfiguration] = None,
        *,
        persistence: Optional[FileConfigurationPersistence] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        persist_retries: int = 3,
    ) -> None:
        self._lock = threading.Lock()
        self._config = initial or ContextConfiguration()
        self._version = INITIAL_VERSION
        self._history: List[ConfigurationChange] = []
        self._history_limit = history_limit
        self._persistence = persistence
        self._persist_retries = persist_retries
        self._persist_lock = threading.Lock()
        self._saved_version = 0
        self._metrics = get_metrics()

        if persistence is not None:
            self._restore()

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self) -> ContextConfiguration:
        """Return the current configuration snapshot."""
        return self._config

    @property
    def version(self) -> int:
        return self._version

    def snapshot(self) -> Tuple[ContextConfiguration, int]:
        """Return the current configuration and its version together."""
        with self._lock:
            return self._config, self._version

    def history(self, limit: Optional[int] = None) -> List[ConfigurationChange]:
        """Return history entries, most recent first."""
        with self._lock:
            entries = list(reversed(self._history))
        return entries[:limit] if limit is not None else entries

    # =========================================================================
    # Writes
    # =========================================================================

    def update(
        self,
        patch: Mapping[str, Any],
        *,
        actor: str = "system",
        expected_version: Optional[int] = None,
    ) -> ContextConfiguration:
        """Apply *patch* atomically and return the new configuration.

        Mapping-valued fields (weights, allocation, model categories) are
        merged key-wise; other fields are replaced.

        Raises:
            ConfigurationError: If the patch is malformed or the merged
                configuration is invalid; nothing changes
            VersionConflictError: If expected_version is not current
        """
        if not isinstance(patch, Mapping):
            raise ConfigurationError(
                "Configuration patch must be a mapping",
                errors=[{"loc": "", "msg": "expected an object", "type": "type_error"}],
            )
        canonical, unknown = canonicalize_patch(patch)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration field(s): {', '.join(sorted(unknown))}",
                errors=[{"loc": key, "msg": "unknown field", "type": "extra_forbidden"} for key in sorted(unknown)],
            )

        with self._lock:
            self._check_version(expected_version)
            current = self._config.to_dict()
            merged = _deep_merge(current, canonical)
            try:
                candidate = ContextConfiguration.model_validate(merged)
            except PydanticValidationError as exc:
                errors = _error_entries(exc)
                self._metrics.counter(CONFIG_UPDATE, labels={"status": "rejected"})
                logger.warning("Rejected configuration update from %s: %s", actor, errors)
                raise ConfigurationError(
                    f"Invalid configuration: {errors[0]['loc'] or 'root'}: {errors[0]['msg']}",
                    errors=errors,
                ) from exc

            changes = _diff(current, candidate.to_dict())
            if not changes:
                return self._config
            state = self._commit(candidate, "update", actor, changes)

        logger.info("Configuration updated to version %d by %s (%s)", state["version"], actor, ", ".join(changes))
        self._persist(state)
        return candidate

    def reset(self, *, actor: str = "system", expected_version: Optional[int] = None) -> ContextConfiguration:
        """Restore default configuration, recording the reset in history.

        Raises:
            VersionConflictError: If expected_version is not current
        """
        defaults = ContextConfiguration()
        with self._lock:
            self._check_version(expected_version)
            changes = _diff(self._config.to_dict(), defaults.to_dict())
            state = self._commit(defaults, "reset", actor, changes)

        logger.info("Configuration reset to defaults (version %d) by %s", state["version"], actor)
        self._persist(state)
        return defaults

    # =========================================================================
    # Internals (the write helpers run with the lock held)
    # =========================================================================

    def _check_version(self, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != self._version:
            self._metrics.counter(CONFIG_UPDATE, labels={"status": "conflict"})
            raise VersionConflictError(expected_version, self._version)

    def _commit(
        self,
        config: ContextConfiguration,
        action: str,
        actor: str,
        changes: Dict[str, Dict[str, Any]],
    ) -> Dict[str, Any]:
        self._version += 1
        self._config = config
        self._history.append(
            ConfigurationChange(version=self._version, action=action, actor=actor, changes=changes)
        )
        if len(self._history) > self._history_limit:
            del self._history[: len(self._history) - self._history_limit]

        self._metrics.counter(CONFIG_UPDATE, labels={"status": "success", "action": action})
        get_audit_logger().config_change(
            action=action,
            actor=actor,
            version=self._version,
            fields=sorted(changes),
        )
        return self._state()

    def _state(self) -> Dict[str, Any]:
        return {
            "version": self._version,
            "configuration": self._config.to_dict(),
            "history": [entry.to_dict() for entry in self._history],
        }

    def _persist(self, state: Dict[str, Any]) -> None:
        """Save *state* outside the store lock, never replacing a newer saved version."""
        if self._persistence is None:
            return
        persistence = self._persistence
        version = state["version"]
        with self._persist_lock:
            if version <= self._saved_version:
                logger.debug("Skipping stale save of configuration version %d", version)
                return
            try:
                retry_with_backoff(
                    lambda: persistence.save(state),
                    max_retries=self._persist_retries,
                    retryable_exceptions=[TransientPersistenceFailure],
                )
            except TransientPersistenceFailure as exc:
                # The in-memory snapshot stays authoritative
                self._metrics.counter(CONFIG_PERSIST, labels={"status": "error"})
                logger.error("Failed to persist configuration version %d: %s", version, exc)
                return
            self._saved_version = version

    def _restore(self) -> None:
        if self._persistence is None:
            return
        try:
            state = self._persistence.load()
        except TransientPersistenceFailure as exc:
            logger.error("Could not load stored configuration, using defaults: %s", exc)
            return
        if not state:
            return

        try:
            config = ContextConfiguration.model_validate(state.get("configuration", {}))
        except PydanticValidationError as exc:
            logger.warning("Stored configuration is invalid, using defaults: %s", _error_entries(exc))
            return

        self._config = config
        self._version = int(state.get("version", INITIAL_VERSION))
        history = []
        for entry in state.get("history", []):
            try:
                history.append(ConfigurationChange.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Dropping unreadable configuration history entry: %s", exc)
        self._history = history[-self._history_limit :]
        self._saved_version = self._version
        logger.info("Loaded configuration version %d from %s", self._version, self._persistence.path)
