"""File-backed persistence for the configuration store.

The whole store state (configuration, version, history) is written as one
JSON document with an atomic temp-file + fsync + rename, under a
``filelock`` lock shared by every process pointing at the same file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from filelock import FileLock, Timeout

from context_gate_mcp.core.errors.storage import TransientPersistenceFailure

logger = logging.getLogger(__name__)

# Lock acquisition timeout (seconds)
LOCK_ACQUISITION_TIMEOUT = 5

STATE_SCHEMA_VERSION = 1


class FileConfigurationPersistence:
    """Reads and writes the configuration store state as JSON."""

    def __init__(self, path: Path, *, lock_timeout: float = LOCK_ACQUISITION_TIMEOUT) -> None:
        self.path = Path(path).expanduser()
        self.lock_timeout = lock_timeout

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(f"{self.path.name}.lock")

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored state, or None when nothing has been saved.

        Raises:
            TransientPersistenceFailure: If the file or its lock cannot be read
        """
        if not self.path.exists():
            return None
        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
        except Timeout as exc:
            raise TransientPersistenceFailure(f"Timed out locking {self.path}", path=str(self.path)) from exc
        except OSError as exc:
            raise TransientPersistenceFailure(f"Cannot read {self.path}: {exc}", path=str(self.path)) from exc
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt configuration state at %s: %s", self.path, exc)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring configuration state at %s: not a JSON object", self.path)
            return None
        return data

    def save(self, state: Dict[str, Any]) -> None:
        """Atomically replace the stored state.

        Raises:
            TransientPersistenceFailure: If the lock or the write fails
        """
        payload = {"schema_version": STATE_SCHEMA_VERSION, **state}
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                # Atomic write: temp file + fsync + rename
                fd, temp_path = tempfile.mkstemp(
                    dir=self.path.parent,
                    prefix=f".{self.path.stem}.",
                    suffix=".tmp",
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(payload, f, indent=2, default=str)
                        f.flush()
                        os.fsync(f.fileno())

                    os.replace(temp_path, self.path)
                except Exception:
                    # Clean up temp file on error
                    try:
                        os.unlink(temp_path)
                    except OSError:
                        pass
                    raise
        except Timeout as exc:
            raise TransientPersistenceFailure(f"Timed out locking {self.path}", path=str(self.path)) from exc
        except OSError as exc:
            raise TransientPersistenceFailure(f"Cannot write {self.path}: {exc}", path=str(self.path)) from exc

        logger.debug("Saved configuration state (version %s) to %s", state.get("version"), self.path)
