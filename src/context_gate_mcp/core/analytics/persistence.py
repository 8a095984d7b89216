"""Append-only JSONL storage for analytics records.

Each record kind has its own ledger file under the storage directory:

    {storage_dir}/overflow_events.jsonl
    {storage_dir}/selection_outcomes.jsonl
    {storage_dir}/context_builds.jsonl

Appends run under a ``filelock`` lock on ``{storage_dir}/.analytics.lock``
so several server processes can share one directory.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from filelock import FileLock, Timeout

from context_gate_mcp.core.errors.storage import TransientPersistenceFailure

logger = logging.getLogger(__name__)

LOCK_TIMEOUT = 5

KIND_OVERFLOW = "overflow_events"
KIND_SELECTION = "selection_outcomes"
KIND_BUILD = "context_builds"

RECORD_KINDS: Tuple[str, ...] = (KIND_OVERFLOW, KIND_SELECTION, KIND_BUILD)


class JsonlAnalyticsPersistence:
    """Writes analytics records as one JSON object per line."""

    def __init__(self, storage_dir: Path, *, lock_timeout: float = LOCK_TIMEOUT) -> None:
        self.storage_dir = Path(storage_dir).expanduser()
        self.lock_path = self.storage_dir / ".analytics.lock"
        self.lock_timeout = lock_timeout

    def path_for(self, kind: str) -> Path:
        if kind not in RECORD_KINDS:
            raise ValueError(f"Unknown analytics record kind: {kind}")
        return self.storage_dir / f"{kind}.jsonl"

    def append(self, kind: str, record: Dict[str, Any]) -> None:
        """Append one record to the ledger for *kind*.

        Raises:
            TransientPersistenceFailure: If the lock or the write fails
        """
        path = self.path_for(kind)
        line = json.dumps(record, sort_keys=True, default=str)
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except Timeout as exc:
            raise TransientPersistenceFailure(f"Timed out locking {self.lock_path}", path=str(path)) from exc
        except OSError as exc:
            raise TransientPersistenceFailure(f"Cannot append to {path}: {exc}", path=str(path)) from exc

    def read(self, kind: str) -> List[Dict[str, Any]]:
        """Return every readable record for *kind*, oldest first.

        Corrupt lines are logged and skipped.

        Raises:
            TransientPersistenceFailure: If the ledger cannot be read
        """
        path = self.path_for(kind)
        if not path.exists():
            return []
        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                return list(self._iter_records(path))
        except Timeout as exc:
            raise TransientPersistenceFailure(f"Timed out locking {self.lock_path}", path=str(path)) from exc
        except OSError as exc:
            raise TransientPersistenceFailure(f"Cannot read {path}: {exc}", path=str(path)) from exc

    @staticmethod
    def _iter_records(path: Path) -> Iterator[Dict[str, Any]]:
        with open(path, encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as exc:
                    logger.warning("Corrupted entry at line %d in %s: %s", line_num, path, exc)
                    continue
                if isinstance(data, dict):
                    yield data
                else:
                    logger.warning("Ignoring non-object entry at line %d in %s", line_num, path)
