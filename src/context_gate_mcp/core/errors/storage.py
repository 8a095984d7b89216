"""Storage and concurrency error classes."""

from typing import Any, Dict, Optional


class TransientPersistenceFailure(Exception):
    """Raised when durable storage is temporarily unreachable.

    Persistence callers retry this with backoff; it never reaches the
    caller of a scoring or selection operation.
    """

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path

    @property
    def details(self) -> Dict[str, Any]:
        return {"path": self.path} if self.path else {}


class VersionConflictError(Exception):
    """Raised when an optimistic version check fails during a config update."""

    def __init__(self, expected: int, actual: int) -> None:
        self.expected_version = expected
        self.actual_version = actual
        super().__init__(f"Configuration version conflict: expected {expected}, current {actual}")

    @property
    def details(self) -> Dict[str, Any]:
        return {"expected_version": self.expected_version, "actual_version": self.actual_version}
