"""Request context propagation.

Holds the correlation ID for the current request in a ``ContextVar`` so
logs, audit entries and response envelopes can share one identifier
without threading it through every call.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ulid import ULID

# Context variables for request-scoped state
_correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Return the current correlation ID, or an empty string when unset."""
    return _correlation_id.get()


def generate_correlation_id(prefix: str = "req") -> str:
    """Generate a new ULID-based correlation ID (``<prefix>_<ulid>``)."""
    return f"{prefix}_{ULID()}"


@contextmanager
def sync_request_context(correlation_id: Optional[str] = None) -> Iterator[str]:
    """Bind *correlation_id* (or a fresh one) for the duration of the block."""
    value = correlation_id or generate_correlation_id()
    token = _correlation_id.set(value)
    try:
        yield value
    finally:
        _correlation_id.reset(token)
