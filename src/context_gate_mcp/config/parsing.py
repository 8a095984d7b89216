"""Parsing helpers for configuration values read from TOML and env vars."""

import logging
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

N = TypeVar("N", int, float)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def _try_parse_number(value: Any, cast: Callable[[Any], N]) -> Optional[N]:
    """Return *value* converted with *cast*, or None when it does not parse."""
    if isinstance(value, bool):
        return None
    try:
        return cast(value)
    except (TypeError, ValueError):
        return None
