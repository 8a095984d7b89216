"""Request and configuration validation error classes."""

from typing import Any, Dict, List, Mapping, Optional, Sequence


class ValidationError(ValueError):
    """Raised when a top-level request is malformed.

    Wrong types, missing required fields, or out-of-range values in the
    request itself. Rejected before any processing happens.

    Attributes:
        field: Name of the offending request field, when known.
        details: Extra machine-readable context for the caller.
    """

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.field = field
        self.details: Dict[str, Any] = dict(details or {})
        if field is not None:
            self.details.setdefault("field", field)


class ConfigurationError(ValueError):
    """Raised when a configuration update fails validation.

    The prior configuration stays in effect when this is raised.

    Attributes:
        errors: One entry per violated constraint (``loc``, ``msg``, ``type``).
    """

    def __init__(self, message: str, errors: Optional[Sequence[Mapping[str, Any]]] = None) -> None:
        super().__init__(message)
        self.errors: List[Dict[str, Any]] = [dict(e) for e in (errors or [])]

    @property
    def details(self) -> Dict[str, Any]:
        return {"errors": self.errors}
