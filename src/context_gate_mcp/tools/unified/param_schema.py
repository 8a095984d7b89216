"""Declarative parameter validation for unified tool handlers.

Each handler declares a schema dict mapping field names to type
descriptors, then calls :func:`validate_payload` once before touching the
engine.

Example::

    _CHECK_SCHEMA = {
        "project_id": Str(required=True),
        "documents": List_(required=True),
        "requirements_text": Str(required=True, allow_empty=True),
        "max_tokens": Num(integer_only=True),
    }


    def _handle_check(*, config, **payload):
        err = validate_payload(payload, _CHECK_SCHEMA, tool_name="context", action="check", request_id=rid)
        if err:
            return err
        # payload values are now validated and normalised in-place
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

from context_gate_mcp.core.responses.builders import error_response
from context_gate_mcp.core.responses.types import ErrorCode, ErrorType

# ---------------------------------------------------------------------------
# Schema types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Str:
    """String parameter."""

    required: bool = False
    strip: bool = True
    allow_empty: bool = False
    max_length: Optional[int] = None
    choices: Optional[FrozenSet[str]] = None
    error_code: ErrorCode = ErrorCode.INVALID_FORMAT
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Num:
    """Numeric parameter (int or float)."""

    required: bool = False
    integer_only: bool = False
    min_val: Optional[Union[int, float]] = None
    max_val: Optional[Union[int, float]] = None
    error_code: ErrorCode = ErrorCode.INVALID_FORMAT
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Bool:
    """Boolean parameter."""

    required: bool = False
    default: Optional[bool] = None
    error_code: ErrorCode = ErrorCode.INVALID_FORMAT
    remediation: Optional[str] = None


@dataclass(frozen=True)
class List_:
    """List parameter."""

    required: bool = False
    max_items: Optional[int] = None
    error_code: ErrorCode = ErrorCode.INVALID_FORMAT
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Dict_:
    """Dict parameter."""

    required: bool = False
    error_code: ErrorCode = ErrorCode.INVALID_FORMAT
    remediation: Optional[str] = None


@dataclass(frozen=True)
class AtLeastOne:
    """Cross-field rule: at least one of *fields* must be non-None."""

    fields: Tuple[str, ...]
    error_code: ErrorCode = ErrorCode.MISSING_REQUIRED
    remediation: Optional[str] = None


FieldSchema = Union[Str, Num, Bool, List_, Dict_]


class _FieldError(Exception):
    def __init__(self, message: str, code: ErrorCode) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


# ---------------------------------------------------------------------------
# Validation engine
# ---------------------------------------------------------------------------


def validate_payload(
    payload: Dict[str, Any],
    schema: Mapping[str, FieldSchema],
    *,
    tool_name: str,
    action: str,
    request_id: Optional[str] = None,
    cross_field_rules: Optional[List[AtLeastOne]] = None,
) -> Optional[dict]:
    """Validate *payload* against *schema*, returning an error dict or ``None``.

    On success, payload values are normalised in-place (strings stripped,
    non-integer numbers coerced to float, boolean defaults applied).
    Fields are checked in schema order and the first failure is returned.
    """

    def _error(field: str, message: str, code: ErrorCode, remediation: Optional[str]) -> dict:
        return asdict(
            error_response(
                f"Invalid field '{field}' for {tool_name}.{action}: {message}",
                error_code=code,
                error_type=ErrorType.VALIDATION,
                remediation=remediation or f"Provide a valid '{field}' value",
                details={"field": field, "action": f"{tool_name}.{action}"},
                request_id=request_id,
            )
        )

    for field_name, spec in schema.items():
        value = payload.get(field_name)
        if isinstance(spec, Bool) and value is None and spec.default is not None:
            payload[field_name] = value = spec.default

        if value is None:
            if spec.required:
                return _error(
                    field_name,
                    f"Provide a non-empty {field_name} parameter",
                    ErrorCode.MISSING_REQUIRED,
                    spec.remediation,
                )
            continue

        try:
            payload[field_name] = _check(field_name, value, spec)
        except _FieldError as exc:
            return _error(field_name, exc.message, exc.code, spec.remediation)

    for rule in cross_field_rules or []:
        if all(payload.get(name) is None for name in rule.fields):
            names = ", ".join(f"'{name}'" for name in rule.fields)
            return _error(
                rule.fields[0],
                f"At least one of {names} must be provided",
                rule.error_code,
                rule.remediation,
            )

    return None


def _check(field: str, value: Any, spec: FieldSchema) -> Any:
    """Return the normalised *value* or raise ``_FieldError``."""
    if isinstance(spec, Str):
        if not isinstance(value, str):
            raise _FieldError(f"{field} must be a string", spec.error_code)
        text = value.strip() if spec.strip else value
        if not text and not spec.allow_empty:
            raise _FieldError(f"Provide a non-empty {field} parameter", ErrorCode.MISSING_REQUIRED)
        if spec.max_length is not None and len(text) > spec.max_length:
            raise _FieldError(f"{field} must be at most {spec.max_length} characters", spec.error_code)
        if spec.choices is not None and text not in spec.choices:
            raise _FieldError(f"Must be one of: {', '.join(sorted(spec.choices))}", spec.error_code)
        return text

    if isinstance(spec, Num):
        # bool is a subclass of int
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            message = "Provide an integer value" if spec.integer_only else "Provide a numeric value"
            raise _FieldError(message, spec.error_code)
        if spec.integer_only and not isinstance(value, int):
            raise _FieldError(f"{field} must be an integer", spec.error_code)
        if spec.min_val is not None and value < spec.min_val:
            raise _FieldError(f"Value must be >= {spec.min_val}", spec.error_code)
        if spec.max_val is not None and value > spec.max_val:
            raise _FieldError(f"Value must be <= {spec.max_val}", spec.error_code)
        return value if spec.integer_only else float(value)

    if isinstance(spec, Bool):
        if not isinstance(value, bool):
            raise _FieldError("Expected a boolean value", spec.error_code)
        return value

    if isinstance(spec, List_):
        if not isinstance(value, list):
            raise _FieldError(f"{field} must be a list", spec.error_code)
        if spec.max_items is not None and len(value) > spec.max_items:
            raise _FieldError(f"{field} must have at most {spec.max_items} items", spec.error_code)
        return value

    if not isinstance(value, dict):
        raise _FieldError(f"{field} must be a dict", spec.error_code)
    return value
