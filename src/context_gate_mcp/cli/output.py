"""JSON envelope output for CLI commands."""

from __future__ import annotations

import json
import sys
from dataclasses import asdict
from typing import Any, Dict, Mapping, NoReturn, Optional, Sequence

import click

from context_gate_mcp.core.context import get_correlation_id
from context_gate_mcp.core.documents import skipped_warnings
from context_gate_mcp.core.responses import error_response, success_response


def _echo(payload: Mapping[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def emit(payload: Mapping[str, Any]) -> None:
    """Print a pre-built envelope, exiting 1 when it reports a failure."""
    _echo(payload)
    if not payload.get("success", False):
        sys.exit(1)


def emit_success(
    data: Mapping[str, Any],
    *,
    warnings: Optional[Sequence[str]] = None,
    warning_details: Optional[Sequence[Mapping[str, Any]]] = None,
) -> None:
    """Print a success envelope."""
    response = success_response(
        data=data,
        warnings=warnings or None,
        warning_details=warning_details or None,
        request_id=get_correlation_id() or None,
    )
    _echo(asdict(response))


def emit_error(
    message: str,
    *,
    code: str = "INTERNAL_ERROR",
    error_type: str = "internal",
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Print an error envelope and exit with status 1."""
    response = error_response(
        message,
        error_code=code,
        error_type=error_type,
        remediation=remediation,
        details=details,
        request_id=get_correlation_id() or None,
    )
    _echo(asdict(response))
    sys.exit(1)


def emit_engine_result(result: Mapping[str, Any]) -> None:
    """Print an engine result, surfacing skipped documents as warnings."""
    data: Dict[str, Any] = dict(result)
    warnings, warning_details = skipped_warnings(data.get("skipped") or [])
    emit_success(data, warnings=warnings, warning_details=warning_details)
