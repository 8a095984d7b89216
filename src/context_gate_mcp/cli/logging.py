"""Logging, metrics and error translation for CLI commands."""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, TypeVar

import click

from context_gate_mcp.cli.output import emit
from context_gate_mcp.core.context import generate_correlation_id, sync_request_context
from context_gate_mcp.core.errors import error_to_response
from context_gate_mcp.core.observability import get_metrics
from context_gate_mcp.core.observability.metrics import CLI_INVOCATIONS, CLI_LATENCY

F = TypeVar("F", bound=Callable[..., Any])

_metrics = get_metrics()


def get_cli_logger() -> logging.Logger:
    """Return the logger shared by CLI commands."""
    return logging.getLogger("context_gate_mcp.cli")


logger = get_cli_logger()


def cli_command(name: str) -> Callable[[F], F]:
    """Wrap a click command with a correlation ID, metrics and error handling.

    Domain errors known to ``error_to_response`` are printed as error
    envelopes (exit status 1). Anything else is logged and re-raised.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            status = "success"
            start = time.perf_counter()
            with sync_request_context(generate_correlation_id(prefix="cli")) as corr_id:
                try:
                    return func(*args, **kwargs)
                except (click.exceptions.Exit, click.ClickException):
                    raise
                except Exception as exc:
                    status = "error"
                    mapped = error_to_response(exc, request_id=corr_id)
                    if mapped is None:
                        logger.exception("Command '%s' failed: %s", name, exc)
                        raise
                    logger.info("Command '%s' rejected: %s", name, exc)
                    emit(mapped)
                except SystemExit as exc:
                    if exc.code not in (None, 0):
                        status = "error"
                    raise
                finally:
                    duration_ms = (time.perf_counter() - start) * 1000
                    _metrics.counter(CLI_INVOCATIONS, labels={"command": name, "status": status})
                    _metrics.timer(CLI_LATENCY, duration_ms, labels={"command": name})

        return wrapper  # type: ignore[return-value]

    return decorator
