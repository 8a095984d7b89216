"""Engine configuration commands."""

import json
from typing import Optional

import click

from context_gate_mcp.cli.logging import cli_command, get_cli_logger
from context_gate_mcp.cli.output import emit_error, emit_success
from context_gate_mcp.cli.registry import get_context

logger = get_cli_logger()


@click.group("config")
def config_group() -> None:
    """Show and change scoring weights, strictness and token allocation."""
    pass


@config_group.command("show")
@click.pass_context
@cli_command("show")
def show_cmd(ctx: click.Context) -> None:
    """Show the active configuration and the derived context budgets."""
    emit_success(get_context(ctx).engine.get_config())


@config_group.command("update")
@click.argument("patch")
@click.option("--expected-version", type=int, help="Fail if the configuration version has moved on.")
@click.option("--actor", default="cli", show_default=True, help="Name recorded in the change history.")
@click.pass_context
@cli_command("update")
def update_cmd(
    ctx: click.Context,
    patch: str,
    expected_version: Optional[int],
    actor: str,
) -> None:
    """Apply PATCH, a JSON object of configuration fields.

    The patch is validated as a whole; if any field is invalid nothing
    changes.

    Examples:
        context-gate config update '{"ragStrictness": 70}'
        context-gate config update '{"metadataWeights": {"keyword_relevance": 9}}' --expected-version 3
    """
    try:
        changes = json.loads(patch)
    except json.JSONDecodeError as exc:
        emit_error(
            f"PATCH is not valid JSON: {exc}",
            code="INVALID_FORMAT",
            error_type="validation",
            remediation='Pass a JSON object, e.g. \'{"ragStrictness": 70}\'',
        )
    result = get_context(ctx).engine.update_config(changes, actor=actor, expected_version=expected_version)
    logger.info("Configuration updated to version %s by %s", result["version"], actor)
    emit_success(result)


@config_group.command("reset")
@click.option("--expected-version", type=int, help="Fail if the configuration version has moved on.")
@click.option("--actor", default="cli", show_default=True, help="Name recorded in the change history.")
@click.pass_context
@cli_command("reset")
def reset_cmd(ctx: click.Context, expected_version: Optional[int], actor: str) -> None:
    """Restore the default configuration."""
    emit_success(get_context(ctx).engine.reset_config(actor=actor, expected_version=expected_version))


@config_group.command("history")
@click.option("--limit", type=click.IntRange(min=1), default=20, show_default=True, help="Maximum entries.")
@click.pass_context
@cli_command("history")
def history_cmd(ctx: click.Context, limit: int) -> None:
    """List accepted configuration changes, most recent first."""
    emit_success(get_context(ctx).engine.get_config_history(limit))
