"""Overflow analytics commands."""

from typing import Optional

import click

from context_gate_mcp.cli.logging import cli_command, get_cli_logger
from context_gate_mcp.cli.output import emit_success
from context_gate_mcp.cli.registry import get_context

logger = get_cli_logger()


@click.group("analytics")
def analytics_group() -> None:
    """Inspect recorded overflow events and context builds."""
    pass


@analytics_group.command("stats")
@click.option("--project-id", "-p", help="Limit to one project.")
@click.option("--hours", type=click.FloatRange(min=0, min_open=True), help="Only events from the last N hours.")
@click.pass_context
@cli_command("stats")
def stats_cmd(ctx: click.Context, project_id: Optional[str], hours: Optional[float]) -> None:
    """Overflow statistics: counts, average overflow, resolution time and override rate."""
    emit_success(get_context(ctx).engine.get_overflow_stats(project_id, hours))


@analytics_group.command("dashboard")
@click.option("--project-id", "-p", help="Limit to one project.")
@click.option(
    "--hours",
    type=click.FloatRange(min=0, min_open=True),
    default=24,
    show_default=True,
    help="Time window in hours.",
)
@click.pass_context
@cli_command("dashboard")
def dashboard_cmd(ctx: click.Context, project_id: Optional[str], hours: float) -> None:
    """System overview snapshot for dashboards."""
    emit_success(get_context(ctx).engine.get_dashboard(hours, project_id))


@analytics_group.command("trends")
@click.option("--project-id", "-p", help="Limit to one project.")
@click.option(
    "--hours",
    type=click.FloatRange(min=0, min_open=True),
    default=24,
    show_default=True,
    help="Time window in hours.",
)
@click.pass_context
@cli_command("trends")
def trends_cmd(ctx: click.Context, project_id: Optional[str], hours: float) -> None:
    """Hourly context-build performance with duration and volume trends."""
    emit_success(get_context(ctx).engine.get_performance_trends(project_id, hours))


@analytics_group.command("realtime")
@click.option("--project-id", "-p", help="Limit to one project.")
@click.pass_context
@cli_command("realtime")
def realtime_cmd(ctx: click.Context, project_id: Optional[str]) -> None:
    """Activity over the last five minutes."""
    emit_success(get_context(ctx).engine.get_realtime_metrics(project_id))


@analytics_group.command("export")
@click.option("--project-id", "-p", help="Limit to one project.")
@click.option(
    "--hours",
    type=click.FloatRange(min=0, min_open=True),
    default=24,
    show_default=True,
    help="Time window in hours.",
)
@click.option("--raw", "include_raw_data", is_flag=True, help="Include every recorded event in the window.")
@click.pass_context
@cli_command("export")
def export_cmd(ctx: click.Context, project_id: Optional[str], hours: float, include_raw_data: bool) -> None:
    """Export dashboard analytics as one JSON document."""
    emit_success(get_context(ctx).engine.export_analytics(hours, project_id, include_raw_data))
