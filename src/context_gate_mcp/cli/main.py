"""Entry point for the ``context-gate`` command."""

import logging
from pathlib import Path
from typing import Optional

import click

from context_gate_mcp.cli.commands import analytics_group, config_group, context_group
from context_gate_mcp.cli.registry import CLIContext
from context_gate_mcp.config import _PACKAGE_VERSION, ServerConfig

# stdout carries the JSON envelope
logging.getLogger("context_gate_mcp").addHandler(logging.NullHandler())


@click.group()
@click.version_option(_PACKAGE_VERSION, prog_name="context-gate")
@click.option(
    "--config-file",
    type=click.Path(exists=True, dir_okay=False),
    envvar="CONTEXT_GATE_CONFIG_FILE",
    help="TOML configuration file.",
)
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for persisted configuration and analytics.",
)
@click.option(
    "--documents-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON document store used to resolve plain document ids.",
)
@click.option("--no-persist", is_flag=True, help="Keep configuration and analytics in memory only.")
@click.option("--verbose", "-v", is_flag=True, help="Log to stderr.")
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[str],
    storage_dir: Optional[Path],
    documents_file: Optional[Path],
    no_persist: bool,
    verbose: bool,
) -> None:
    """Decide which documents fit a model's context window."""
    config = ServerConfig.from_env(config_file)
    if storage_dir is not None:
        config.storage.storage_dir = storage_dir
    if documents_file is not None:
        config.engine.documents_file = documents_file
    if no_persist:
        config.storage.persist_config = False
        config.storage.persist_analytics = False
    if verbose:
        config.structured_logging = False
        config.setup_logging()

    cli_ctx = CLIContext(config=config)
    ctx.obj = cli_ctx
    ctx.call_on_close(cli_ctx.close)


cli.add_command(context_group)
cli.add_command(config_group)
cli.add_command(analytics_group)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
