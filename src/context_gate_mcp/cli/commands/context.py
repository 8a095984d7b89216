"""Context budget commands: check, recommend, apply and estimate.

DOCUMENTS_FILE is a JSON file holding a list of document objects (or an
object with a ``documents`` list), the same shape the ``context`` MCP tool
accepts.
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import click

from context_gate_mcp.cli.logging import cli_command, get_cli_logger
from context_gate_mcp.cli.output import emit_engine_result, emit_error
from context_gate_mcp.cli.registry import get_context
from context_gate_mcp.core.document_provider import load_documents_file

logger = get_cli_logger()

_DOCUMENTS_ARGUMENT = click.argument(
    "documents_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)


def _requirements_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option(
        "--requirements-file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        help="Read the requirements text from a file.",
    )(func)
    func = click.option("--requirements", "-r", help="Requirements text the documents are scored against.")(func)
    return func


def _budget_options(func: Callable[..., Any]) -> Callable[..., Any]:
    func = click.option("--model-category", "-m", help="Model category whose budget applies (e.g. medium).")(func)
    func = click.option("--max-tokens", type=int, help="Explicit token budget (overrides --model-category).")(func)
    return func


def _load_documents(path: Path) -> List[Any]:
    try:
        return load_documents_file(path)
    except (OSError, ValueError) as exc:
        emit_error(
            f"Could not read documents from {path}: {exc}",
            code="INVALID_FORMAT",
            error_type="validation",
            remediation="Pass a JSON file containing a list of documents",
            details={"path": str(path)},
        )


def _read_requirements(requirements: Optional[str], requirements_file: Optional[Path]) -> str:
    if requirements is not None and requirements_file is not None:
        emit_error(
            "Use either --requirements or --requirements-file, not both",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Drop one of the two options",
        )
    if requirements_file is not None:
        try:
            return requirements_file.read_text(encoding="utf-8")
        except OSError as exc:
            emit_error(
                f"Could not read requirements from {requirements_file}: {exc}",
                code="INVALID_FORMAT",
                error_type="validation",
                details={"path": str(requirements_file)},
            )
    if requirements is None:
        emit_error(
            "Requirements text is required",
            code="MISSING_REQUIRED",
            error_type="validation",
            remediation="Pass --requirements TEXT or --requirements-file PATH",
        )
    return requirements


def _parse_weights(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    if raw is None:
        return None
    try:
        weights = json.loads(raw)
    except json.JSONDecodeError as exc:
        emit_error(
            f"--weights is not valid JSON: {exc}",
            code="INVALID_FORMAT",
            error_type="validation",
            remediation='Pass weights as a JSON object, e.g. \'{"keyword_relevance": 8}\'',
        )
    if not isinstance(weights, dict):
        emit_error(
            "--weights must be a JSON object",
            code="INVALID_FORMAT",
            error_type="validation",
            remediation='Pass weights as a JSON object, e.g. \'{"keyword_relevance": 8}\'',
        )
    return weights


@click.group("context")
def context_group() -> None:
    """Check documents against a model's context budget."""
    pass


@context_group.command("check")
@_DOCUMENTS_ARGUMENT
@click.option("--project-id", "-p", required=True, help="Project the selection belongs to.")
@_requirements_options
@_budget_options
@click.pass_context
@cli_command("check")
def check_cmd(
    ctx: click.Context,
    documents_file: Path,
    project_id: str,
    requirements: Optional[str],
    requirements_file: Optional[Path],
    max_tokens: Optional[int],
    model_category: Optional[str],
) -> None:
    """Check whether the documents in DOCUMENTS_FILE fit the budget.

    On overflow the result carries a recommended subset and the overflow
    is recorded for analytics.

    Examples:
        context-gate context check docs.json -p proj-1 -r "cloud migration" --max-tokens 8000
    """
    engine = get_context(ctx).engine
    result = engine.check_overflow(
        project_id,
        _load_documents(documents_file),
        _read_requirements(requirements, requirements_file),
        max_tokens=max_tokens,
        model_category=model_category,
    )
    emit_engine_result(result)


@context_group.command("recommend")
@_DOCUMENTS_ARGUMENT
@_requirements_options
@_budget_options
@click.option("--weights", help="JSON object of factor weights in [0, 10], merged over the configured ones.")
@click.option("--strict", is_flag=True, help="Drop documents below the configured RAG strictness threshold.")
@click.pass_context
@cli_command("recommend")
def recommend_cmd(
    ctx: click.Context,
    documents_file: Path,
    requirements: Optional[str],
    requirements_file: Optional[Path],
    max_tokens: Optional[int],
    model_category: Optional[str],
    weights: Optional[str],
    strict: bool,
) -> None:
    """Rank the documents in DOCUMENTS_FILE and select what fits.

    Examples:
        context-gate context recommend docs.json -r "data pipeline" -m small
        context-gate context recommend docs.json -r "..." --weights '{"keyword_relevance": 9}' --strict
    """
    engine = get_context(ctx).engine
    result = engine.get_recommendations(
        _load_documents(documents_file),
        _read_requirements(requirements, requirements_file),
        max_tokens=max_tokens,
        weights=_parse_weights(weights),
        apply_strictness=strict,
        model_category=model_category,
    )
    emit_engine_result(result)


@context_group.command("apply")
@_DOCUMENTS_ARGUMENT
@click.option("--project-id", "-p", required=True, help="Project the selection belongs to.")
@_requirements_options
@click.pass_context
@cli_command("apply")
def apply_cmd(
    ctx: click.Context,
    documents_file: Path,
    project_id: str,
    requirements: Optional[str],
    requirements_file: Optional[Path],
) -> None:
    """Record DOCUMENTS_FILE as the final selection for a project."""
    engine = get_context(ctx).engine
    result = engine.apply_selection(
        project_id,
        _load_documents(documents_file),
        _read_requirements(requirements, requirements_file),
    )
    emit_engine_result(result)


@context_group.command("estimate")
@click.argument(
    "documents_file",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--text", "-t", help="Text to estimate.")
@click.pass_context
@cli_command("estimate")
def estimate_cmd(
    ctx: click.Context,
    documents_file: Optional[Path],
    text: Optional[str],
) -> None:
    """Estimate tokens for --text and/or the documents in DOCUMENTS_FILE."""
    if documents_file is None and text is None:
        emit_error(
            "Nothing to estimate",
            code="MISSING_REQUIRED",
            error_type="validation",
            remediation="Pass a DOCUMENTS_FILE, --text, or both",
        )
    documents = _load_documents(documents_file) if documents_file is not None else None
    result = get_context(ctx).engine.estimate(text=text, documents=documents)
    emit_engine_result(result)
