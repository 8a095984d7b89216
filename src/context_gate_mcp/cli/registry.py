"""Per-invocation CLI state attached to ``click.Context.obj``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import click

from context_gate_mcp.config import ServerConfig
from context_gate_mcp.core.engine import ContextOverflowEngine, create_engine


@dataclass
class CLIContext:
    """Holds the resolved configuration and a lazily built engine."""

    config: ServerConfig
    _engine: Optional[ContextOverflowEngine] = field(default=None, repr=False)

    @property
    def engine(self) -> ContextOverflowEngine:
        if self._engine is None:
            self._engine = create_engine(self.config)
        return self._engine

    def close(self) -> None:
        """Flush pending analytics and release the engine."""
        if self._engine is not None:
            self._engine.close()
            self._engine = None


def get_context(ctx: click.Context) -> CLIContext:
    """Return the ``CLIContext`` stored on the root click context."""
    obj = ctx.find_object(CLIContext)
    if obj is None:
        raise click.UsageError("CLI context is not initialised; invoke commands through 'context-gate'")
    return obj
