"""Action routing for unified tools.

Each unified tool takes an ``action`` argument and forwards the remaining
parameters to the handler registered for that action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Tuple

from context_gate_mcp.core.errors.execution import ActionRouterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionDefinition:
    """One action of a unified tool.

    Attributes:
        name: Canonical action name
        handler: Callable invoked with the dispatch keyword arguments
        summary: One-line description shown in tool manifests
        aliases: Alternative names that resolve to this action
    """

    name: str
    handler: Callable[..., dict]
    summary: str = ""
    aliases: Tuple[str, ...] = field(default_factory=tuple)


class ActionRouter:
    """Maps action names (case-insensitive, with aliases) to handlers."""

    def __init__(self, *, tool_name: str, actions: Sequence[ActionDefinition]) -> None:
        self.tool_name = tool_name
        self._actions: Dict[str, ActionDefinition] = {}
        self._lookup: Dict[str, ActionDefinition] = {}
        for definition in actions:
            if definition.name in self._actions:
                raise ValueError(f"Duplicate action '{definition.name}' for tool '{tool_name}'")
            self._actions[definition.name] = definition
            for key in (definition.name, *definition.aliases):
                self._lookup[key.lower()] = definition

    def allowed_actions(self) -> List[str]:
        """Canonical action names, in registration order."""
        return list(self._actions)

    def describe(self) -> Dict[str, str]:
        return {name: definition.summary for name, definition in self._actions.items()}

    def resolve(self, action: str) -> ActionDefinition:
        definition = self._lookup.get((action or "").strip().lower())
        if definition is None:
            allowed = self.allowed_actions()
            raise ActionRouterError(
                f"Unsupported {self.tool_name} action '{action}'",
                allowed_actions=allowed,
            )
        return definition

    def dispatch(self, action: str, **kwargs: Any) -> dict:
        """Invoke the handler for *action*.

        Raises:
            ActionRouterError: If the action is not registered
        """
        definition = self.resolve(action)
        logger.debug("Dispatching %s.%s", self.tool_name, definition.name)
        return definition.handler(**kwargs)
