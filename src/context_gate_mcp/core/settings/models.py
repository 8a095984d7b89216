"""Configuration models for the decision engine.

``ContextConfiguration`` is an immutable, fully validated snapshot. Field
names are snake_case; camelCase aliases (``metadataWeights``,
``ragStrictness``, ...) and the legacy ``tokenAllocation`` /
``context_percent`` spellings are accepted on input. Integer fields are
strict: strings, booleans and floats are rejected instead of converted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from context_gate_mcp.core.budget.constants import (
    DEFAULT_METADATA_WEIGHTS,
    MAX_FACTOR_WEIGHT,
    MIN_FACTOR_WEIGHT,
    STRICTNESS_SCORE_FACTOR,
)
from context_gate_mcp.core.documents import DEFAULT_TYPE_PRIORITY, DocumentType

_MODEL_CONFIG = ConfigDict(
    frozen=True,
    extra="forbid",
    populate_by_name=True,
    alias_generator=to_camel,
    protected_namespaces=(),
)


class AllocationPercentages(BaseModel):
    """How a model's token window is split; must sum to 100."""

    model_config = _MODEL_CONFIG

    context: int = Field(
        default=70,
        strict=True,
        ge=0,
        le=100,
        validation_alias=AliasChoices("context", "context_percent", "contextPercent"),
        description="Share of the window available to documents and requirements",
    )
    generation: int = Field(
        default=20,
        strict=True,
        ge=0,
        le=100,
        validation_alias=AliasChoices("generation", "generation_percent", "generationPercent"),
        description="Share reserved for generated output",
    )
    buffer: int = Field(
        default=10,
        strict=True,
        ge=0,
        le=100,
        validation_alias=AliasChoices("buffer", "buffer_percent", "bufferPercent"),
        description="Safety margin",
    )

    @model_validator(mode="after")
    def validate_total(self) -> "AllocationPercentages":
        """Assert the three shares sum to exactly 100."""
        total = self.context + self.generation + self.buffer
        if total != 100:
            raise ValueError(f"allocation percentages must sum to 100, got {total}")
        return self


class ModelCategory(BaseModel):
    """A named model size with its total token window."""

    model_config = _MODEL_CONFIG

    max_tokens: int = Field(gt=0, strict=True, description="Total token window of the model")
    description: Optional[str] = Field(default=None, description="Human-readable label")


def _default_model_categories() -> Dict[str, ModelCategory]:
    return {
        "small": ModelCategory(max_tokens=4000, description="Small models (4K window)"),
        "medium": ModelCategory(max_tokens=16000, description="Medium models (16K window)"),
        "large": ModelCategory(max_tokens=32000, description="Large models (32K window)"),
    }


class ContextConfiguration(BaseModel):
    """Validated engine configuration snapshot."""

    model_config = _MODEL_CONFIG

    document_types_priority: Tuple[DocumentType, ...] = Field(
        default=DEFAULT_TYPE_PRIORITY,
        description="Every document type exactly once, highest priority first",
    )
    metadata_weights: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_METADATA_WEIGHTS),
        description="Weight in [0, 10] per metadata factor",
    )
    rag_strictness: int = Field(default=60, ge=0, le=100, strict=True, description="Low-relevance exclusion level")
    allocation_percentages: AllocationPercentages = Field(
        default_factory=AllocationPercentages,
        validation_alias=AliasChoices(
            "allocation_percentages",
            "allocationPercentages",
            "token_allocation",
            "tokenAllocation",
        ),
    )
    model_categories: Dict[str, ModelCategory] = Field(default_factory=_default_model_categories)
    default_model_category: str = Field(default="medium", description="Category used when none is given")
    warning_threshold: int = Field(
        default=85,
        strict=True,
        ge=0,
        le=100,
        description="Usage percentage at which a set is flagged as approaching the limit",
    )

    @field_validator("document_types_priority", mode="before")
    @classmethod
    def parse_document_types(cls, value: Any) -> Any:
        if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple)):
            raise ValueError("document_types_priority must be a list of document types")
        parsed = []
        for item in value:
            doc_type = DocumentType.parse(item)
            if doc_type is None:
                raise ValueError(f"unknown document type {item!r}")
            parsed.append(doc_type)
        return tuple(parsed)

    @field_validator("document_types_priority")
    @classmethod
    def validate_permutation(cls, value: Tuple[DocumentType, ...]) -> Tuple[DocumentType, ...]:
        """Assert the order names every document type exactly once."""
        if len(value) != len(DocumentType) or set(value) != set(DocumentType):
            expected = ", ".join(t.value for t in DocumentType)
            raise ValueError(f"document_types_priority must list each of [{expected}] exactly once")
        return value

    @field_validator("metadata_weights", mode="before")
    @classmethod
    def validate_weights(cls, value: Any) -> Any:
        if not isinstance(value, Mapping):
            raise ValueError("metadata_weights must be a mapping of factor name to number")
        for name, weight in value.items():
            if isinstance(weight, bool) or not isinstance(weight, (int, float)):
                raise ValueError(f"weight '{name}' must be a number, got {weight!r}")
            if not MIN_FACTOR_WEIGHT <= weight <= MAX_FACTOR_WEIGHT:
                raise ValueError(
                    f"weight '{name}' must be in [{MIN_FACTOR_WEIGHT:g}, {MAX_FACTOR_WEIGHT:g}], got {weight}"
                )
        return value

    @model_validator(mode="after")
    def validate_default_category(self) -> "ContextConfiguration":
        """Assert default_model_category names a defined category."""
        if self.default_model_category not in self.model_categories:
            known = ", ".join(sorted(self.model_categories)) or "none"
            raise ValueError(
                f"default_model_category '{self.default_model_category}' is not defined (known: {known})"
            )
        return self

    @property
    def min_relevance_score(self) -> float:
        """Score threshold implied by rag_strictness."""
        return self.rag_strictness * STRICTNESS_SCORE_FACTOR

    def context_budget(self, model_category: Optional[str] = None) -> int:
        """Tokens available for context in *model_category*.

        ``floor(max_tokens * context_percent / 100)``.

        Raises:
            KeyError: If the category is not defined
        """
        category = self.model_categories[model_category or self.default_model_category]
        return category.max_tokens * self.allocation_percentages.context // 100

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# Input spellings accepted for top-level and nested configuration keys
_TOP_LEVEL_KEYS: Dict[str, str] = {}
for _name in ContextConfiguration.model_fields:
    _TOP_LEVEL_KEYS[_name] = _name
    _TOP_LEVEL_KEYS[to_camel(_name)] = _name
_TOP_LEVEL_KEYS.update({"token_allocation": "allocation_percentages", "tokenAllocation": "allocation_percentages"})

_ALLOCATION_KEYS: Dict[str, str] = {}
for _name in AllocationPercentages.model_fields:
    for _spelling in (_name, f"{_name}_percent", f"{_name}Percent"):
        _ALLOCATION_KEYS[_spelling] = _name

_CATEGORY_KEYS: Dict[str, str] = {}
for _name in ModelCategory.model_fields:
    _CATEGORY_KEYS[_name] = _name
    _CATEGORY_KEYS[to_camel(_name)] = _name


def _rename(data: Mapping[str, Any], lookup: Mapping[str, str]) -> Dict[str, Any]:
    return {lookup.get(key, key): value for key, value in data.items()}


def canonicalize_patch(patch: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Rewrite a configuration patch to snake_case field names.

    Returns:
        ``(patch, unknown_keys)`` where unknown top-level keys are left out
        of the patch and listed separately.
    """
    canonical: Dict[str, Any] = {}
    unknown: List[str] = []
    for key, value in patch.items():
        name = _TOP_LEVEL_KEYS.get(key)
        if name is None:
            unknown.append(str(key))
            continue
        if name == "allocation_percentages" and isinstance(value, Mapping):
            value = _rename(value, _ALLOCATION_KEYS)
        elif name == "model_categories" and isinstance(value, Mapping):
            value = {
                category: _rename(spec, _CATEGORY_KEYS) if isinstance(spec, Mapping) else spec
                for category, spec in value.items()
            }
        canonical[name] = value
    return canonical, unknown


@dataclass(frozen=True)
class ConfigurationChange:
    """Audit record for one accepted configuration change."""

    version: int
    action: str
    actor: str
    changes: Dict[str, Dict[str, Any]]
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "action": self.action,
            "actor": self.actor,
            "timestamp": self.timestamp,
            "changes": self.changes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConfigurationChange":
        return cls(
            version=int(data["version"]),
            action=str(data["action"]),
            actor=str(data.get("actor", "unknown")),
            changes=dict(data.get("changes", {})),
            timestamp=str(data.get("timestamp", "")),
        )
