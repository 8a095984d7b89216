"""Document model and lenient coercion of loosely shaped input.

Documents arrive from callers as plain mappings (JSON objects from the MCP
surface or the CLI) whose fields may be missing or oddly typed. This module
turns them into immutable ``Document`` values with documented defaults, and
separates out entries that cannot take part in selection.

Field defaults:
    id: None (an entry without an id cannot be selected)
    type: None (unknown types score zero type priority)
    content: None (estimated as zero tokens)
    metadata.agency: None
    metadata.keywords / metadata.technologies: empty tuple
    metadata.date: None (neutral recency)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# Warning code surfaced in response envelopes for skipped batch entries
MALFORMED_ITEM_SKIPPED = "MALFORMED_ITEM_SKIPPED"


class DocumentType(str, Enum):
    """Fixed document taxonomy, in default priority order."""

    SOLICITATION = "solicitation"
    REQUIREMENTS = "requirements"
    REFERENCE = "reference"
    PAST_PERFORMANCE = "past-performance"
    PROPOSAL = "proposal"
    COMPLIANCE = "compliance"
    MEDIA = "media"

    @classmethod
    def parse(cls, value: Any) -> Optional["DocumentType"]:
        """Normalize a loose type label to a ``DocumentType``.

        Accepts enum members, case variations, ``_``/space separators and
        plural spellings (``"solicitations"``, ``"past_performance"``).
        Returns None for anything that does not name a known type.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        label = value.strip().lower().replace("_", "-").replace(" ", "-")
        if not label:
            return None
        try:
            return cls(label)
        except ValueError:
            pass
        if label.endswith("s"):
            try:
                return cls(label[:-1])
            except ValueError:
                return None
        return None


DEFAULT_TYPE_PRIORITY: Tuple[DocumentType, ...] = tuple(DocumentType)


def _split_terms(value: Any) -> Tuple[str, ...]:
    """Coerce a keyword/technology field into a tuple of distinct strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable[Any] = value.split(",")
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = value
    else:
        return ()

    terms: List[str] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, str):
            continue
        term = item.strip()
        if term and term.lower() not in seen:
            seen.add(term.lower())
            terms.append(term)
    # Sets have no stable order
    if isinstance(value, (set, frozenset)):
        terms.sort()
    return tuple(terms)


def _parse_date(value: Any) -> Optional[datetime]:
    """Parse a date-ish value into an aware UTC datetime, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Ignoring unparseable document date %r", value)
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _coerce_id(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass(frozen=True)
class DocumentMetadata:
    """Scoring metadata attached to a document.

    Attributes:
        agency: Issuing or owning agency name
        keywords: Distinct keyword phrases
        technologies: Distinct technology names
        date: Document date (UTC), used for recency
    """

    agency: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    technologies: Tuple[str, ...] = ()
    date: Optional[datetime] = None

    @classmethod
    def from_mapping(cls, data: Any) -> "DocumentMetadata":
        """Build metadata from a loose mapping; anything malformed is dropped."""
        if not isinstance(data, Mapping):
            return cls()
        agency = data.get("agency")
        return cls(
            agency=(agency.strip() or None) if isinstance(agency, str) else None,
            keywords=_split_terms(data.get("keywords")),
            technologies=_split_terms(data.get("technologies")),
            date=_parse_date(data.get("date", data.get("created_date"))),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agency": self.agency,
            "keywords": list(self.keywords),
            "technologies": list(self.technologies),
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass(frozen=True)
class Document:
    """A candidate document for inclusion in a model context.

    Documents are owned by the caller's document store; the engine never
    mutates them.
    """

    id: Optional[str] = None
    type: Optional[DocumentType] = None
    content: Optional[str] = None
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    title: Optional[str] = None

    @property
    def text(self) -> str:
        """Document content, empty when absent."""
        return self.content or ""

    @property
    def is_complete(self) -> bool:
        """True when the document has both an id and content."""
        return self.id is not None and self.content is not None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Document":
        """Build a Document from a loose mapping without raising.

        ``category`` is accepted as a legacy alias for ``type``.
        """
        content = data.get("content")
        title = data.get("title")
        return cls(
            id=_coerce_id(data.get("id")),
            type=DocumentType.parse(data.get("type", data.get("category"))),
            content=content if isinstance(content, str) else None,
            metadata=DocumentMetadata.from_mapping(data.get("metadata")),
            title=title if isinstance(title, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value if self.type else None,
            "title": self.title,
            "content": self.content,
            "metadata": self.metadata.to_dict(),
        }


@dataclass(frozen=True)
class MalformedItem:
    """A batch entry that was skipped instead of aborting the batch."""

    index: int
    reason: str
    document_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "document_id": self.document_id, "reason": self.reason}

    def to_warning(self) -> Dict[str, Any]:
        """Render as a structured ``warning_details`` entry."""
        label = f"'{self.document_id}'" if self.document_id else f"at index {self.index}"
        return {
            "code": MALFORMED_ITEM_SKIPPED,
            "severity": "warning",
            "message": f"Document {label} skipped: {self.reason}",
            "context": self.to_dict(),
        }


def coerce_document(item: Any) -> Optional[Document]:
    """Return *item* as a Document, or None when it is not document-shaped."""
    if isinstance(item, Document):
        return item
    if isinstance(item, Mapping):
        return Document.from_mapping(item)
    return None


def partition_documents(items: Iterable[Any]) -> Tuple[List[Document], List[MalformedItem]]:
    """Split a raw batch into complete documents and skipped entries.

    Input order is preserved among the complete documents. Each skipped
    entry is logged at WARNING; none of them raise.
    """
    documents: List[Document] = []
    skipped: List[MalformedItem] = []

    for index, item in enumerate(items):
        document = coerce_document(item)
        if document is None:
            reason = "entry is null" if item is None else f"entry is not a document ({type(item).__name__})"
            skipped.append(MalformedItem(index=index, reason=reason))
        elif document.id is None:
            skipped.append(MalformedItem(index=index, reason="missing id"))
        elif document.content is None:
            skipped.append(MalformedItem(index=index, reason="missing content", document_id=document.id))
        else:
            documents.append(document)
            continue

        logger.warning(
            "Skipping malformed document at index %d: %s",
            index,
            skipped[-1].reason,
        )

    return documents, skipped


def malformed_warnings(skipped: Iterable[MalformedItem]) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Build ``(warnings, warning_details)`` for a list of skipped entries."""
    details = [item.to_warning() for item in skipped]
    if not details:
        return [], []
    summary = f"{MALFORMED_ITEM_SKIPPED}: {len(details)} document(s) skipped"
    return [summary], details


def skipped_warnings(entries: Iterable[Mapping[str, Any]]) -> Tuple[List[str], List[Dict[str, Any]]]:
    """``malformed_warnings`` for skipped entries already rendered with ``to_dict``."""
    return malformed_warnings(
        MalformedItem(index=entry["index"], reason=entry["reason"], document_id=entry.get("document_id"))
        for entry in entries
    )
