"""Document Provider interface and reference implementations.

Requests may name documents by id instead of carrying their content. A
provider resolves those ids to documents; ids it cannot resolve are
reported as skipped batch entries.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple, runtime_checkable

from context_gate_mcp.core.documents import Document, MalformedItem, coerce_document

logger = logging.getLogger(__name__)


@runtime_checkable
class DocumentProvider(Protocol):
    """Resolves document ids to documents.

    Implementations must be safe to call from multiple threads and must
    not raise for unknown ids (return None instead).
    """

    def get(self, document_id: str) -> Optional[Document]:
        ...


class InMemoryDocumentProvider:
    """Provider over a fixed set of documents held in memory."""

    def __init__(self, documents: Iterable[Any] = ()) -> None:
        self._documents: Dict[str, Document] = {}
        for item in documents:
            document = coerce_document(item)
            if document is not None and document.id is not None:
                self._documents[document.id] = document

    def get(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def __len__(self) -> int:
        return len(self._documents)


class JsonFileDocumentProvider(InMemoryDocumentProvider):
    """Provider loaded from a JSON file.

    The file holds either a list of document objects or an object with a
    ``documents`` list.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        super().__init__(load_documents_file(self.path))
        logger.debug("Loaded %d documents from %s", len(self), self.path)


def load_documents_file(path: Path) -> List[Any]:
    """Read the raw document list from a JSON file.

    Raises:
        ValueError: If the file does not contain a document list.
        OSError: If the file cannot be read.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, Mapping):
        data = data.get("documents")
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a list of documents or a 'documents' list")
    return data


def resolve_references(
    items: Sequence[Any],
    provider: Optional[DocumentProvider],
) -> Tuple[List[Any], List[MalformedItem]]:
    """Replace string ids in *items* with documents from *provider*.

    Non-string entries pass through untouched, keeping their position so
    downstream skip reports use the caller's indices. Unresolvable ids are
    replaced by None and reported.
    """
    resolved: List[Any] = []
    unresolved: List[MalformedItem] = []

    for index, item in enumerate(items):
        if not isinstance(item, str):
            resolved.append(item)
            continue
        document = provider.get(item) if provider is not None else None
        if document is None:
            reason = "unknown document id" if provider is not None else "no document provider configured"
            logger.warning("Could not resolve document reference %r: %s", item, reason)
            unresolved.append(MalformedItem(index=index, reason=reason, document_id=item))
        resolved.append(document)

    return resolved, unresolved
