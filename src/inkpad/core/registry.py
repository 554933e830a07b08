"""Arena of open documents addressed by stable identifiers."""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Iterator, NewType, Optional

from inkpad.core.source import Source
from inkpad.formatting.document import StyledDocument


DocumentId = NewType("DocumentId", uuid.UUID)


class UnknownDocument(KeyError):
    """No open document has this identifier."""

    pass


@dataclass(eq=False)
class OpenDocument:
    """An open document and its editing state.

    Attributes:
        id: Stable identifier, unaffected by closing or reordering others
        document: The styled document
        source: Where the document is loaded from and saved to
        modified: Whether there are unsaved changes
        lock: Serializes every operation on this document
    """

    id: DocumentId
    document: StyledDocument
    source: Source = field(default_factory=Source.untitled)
    modified: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def display_title(self) -> str:
        """Source title, with ``*`` appended while there are unsaved changes."""
        return f"{self.source.title}{'*' if self.modified else ''}"


class DocumentRegistry:
    """Open documents keyed by identifier, in opening order."""

    def __init__(self) -> None:
        self._documents: dict[DocumentId, OpenDocument] = {}
        self._lock = threading.Lock()

    def add(self, document: StyledDocument, source: Optional[Source] = None) -> DocumentId:
        """Register a document and return its new identifier."""
        doc_id = DocumentId(uuid.uuid4())
        entry = OpenDocument(id=doc_id, document=document, source=source or Source.untitled())
        with self._lock:
            self._documents[doc_id] = entry
        return doc_id

    def get(self, doc_id: DocumentId) -> OpenDocument:
        with self._lock:
            try:
                return self._documents[doc_id]
            except KeyError:
                raise UnknownDocument(doc_id) from None

    def close(self, doc_id: DocumentId) -> OpenDocument:
        """Remove a document from the registry and return its entry."""
        with self._lock:
            try:
                return self._documents.pop(doc_id)
            except KeyError:
                raise UnknownDocument(doc_id) from None

    def ids(self) -> list[DocumentId]:
        with self._lock:
            return list(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        with self._lock:
            return doc_id in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def __iter__(self) -> Iterator[OpenDocument]:
        with self._lock:
            return iter(list(self._documents.values()))
