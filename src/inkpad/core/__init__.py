"""Document lifecycle: sources, the open-document registry and the editor session."""

from inkpad.core.source import Source, SourceKind, SourceError
from inkpad.core.registry import DocumentId, DocumentRegistry, OpenDocument, UnknownDocument
from inkpad.core.session import EditorSession

__all__ = [
    "Source",
    "SourceKind",
    "SourceError",
    "DocumentId",
    "DocumentRegistry",
    "OpenDocument",
    "UnknownDocument",
    "EditorSession",
]
