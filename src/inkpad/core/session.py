"""Editor session: the operations an editing surface drives."""

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Iterator, Optional

from inkpad.config import Settings, get_settings
from inkpad.core.registry import DocumentId, DocumentRegistry, OpenDocument
from inkpad.core.source import Source, SourceError
from inkpad.formatting.autoformat import autoformat_heading
from inkpad.formatting.document import ImageHandle, Position, StyledDocument
from inkpad.formatting.exporter import ExportIOError, MarkdownExporter
from inkpad.formatting.importer import MarkdownImporter
from inkpad.formatting.styles import StyleKind
from inkpad.resolvers.base import ImageResolver


logger = logging.getLogger(__name__)


class EditorSession:
    """Owns the open documents and runs every operation on them.

    Pipeline for opening a document:
    1. Parse the Markdown text (no lock needed, the document is new)
    2. Resolve its images on a worker thread and wait for all of them
    3. Apply the deferred operations and register the finished document

    Every later operation on a document holds that document's lock for
    its whole duration.
    """

    def __init__(
        self,
        resolver: Optional[ImageResolver] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """Initialize the session.

        Args:
            resolver: Image resolver; without one, images are dropped on import
            settings: Configuration (default: global settings)
        """
        self.settings = settings or get_settings()
        self.resolver = resolver
        self.registry = DocumentRegistry()
        self.exporter = MarkdownExporter()
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.image_workers,
            thread_name_prefix="inkpad-images",
        )

    def __enter__(self) -> "EditorSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def shutdown(self) -> None:
        """Stop the image worker threads."""
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Opening and closing
    # ------------------------------------------------------------------

    def new_document(self) -> DocumentId:
        """Open an empty untitled document."""
        return self.registry.add(StyledDocument(), Source.untitled())

    def load_document(self, text: str, source: Optional[Source] = None) -> StyledDocument:
        """Import Markdown into a fully materialized document."""
        source = source or Source.untitled()
        result = MarkdownImporter().parse(text)
        images = self._resolve_images(result.pending_image_urls, source)
        return result.materialize(images)

    def open_text(self, text: str, source: Optional[Source] = None) -> DocumentId:
        """Import Markdown text and register the resulting document."""
        document = self.load_document(text, source)
        doc_id = self.registry.add(document, source)
        logger.debug("Opened %s as %s", source or "untitled text", doc_id)
        return doc_id

    def open_source(self, source: Source) -> DocumentId:
        """Load a source's text, import it and register the document.

        Raises:
            SourceError: If the source cannot be read
        """
        text = source.load(self.settings.encoding)
        return self.open_text(text, source)

    def close(self, doc_id: DocumentId) -> None:
        with self._locked(doc_id):
            self.registry.close(doc_id)

    def _resolve_images(
        self, urls: list[str], source: Source
    ) -> list[Optional[ImageHandle]]:
        if not urls:
            return []
        if self.resolver is None:
            logger.debug("No image resolver; dropping %d images", len(urls))
            return [None] * len(urls)
        targets = [source.resolve(url) for url in urls]
        future = self._executor.submit(
            self.resolver.resolve, targets, self.settings.max_image_width
        )
        # the document cannot be materialized before every image is back
        return future.result()

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self, doc_id: DocumentId) -> Iterator[OpenDocument]:
        entry = self.registry.get(doc_id)
        with entry.lock:
            yield entry

    def document(self, doc_id: DocumentId) -> StyledDocument:
        return self.registry.get(doc_id).document

    def apply_style(
        self, doc_id: DocumentId, kind: StyleKind, start: Position, end: Position
    ) -> None:
        """Toggle a style over a selection, as the formatting toolbar does."""
        with self._locked(doc_id) as entry:
            if kind.is_line_style:
                entry.document.apply_line_tag(kind, start, end)
            else:
                entry.document.apply_plain_tag(kind, start, end)
            entry.modified = True

    def insert_text(self, doc_id: DocumentId, offset: int, text: str) -> None:
        with self._locked(doc_id) as entry:
            entry.document.insert_text(offset, text)
            entry.modified = True

    def delete_range(self, doc_id: DocumentId, start: int, end: int) -> None:
        with self._locked(doc_id) as entry:
            entry.document.delete_range(start, end)
            entry.modified = True

    def text_changed(self, doc_id: DocumentId, cursor: int) -> Optional[int]:
        """Run the autoformat trigger after a text change.

        Returns:
            The new cursor offset if the line was rewritten, else None
        """
        with self._locked(doc_id) as entry:
            new_cursor = autoformat_heading(entry.document, cursor)
            if new_cursor is not None:
                entry.modified = True
            return new_cursor

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def export(self, doc_id: DocumentId) -> str:
        with self._locked(doc_id) as entry:
            return self.exporter.export(entry.document)

    def save(self, doc_id: DocumentId, source: Optional[Source] = None) -> None:
        """Write a document back as Markdown.

        Args:
            doc_id: The document to save
            source: New target; defaults to where the document came from

        Raises:
            SourceError: If there is nowhere writable to save to
            UnbalancedSpan: If the document is corrupted
            ExportIOError: If writing fails; the previous file is kept
        """
        with self._locked(doc_id) as entry:
            target = source or entry.source
            if not target.is_writable:
                raise SourceError(f"Cannot save to {target.title}: choose a file")
            markdown = self.exporter.export(entry.document)
            try:
                target.write(markdown, self.settings.encoding)
            except (OSError, ValueError) as e:
                raise ExportIOError(f"Failed to save {target.title}: {e}") from e
            entry.source = target
            entry.modified = False
            logger.info("Saved %s", target.title)

    def title(self, doc_id: DocumentId) -> str:
        return self.registry.get(doc_id).display_title
