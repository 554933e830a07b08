"""Markdown importer: Markdown text -> StyledDocument.

The importer walks the linear event stream with a running
``(row, column)`` cursor and a stack of open tags. Text is laid out
immediately; links, images and rules are queued as deferred operations
and applied once externally resolved images are available.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Optional, Sequence, Union

from inkpad.formatting.document import (
    BULLET_GLYPH,
    AnchorKind,
    ImageHandle,
    Position,
    StyledDocument,
)
from inkpad.formatting.events import (
    Code,
    End,
    Event,
    HardBreak,
    Rule,
    SoftBreak,
    Start,
    Tag,
    TagKind,
    Text,
    markdown_events,
)
from inkpad.formatting.styles import StyleKind

if TYPE_CHECKING:
    from inkpad.resolvers.base import ImageResolver


logger = logging.getLogger(__name__)

BULLET = BULLET_GLYPH + " "
BULLET_INDENT = "  "

# Containers whose children are not top-level blocks
_CONTAINERS = (TagKind.BLOCKQUOTE, TagKind.LIST, TagKind.ITEM)
# Blocks that always begin on a fresh line
_BLOCKS = (
    TagKind.PARAGRAPH,
    TagKind.HEADING,
    TagKind.BLOCKQUOTE,
    TagKind.LIST,
    TagKind.ITEM,
    TagKind.CODE_BLOCK,
)


class MalformedMarkup(ValueError):
    """The event stream is not well nested, or deferred data does not fit it."""

    pass


# =============================================================================
# Deferred operations
# =============================================================================

@dataclass(frozen=True)
class AttachImage:
    """Place the image resolved for ``pending_image_urls[index]``."""

    index: int
    position: Position


@dataclass(frozen=True)
class InsertRule:
    position: Position


@dataclass(frozen=True)
class AttachLink:
    position: Position
    end: Position
    url: str


DeferredOperation = Union[AttachImage, InsertRule, AttachLink]


@dataclass
class ImportResult:
    """A parsed document waiting for its images.

    Attributes:
        document: Text and styles laid out so far
        pending_image_urls: Image URLs in document order, to be resolved
        operations: Deferred operations in document order
    """

    document: StyledDocument
    pending_image_urls: list[str] = field(default_factory=list)
    operations: list[DeferredOperation] = field(default_factory=list)

    def materialize(
        self, images: Optional[Sequence[Optional[ImageHandle]]] = None
    ) -> StyledDocument:
        """Apply every deferred operation and return the finished document.

        Args:
            images: One resolved handle (or None) per pending URL, in order

        Returns:
            The completed StyledDocument

        Raises:
            MalformedMarkup: If ``images`` does not match the pending URLs
        """
        images = list(images) if images is not None else []
        if len(images) != len(self.pending_image_urls):
            raise MalformedMarkup(
                f"Expected {len(self.pending_image_urls)} resolved images, "
                f"got {len(images)}"
            )

        doc = self.document
        for op in self.operations:
            if isinstance(op, AttachImage):
                handle = images[op.index]
                url = self.pending_image_urls[op.index]
                if handle is None:
                    logger.warning("Image not resolved, skipping: %s", url)
                    continue
                doc.add_image(op.position, handle, url)
            elif isinstance(op, InsertRule):
                doc.add_anchor(op.position, AnchorKind.RULE)
            elif isinstance(op, AttachLink):
                doc.add_link(op.position, op.end, op.url)
            logger.debug("Applied %s", op)
        self.operations = []
        return doc


# =============================================================================
# Importer
# =============================================================================

@dataclass
class _OpenTag:
    tag: Tag
    row: int
    column: int

    @property
    def position(self) -> Position:
        return Position(self.row, self.column)


class MarkdownImporter:
    """Convert Markdown into a StyledDocument.

    Supports headings (levels beyond 3 fold into h3), bold, italic,
    inline code, code blocks, list items, links, images, rules and
    paragraph/line breaks. Other constructs contribute their text only.
    """

    def parse(self, markdown_text: str) -> ImportResult:
        """Lay out Markdown text, deferring images, links and rules.

        Args:
            markdown_text: Markdown source

        Returns:
            ImportResult holding the document and its deferred work
        """
        return self.parse_events(markdown_events(markdown_text))

    def parse_events(self, events: Iterable[Event]) -> ImportResult:
        """Lay out an already-parsed event stream.

        Raises:
            MalformedMarkup: On an End without its matching Start, or a
                Start still open when the stream ends
        """
        self._reset()
        for event in events:
            self._handle_event(event)

        if self._stack:
            raise MalformedMarkup(
                f"Unclosed {self._stack[-1].tag.kind.value} at end of input"
            )

        document = StyledDocument(text="".join(self._text))
        for kind, start, end in self._spans:
            document.add_span(kind, start, end)
        result = ImportResult(
            document=document,
            pending_image_urls=self._pending_urls,
            operations=self._operations,
        )
        logger.debug(
            "Parsed %d characters, %d spans, %d deferred operations",
            len(document.text),
            len(self._spans),
            len(self._operations),
        )
        return result

    def import_markdown(
        self,
        markdown_text: str,
        resolver: Optional["ImageResolver"] = None,
        max_width: Optional[int] = None,
    ) -> StyledDocument:
        """Parse, resolve images and materialize in one call.

        Without a resolver every image counts as unresolved.
        """
        result = self.parse(markdown_text)
        urls = result.pending_image_urls
        if resolver is not None and urls:
            images = resolver.resolve(urls, max_width)
        else:
            images = [None] * len(urls)
        return result.materialize(images)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def _reset(self) -> None:
        self._text: list[str] = []
        # character length of every line laid out so far
        self._lines: list[int] = [0]
        self._stack: list[_OpenTag] = []
        self._spans: list[tuple[StyleKind, Position, Position]] = []
        self._operations: list[DeferredOperation] = []
        self._pending_urls: list[str] = []
        self._container_depth = 0
        self._list_depth = 0
        self._image_depth = 0

    @property
    def _row(self) -> int:
        return len(self._lines) - 1

    @property
    def _column(self) -> int:
        return self._lines[-1]

    @property
    def _position(self) -> Position:
        return Position(self._row, self._column)

    def _push(self, text: str) -> None:
        """Append text and advance the cursor by characters."""
        if not text:
            return
        self._text.append(text)
        first, *rest = text.split("\n")
        self._lines[-1] += len(first)
        self._lines.extend(len(line) for line in rest)

    def _newline(self) -> None:
        self._push("\n")

    def _ensure_line_start(self) -> None:
        if self._column != 0:
            self._newline()

    def _begin_block(self) -> None:
        """Start a block on a fresh line, after a blank line at top level.

        The first block of a list item stays on the bullet's line.
        """
        if self._stack:
            top = self._stack[-1]
            if top.tag.kind == TagKind.ITEM and top.position == self._position:
                return
        self._ensure_line_start()
        if self._container_depth == 0 and self._text:
            self._newline()

    def _first_line_end(self, opened: _OpenTag) -> Position:
        """End of the line a construct started on, as far as laid out."""
        if opened.row == self._row:
            return self._position
        return Position(opened.row, self._lines[opened.row])

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _handle_event(self, event: Event) -> None:
        if isinstance(event, Start):
            self._handle_start(event.tag)
        elif isinstance(event, End):
            self._handle_end(event.tag)
        elif isinstance(event, Text):
            if not self._image_depth:
                self._push(event.text)
        elif isinstance(event, Code):
            if not self._image_depth:
                start = self._position
                self._push(event.text)
                self._spans.append((StyleKind.CODE, start, self._position))
        elif isinstance(event, (SoftBreak, HardBreak)):
            if not self._image_depth:
                self._newline()
        elif isinstance(event, Rule):
            self._begin_block()
            self._operations.append(InsertRule(self._position))
            self._newline()

    def _handle_start(self, tag: Tag) -> None:
        if tag.kind in _BLOCKS:
            self._begin_block()
        if tag.kind in _CONTAINERS:
            self._container_depth += 1
        if tag.kind == TagKind.LIST:
            self._list_depth += 1
        elif tag.kind == TagKind.ITEM:
            self._push(BULLET_INDENT * max(self._list_depth - 1, 0) + BULLET)
        elif tag.kind == TagKind.IMAGE:
            self._image_depth += 1

        self._stack.append(_OpenTag(tag, self._row, self._column))

    def _handle_end(self, tag: Tag) -> None:
        if not self._stack:
            raise MalformedMarkup(f"End of {tag.kind.value} without a matching start")
        opened = self._stack.pop()
        if opened.tag.kind != tag.kind:
            raise MalformedMarkup(
                f"End of {tag.kind.value} closes open {opened.tag.kind.value}"
            )
        start = opened.position
        kind = opened.tag.kind

        if kind in _CONTAINERS:
            self._container_depth -= 1

        if kind == TagKind.IMAGE:
            self._image_depth -= 1
            if not self._image_depth:
                self._pending_urls.append(opened.tag.url)
                self._operations.append(
                    AttachImage(len(self._pending_urls) - 1, start)
                )
        elif self._image_depth:
            # markup inside alt text is discarded with the text
            return
        elif kind == TagKind.HEADING:
            heading = StyleKind.heading(opened.tag.level)
            self._spans.append((heading, start, self._position))
            self._newline()
        elif kind == TagKind.PARAGRAPH:
            self._newline()
        elif kind == TagKind.STRONG:
            self._spans.append((StyleKind.BOLD, start, self._position))
        elif kind == TagKind.EMPHASIS:
            self._spans.append((StyleKind.ITALIC, start, self._position))
        elif kind == TagKind.LINK:
            self._operations.append(AttachLink(start, self._position, opened.tag.url))
        elif kind == TagKind.CODE_BLOCK:
            if start.column == 0 and self._position == start:
                # an empty block still takes up a line
                self._newline()
            if self._column == 0 and self._row > opened.row:
                # content ends with a newline; stop at the end of its last line
                end = Position(self._row - 1, self._lines[self._row - 1])
            else:
                end = self._position
            if end > start or start.column == 0:
                self._spans.append((StyleKind.CODE, start, end))
            self._ensure_line_start()
        elif kind == TagKind.ITEM:
            # empty items keep a zero-width span after their bullet
            self._spans.append((StyleKind.ITEM, start, self._first_line_end(opened)))
            self._ensure_line_start()
        elif kind == TagKind.LIST:
            self._list_depth -= 1
            self._ensure_line_start()
        elif kind == TagKind.BLOCKQUOTE:
            self._ensure_line_start()
