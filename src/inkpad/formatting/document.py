"""Styled document model.

A ``StyledDocument`` is the in-memory form of an open note: a flat
plain-text buffer plus style spans, inline anchors (images and rules)
and zero-width link marks, all addressed by ``(line, column)``
positions. Columns count characters, not bytes.

The editing surface renders this model; the importer builds it, the
exporter serializes it and the autoformat trigger mutates it through
the same span-application primitives as the formatting toolbar.
"""

import bisect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from PIL import Image

from inkpad.formatting.styles import StyleKind


logger = logging.getLogger(__name__)

# Leads a list item line in the plain text
BULLET_GLYPH = "•"


@dataclass(frozen=True, order=True)
class Position:
    """A (line, column) coordinate; ordering follows text order."""

    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


@dataclass(frozen=True)
class Span:
    """A style annotation covering ``[start, end)``.

    Attributes:
        kind: The style kind
        start: First styled position
        end: Position just past the last styled character
    """

    kind: StyleKind
    start: Position
    end: Position

    @property
    def is_empty(self) -> bool:
        """Check if this span covers no characters."""
        return self.start == self.end


class AnchorKind(Enum):
    """Kinds of non-text inline objects."""

    IMAGE = "image"
    RULE = "rule"


@dataclass(eq=False)
class ImageHandle:
    """A decoded image placed in a document.

    Handles compare by identity, so two loads of the same URL stay two
    distinct entries in ``StyledDocument.image_index``.

    Attributes:
        image: The decoded Pillow image
        format: Original encoding (png, jpeg, ...), if known
    """

    image: Image.Image
    format: Optional[str] = None

    @property
    def width(self) -> int:
        return self.image.size[0]

    @property
    def height(self) -> int:
        return self.image.size[1]


@dataclass(frozen=True)
class Anchor:
    """A non-text object attached before the character at ``position``."""

    position: Position
    kind: AnchorKind
    payload: Optional[ImageHandle] = None


# (kind, start_offset, end_offset), the working form used during edits
_OffsetSpan = tuple[StyleKind, int, int]


@dataclass
class StyledDocument:
    """Plain text annotated with spans, anchors and link marks.

    Attributes:
        text: Flattened plain content with explicit line breaks
        spans: Style spans, kept sorted by position
        anchors: Inline objects, kept sorted by position
        link_marks: Destination URL keyed by the start of each link span
        image_index: Origin URL of each placed image handle
    """

    text: str = ""
    spans: list[Span] = field(default_factory=list)
    anchors: list[Anchor] = field(default_factory=list)
    link_marks: dict[Position, str] = field(default_factory=dict)
    image_index: dict[ImageHandle, str] = field(default_factory=dict)
    _starts_for: Optional[str] = field(
        default=None, init=False, repr=False, compare=False
    )
    _starts: list[int] = field(
        default_factory=list, init=False, repr=False, compare=False
    )

    @property
    def plain_text(self) -> str:
        """Get the text content without styling."""
        return self.text

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------

    def _line_starts(self) -> list[int]:
        if self._starts_for is not self.text:
            starts = [0]
            index = self.text.find("\n")
            while index != -1:
                starts.append(index + 1)
                index = self.text.find("\n", index + 1)
            self._starts = starts
            self._starts_for = self.text
        return self._starts

    @property
    def line_count(self) -> int:
        return len(self._line_starts())

    @property
    def end_position(self) -> Position:
        """Position just past the last character."""
        return self.position_at(len(self.text))

    def line_range(self, line: int) -> tuple[int, int]:
        """Offsets of a line's first character and of its terminating newline."""
        starts = self._line_starts()
        if not 0 <= line < len(starts):
            raise ValueError(f"Line {line} out of range (0..{len(starts) - 1})")
        start = starts[line]
        end = starts[line + 1] - 1 if line + 1 < len(starts) else len(self.text)
        return start, end

    def offset_of(self, position: Position) -> int:
        """Convert a position to a character offset."""
        start, end = self.line_range(position.line)
        if not 0 <= position.column <= end - start:
            raise ValueError(f"Column out of range at {position}")
        return start + position.column

    def position_at(self, offset: int) -> Position:
        """Convert a character offset to a position."""
        if not 0 <= offset <= len(self.text):
            raise ValueError(f"Offset {offset} out of range (0..{len(self.text)})")
        starts = self._line_starts()
        line = bisect.bisect_right(starts, offset) - 1
        return Position(line, offset - starts[line])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def spans_of(self, kind: StyleKind) -> list[Span]:
        """Get all spans of one kind in text order."""
        return [span for span in self.spans if span.kind == kind]

    def has_tag(self, kind: StyleKind, position: Position) -> bool:
        """Check if the character at ``position`` carries ``kind``."""
        return any(
            span.start <= position < span.end for span in self.spans_of(kind)
        )

    def begins_tag(self, kind: StyleKind, position: Position) -> bool:
        return any(span.start == position for span in self.spans_of(kind))

    def ends_tag(self, kind: StyleKind, position: Position) -> bool:
        return any(
            span.end == position and not span.is_empty
            for span in self.spans_of(kind)
        )

    def toggles_tag(self, kind: StyleKind, position: Position) -> bool:
        return self.begins_tag(kind, position) or self.ends_tag(kind, position)

    def forward_to_tag_toggle(
        self, kind: StyleKind, position: Position
    ) -> Optional[Position]:
        """Find the next position after ``position`` where ``kind`` toggles."""
        toggles = [
            point
            for span in self.spans_of(kind)
            for point in (span.start, span.end)
            if point > position
        ]
        return min(toggles) if toggles else None

    def is_tagged(self, kind: StyleKind, start: Position, end: Position) -> bool:
        """Check if ``kind`` covers every character of ``[start, end)``.

        An empty range counts as tagged when a span of ``kind`` touches it.
        """
        spans = self.spans_of(kind)
        if start == end:
            return any(span.start <= start <= span.end for span in spans)
        cursor = start
        for span in sorted(spans, key=lambda s: s.start):
            if span.start > cursor:
                break
            if span.end > cursor:
                cursor = span.end
            if cursor >= end:
                return True
        return False

    def anchors_at(self, position: Position) -> list[Anchor]:
        return [anchor for anchor in self.anchors if anchor.position == position]

    def link_at(self, position: Position) -> Optional[tuple[Span, str]]:
        """Get the link span starting at ``position`` and its destination."""
        url = self.link_marks.get(position)
        if url is None:
            return None
        for span in self.spans_of(StyleKind.LINK):
            if span.start == position:
                return span, url
        return None

    # ------------------------------------------------------------------
    # Span mutation
    # ------------------------------------------------------------------

    def _check_range(self, start: Position, end: Position) -> None:
        self.offset_of(start)
        self.offset_of(end)
        if end < start:
            raise ValueError(f"Span end {end} precedes start {start}")

    def add_span(self, kind: StyleKind, start: Position, end: Position) -> None:
        """Apply ``kind`` over ``[start, end)``, merging with touching spans.

        Inline spans of other kinds that the new span crosses are split so
        that inline spans always nest.
        """
        if kind == StyleKind.LINK:
            raise ValueError("Link spans need a destination; use add_link()")
        self._check_range(start, end)
        kept: list[Span] = []
        for span in self.spans:
            if span.kind == kind and span.start <= end and span.end >= start:
                start = min(start, span.start)
                end = max(end, span.end)
            else:
                kept.append(span)
        kept.append(Span(kind, start, end))
        self.spans = _sorted_spans(kept)
        if kind.is_inline_style:
            self._nest_inline()

    def remove_span(self, kind: StyleKind, start: Position, end: Position) -> None:
        """Remove ``kind`` from ``[start, end)``, splitting spans that extend past it."""
        self._check_range(start, end)
        kept: list[Span] = []
        for span in self.spans:
            if span.kind != kind:
                kept.append(span)
            elif span.is_empty or start == end:
                # only zero-width spans can be removed from an empty range
                if not (span.is_empty and start <= span.start <= end):
                    kept.append(span)
            elif span.start < end and span.end > start:
                if span.start < start:
                    kept.append(Span(kind, span.start, start))
                if span.end > end:
                    kept.append(Span(kind, end, span.end))
            else:
                kept.append(span)
        self.spans = _sorted_spans(kept)
        if kind == StyleKind.LINK:
            self._sync_link_marks()
        elif kind.is_inline_style:
            self._nest_inline()

    def _nest_inline(self) -> None:
        """Rewrite inline spans so that any two are nested or disjoint.

        Spans of one kind that touch are merged first, then a span crossing
        the end of a span of another kind is split at that end.
        """
        inline: list[Span] = []
        others: list[Span] = []
        for span in self.spans:
            if span.kind.is_inline_style and not span.is_empty:
                inline.append(span)
            else:
                others.append(span)

        merged: list[Span] = []
        for span in sorted(inline, key=lambda s: (s.kind.value, s.start)):
            last = merged[-1] if merged else None
            if last is not None and last.kind == span.kind and span.start <= last.end:
                merged[-1] = Span(span.kind, last.start, max(last.end, span.end))
            else:
                merged.append(span)

        crossed = True
        while crossed:
            crossed = False
            for outer in merged:
                inner = next(
                    (s for s in merged if outer.start < s.start < outer.end < s.end),
                    None,
                )
                if inner is not None:
                    merged.remove(inner)
                    merged.append(Span(inner.kind, inner.start, outer.end))
                    merged.append(Span(inner.kind, outer.end, inner.end))
                    crossed = True
                    break
        self.spans = _sorted_spans(others + merged)

    def add_link(self, start: Position, end: Position, url: str) -> None:
        """Add a link span together with its destination mark."""
        self._check_range(start, end)
        self.spans = _sorted_spans(self.spans + [Span(StyleKind.LINK, start, end)])
        self.link_marks[start] = url

    def add_anchor(
        self,
        position: Position,
        kind: AnchorKind,
        payload: Optional[ImageHandle] = None,
    ) -> Anchor:
        """Attach an inline object before the character at ``position``."""
        self.offset_of(position)
        anchor = Anchor(position, kind, payload)
        index = bisect.bisect_right(
            [existing.position for existing in self.anchors], position
        )
        self.anchors.insert(index, anchor)
        return anchor

    def add_image(self, position: Position, handle: ImageHandle, url: str) -> Anchor:
        """Place a resolved image and record where it came from."""
        anchor = self.add_anchor(position, AnchorKind.IMAGE, handle)
        self.image_index[handle] = url
        return anchor

    def apply_plain_tag(self, kind: StyleKind, start: Position, end: Position) -> None:
        """Toggle an inline style over a selection.

        Removes ``kind`` when it already covers the whole selection,
        applies it otherwise. An empty selection does nothing.
        """
        if start == end:
            return
        if self.is_tagged(kind, start, end):
            self.remove_span(kind, start, end)
        else:
            self.add_span(kind, start, end)

    def apply_line_tag(self, kind: StyleKind, start: Position, end: Position) -> None:
        """Toggle a line style over every line the selection touches.

        Each line gets its own span, trailing newline excluded. Applying a
        heading replaces any other heading level on those lines.
        """
        self._check_range(start, end)
        lines = []
        for line in range(start.line, end.line + 1):
            line_start, line_end = self.line_range(line)
            lines.append((self.position_at(line_start), self.position_at(line_end)))

        if all(self.is_tagged(kind, a, b) for a, b in lines):
            for a, b in lines:
                self.remove_span(kind, a, b)
            return

        others = []
        if kind.heading_level is not None:
            others = [k for k in StyleKind if k.heading_level and k != kind]
        for a, b in lines:
            for other in others:
                self.remove_span(other, a, b)
            self.add_span(kind, a, b)

    # ------------------------------------------------------------------
    # Text edits
    # ------------------------------------------------------------------

    def _offset_spans(self) -> list[_OffsetSpan]:
        return [
            (span.kind, self.offset_of(span.start), self.offset_of(span.end))
            for span in self.spans
        ]

    def insert_text(self, offset: int, text: str) -> None:
        """Insert text, shifting everything at or after ``offset``.

        Text inserted strictly inside a span extends it, as does text
        without a line break inserted at the start of a line style; a
        zero-width span sitting at ``offset`` grows over the inserted text
        up to its first newline.
        """
        self.position_at(offset)
        if not text:
            return
        size = len(text)
        newline = text.find("\n")
        grow = size if newline == -1 else newline

        def move(x: int) -> int:
            return x + size if x >= offset else x

        def remap(kind: StyleKind, start: int, end: int) -> Optional[tuple[int, int]]:
            if start == end == offset:
                return start, start + grow
            if start < offset < end:
                return start, end + size
            if start == offset and kind.is_line_style and newline == -1:
                return start, end + size
            return move(start), end + size if end > offset else end

        self._edit(
            self.text[:offset] + text + self.text[offset:],
            remap,
            anchor_map=lambda x: move(x),
        )

    def delete_range(self, start: int, end: int) -> None:
        """Delete the characters in ``[start, end)``.

        Positions inside the range collapse to ``start``; spans that become
        empty and anchors strictly inside the range are dropped.
        """
        self.position_at(start)
        self.position_at(end)
        if end <= start:
            return
        size = end - start

        def move(x: int) -> int:
            if x <= start:
                return x
            if x >= end:
                return x - size
            return start

        def remap(kind: StyleKind, a: int, b: int) -> Optional[tuple[int, int]]:
            new_a, new_b = move(a), move(b)
            if new_a == new_b and a != b:
                return None
            return new_a, new_b

        def anchor_map(x: int) -> Optional[int]:
            if start < x < end:
                return None
            return move(x)

        self._edit(self.text[:start] + self.text[end:], remap, anchor_map)

    def _edit(
        self,
        new_text: str,
        remap: Callable[[StyleKind, int, int], Optional[tuple[int, int]]],
        anchor_map: Callable[[int], Optional[int]],
    ) -> None:
        links: list[tuple[int, int, str]] = []
        others: list[_OffsetSpan] = []
        for kind, a, b in self._offset_spans():
            moved = remap(kind, a, b)
            if moved is None:
                continue
            if kind == StyleKind.LINK:
                url = self.link_marks.get(self.position_at(a))
                if url is not None:
                    links.append((moved[0], moved[1], url))
            else:
                others.append((kind, moved[0], moved[1]))

        anchors: list[tuple[int, Anchor]] = []
        for anchor in self.anchors:
            moved_offset = anchor_map(self.offset_of(anchor.position))
            if moved_offset is None:
                if anchor.payload is not None:
                    self.image_index.pop(anchor.payload, None)
                continue
            anchors.append((moved_offset, anchor))

        self.text = new_text
        self.spans = []
        self.link_marks = {}
        for kind, a, b in others:
            start_pos, end_pos = self.position_at(a), self.position_at(b)
            if a == b and not self._keeps_empty(kind, start_pos):
                logger.debug("Dropping empty %s span at %s", kind.value, start_pos)
                continue
            self.add_span(kind, start_pos, end_pos)
        for a, b, url in links:
            self.add_link(self.position_at(a), self.position_at(b), url)
        self.anchors = [
            Anchor(self.position_at(offset), anchor.kind, anchor.payload)
            for offset, anchor in anchors
        ]

    def _keeps_empty(self, kind: StyleKind, position: Position) -> bool:
        """Zero-width spans survive edits at a line start or right after a bullet."""
        if position.column == 0:
            return True
        if not kind.is_line_style:
            return False
        line_start, _ = self.line_range(position.line)
        return self.text[line_start : line_start + position.column].strip() == BULLET_GLYPH

    def _sync_link_marks(self) -> None:
        starts = {span.start for span in self.spans_of(StyleKind.LINK)}
        self.link_marks = {
            position: url
            for position, url in self.link_marks.items()
            if position in starts
        }

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple:
        """Structural view of the document, independent of image identity."""
        return (
            self.text,
            tuple(sorted((s.start, s.end, s.kind.value) for s in self.spans)),
            tuple(
                (
                    a.position,
                    a.kind.value,
                    self.image_index.get(a.payload) if a.payload else None,
                )
                for a in self.anchors
            ),
            tuple(sorted(self.link_marks.items())),
        )


def _sorted_spans(spans: list[Span]) -> list[Span]:
    return sorted(spans, key=lambda s: (s.start, s.end, s.kind.value))
