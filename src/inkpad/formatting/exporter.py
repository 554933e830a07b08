"""Markdown exporter: StyledDocument -> Markdown text.

A single forward pass over the document's characters. Before each
character the exporter emits whatever is attached at that position
(closing delimiters, anchors, line prefixes, opening delimiters), tracking
open inline delimiters and link brackets on a stack so every span closes
in the order it was opened.
"""

import logging
import re
from collections import defaultdict
from typing import TextIO

from inkpad.formatting.document import (
    BULLET_GLYPH,
    Anchor,
    AnchorKind,
    StyledDocument,
)
from inkpad.formatting.styles import StyleKind


logger = logging.getLogger(__name__)

HEADING_PREFIXES = {
    StyleKind.H1: "# ",
    StyleKind.H2: "## ",
    StyleKind.H3: "### ",
}
BOLD_MARKER = "**"
ITALIC_MARKER = "*"
RULE_MARKER = "---"
# "---" under a text line would turn that line into a heading
RULE_MARKER_AFTER_TEXT = "***"
BULLET_MARKER = "-"
# Used by a list that directly follows another one, which "-" would join
BULLET_MARKER_ALT = "*"
EMPTY_CODE_BLOCK = "```\n\n```"

# Characters that are markup anywhere in a line
ALWAYS_ESCAPED = frozenset("\\`*[]")
# Characters that are markup as the first thing on a line
LINE_START_ESCAPED = frozenset("#>-+=~")
ORDERED_MARKER_PATTERN = re.compile(r"\d{1,9}[.)](?=[ \t\n]|$)")
ENTITY_PATTERN = re.compile(r"&(?:#[0-9]{1,7}|#[xX][0-9a-fA-F]{1,6}|[A-Za-z][A-Za-z0-9]*);")
BACKTICK_RUN_PATTERN = re.compile(r"`+")

# Opening order for spans sharing a start and an end; code is innermost
_INLINE_ORDER = {
    StyleKind.BOLD: 0,
    StyleKind.ITALIC: 1,
    StyleKind.LINK: 2,
    StyleKind.CODE: 3,
}

# (kind, start_offset, end_offset)
_Range = tuple[StyleKind, int, int]


class UnbalancedSpan(ValueError):
    """Inline spans cross each other; the document is corrupted."""

    pass


class ExportIOError(OSError):
    """Writing exported Markdown to its sink failed."""

    pass


class MarkdownExporter:
    """Serialize a StyledDocument back to Markdown.

    The output re-imports to a structurally equal document for content in
    the supported subset; original whitespace and marker choices are not
    preserved.
    """

    def export(self, document: StyledDocument) -> str:
        """Convert a document to Markdown text.

        Args:
            document: The document to serialize

        Returns:
            Markdown source

        Raises:
            UnbalancedSpan: If two inline spans partially overlap, which
                the document's own span operations never produce
        """
        text = document.text
        size = len(text)

        links = self._collect_links(document)
        inline = self._split_at_links(self._collect_inline(document), links)
        inline.extend(
            (StyleKind.LINK, start, end) for start, (end, _) in links.items() if end > start
        )
        opens: dict[int, list[_Range]] = defaultdict(list)
        closes: dict[int, list[_Range]] = defaultdict(list)
        for span in inline:
            opens[span[1]].append(span)
            closes[span[2]].append(span)

        prefixes: dict[int, str] = {}
        for kind, prefix in HEADING_PREFIXES.items():
            for span in document.spans_of(kind):
                prefixes[document.offset_of(span.start)] = prefix
        item_starts = {
            document.offset_of(span.start) for span in document.spans_of(StyleKind.ITEM)
        }
        line_style_starts = set(prefixes) | item_starts
        empty_blocks = self._empty_code_blocks(document)

        anchors: dict[int, list[Anchor]] = defaultdict(list)
        for anchor in document.anchors:
            anchors[document.offset_of(anchor.position)].append(anchor)

        out: list[str] = []
        stack: list[tuple[_Range, str]] = []
        # bullet marker in use at each indentation
        markers: dict[int, str] = {}
        escape_at = -1
        offset = 0
        while offset <= size:
            self._close(closes.get(offset, []), stack, out)

            for anchor in anchors.get(offset, []):
                out.append(self._anchor_markup(document, anchor, text, offset))

            if offset in prefixes:
                out.append(prefixes[offset])
            if offset in empty_blocks and not stack:
                out.append(EMPTY_CODE_BLOCK)

            opening = opens.get(offset, [])
            for span in sorted(opening, key=lambda s: (-s[2], _INLINE_ORDER[s[0]])):
                if span[0] == StyleKind.LINK:
                    opener, closer = "[", f"]({self._destination(links[offset][1])})"
                else:
                    # fences only when nothing else wraps the code
                    is_block = (
                        span[0] == StyleKind.CODE
                        and not stack
                        and len(opening) == 1
                        and self._is_code_block(text, span, line_style_starts)
                    )
                    opener, closer = self._markers(text, span, is_block)
                out.append(opener)
                stack.append((span, closer))

            if offset in links and links[offset][0] == offset:
                out.append(f"[]({self._destination(links[offset][1])})")

            if offset == size:
                break

            in_code = any(span[0] == StyleKind.CODE for span, _ in stack)
            char = text[offset]
            if in_code:
                out.append(char)
            elif char == BULLET_GLYPH and text[offset + 1 : offset + 2] == " " and (
                offset + 2 in item_starts
            ):
                out.append(self._bullet_marker(text, offset, item_starts, markers))
            else:
                at_line_start = self._at_line_start(text, offset)
                if at_line_start and char.isdigit():
                    match = ORDERED_MARKER_PATTERN.match(text, offset)
                    if match:
                        escape_at = match.end() - 1
                if offset == escape_at:
                    out.append("\\" + char)
                else:
                    out.append(self._escape(text, offset, at_line_start))
            offset += 1

        if stack:
            logger.warning("Closing %d unterminated delimiters at end of document", len(stack))
            while stack:
                out.append(stack.pop()[1])

        return "".join(out)

    def write(self, document: StyledDocument, sink: TextIO) -> None:
        """Export a document and write it to a text sink in one call.

        Raises:
            UnbalancedSpan: If the document is corrupted (nothing is written)
            ExportIOError: If the sink rejects the write
        """
        markdown = self.export(document)
        try:
            sink.write(markdown)
            flush = getattr(sink, "flush", None)
            if flush is not None:
                flush()
        except (OSError, ValueError) as e:
            raise ExportIOError(f"Failed to write Markdown: {e}") from e

    # ------------------------------------------------------------------
    # Preparation
    # ------------------------------------------------------------------

    def _collect_links(self, document: StyledDocument) -> dict[int, tuple[int, str]]:
        links: dict[int, tuple[int, str]] = {}
        for position in document.link_marks:
            found = document.link_at(position)
            if found is None:
                logger.warning("Link mark at %s has no link span", position)
                continue
            span, url = found
            start = document.offset_of(span.start)
            links[start] = (document.offset_of(span.end), url)
        return links

    def _collect_inline(self, document: StyledDocument) -> list[_Range]:
        return [
            (span.kind, document.offset_of(span.start), document.offset_of(span.end))
            for span in document.spans
            if span.kind.is_inline_style and not span.is_empty
        ]

    def _split_at_links(
        self, spans: list[_Range], links: dict[int, tuple[int, str]]
    ) -> list[_Range]:
        """Cut inline spans at link boundaries so they nest with the brackets.

        Bold and italic may enclose a whole link. Code may not, since a
        code span cannot contain a link, so its backticks go inside.
        """
        result: list[_Range] = []
        for kind, start, end in spans:
            cuts: set[int] = set()
            for link_start, (link_end, _) in links.items():
                encloses = start <= link_start and link_end <= end
                if encloses and kind != StyleKind.CODE:
                    continue
                cuts.update(p for p in (link_start, link_end) if start < p < end)
            points = [start, *sorted(cuts), end]
            result.extend((kind, a, b) for a, b in zip(points, points[1:]) if a < b)
        return result

    def _empty_code_blocks(self, document: StyledDocument) -> set[int]:
        """Offsets of empty lines that hold a zero-width code span."""
        text = document.text
        blocks = set()
        for span in document.spans_of(StyleKind.CODE):
            if span.is_empty and span.start.column == 0:
                offset = document.offset_of(span.start)
                if text[offset : offset + 1] in ("", "\n"):
                    blocks.add(offset)
        return blocks

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _close(
        self,
        ending: list[_Range],
        stack: list[tuple[_Range, str]],
        out: list[str],
    ) -> None:
        """Pop the delimiters of every span ending here, innermost first."""
        remaining = set(ending)
        while remaining:
            if not stack:
                raise UnbalancedSpan(
                    f"Closing {len(remaining)} span(s) with no open delimiter"
                )
            span, closer = stack.pop()
            if span not in remaining:
                raise UnbalancedSpan(
                    f"{span[0].value} span {span[1]}..{span[2]} is still open "
                    f"where another span closes"
                )
            remaining.discard(span)
            out.append(closer)

    def _markers(self, text: str, span: _Range, is_block: bool) -> tuple[str, str]:
        kind, start, end = span
        if kind == StyleKind.BOLD:
            return BOLD_MARKER, BOLD_MARKER
        if kind == StyleKind.ITALIC:
            return ITALIC_MARKER, ITALIC_MARKER

        content = text[start:end]
        longest = max((len(run) for run in BACKTICK_RUN_PATTERN.findall(content)), default=0)
        if is_block:
            fence = "`" * max(3, longest + 1)
            return fence + "\n", "\n" + fence
        fence = "`" * (longest + 1)
        if content.startswith("`") or content.endswith("`") or (
            content.startswith(" ") and content.endswith(" ") and content.strip()
        ):
            return fence + " ", " " + fence
        return fence, fence

    def _is_code_block(self, text: str, span: _Range, line_style_starts: set[int]) -> bool:
        """A code span covering whole lines, not inside a heading or item."""
        _, start, end = span
        starts_line = start == 0 or text[start - 1] == "\n"
        ends_line = end == len(text) or text[end] == "\n"
        return starts_line and ends_line and start not in line_style_starts

    def _anchor_markup(
        self, document: StyledDocument, anchor: Anchor, text: str, offset: int
    ) -> str:
        if anchor.kind == AnchorKind.RULE:
            previous_line_blank = offset < 2 or text[offset - 2] == "\n"
            return RULE_MARKER if previous_line_blank else RULE_MARKER_AFTER_TEXT
        url = document.image_index.get(anchor.payload) if anchor.payload else None
        if url is None:
            logger.warning("Image at %s has no source URL, skipping", anchor.position)
            return ""
        return f"![]({self._destination(url)})"

    def _bullet_marker(
        self,
        text: str,
        offset: int,
        item_starts: set[int],
        markers: dict[int, str],
    ) -> str:
        """Pick the list marker for the bullet at ``offset``.

        A list separated from the previous one by a blank line switches
        markers; with the same marker the two would read back as one
        loose list.
        """
        line_start = text.rfind("\n", 0, offset) + 1
        indent = offset - line_start
        marker = markers.get(indent, BULLET_MARKER)
        if self._follows_list(text, line_start, item_starts):
            marker = BULLET_MARKER_ALT if marker == BULLET_MARKER else BULLET_MARKER
        markers[indent] = marker
        return marker

    def _follows_list(self, text: str, line_start: int, item_starts: set[int]) -> bool:
        """Whether the block above a blank line before ``line_start`` has list items."""
        if line_start < 2 or text[line_start - 2] != "\n":
            return False
        block_end = line_start - 2
        found = text.rfind("\n\n", 0, block_end)
        offset = found + 2 if found != -1 else 0
        for line in text[offset:block_end].split("\n"):
            stripped = line.lstrip(" ")
            bullet = offset + len(line) - len(stripped)
            if stripped.startswith(BULLET_GLYPH + " ") and bullet + 2 in item_starts:
                return True
            offset += len(line) + 1
        return False

    def _destination(self, url: str) -> str:
        if any(char in url for char in " ()"):
            return f"<{url}>"
        return url

    # ------------------------------------------------------------------
    # Escaping
    # ------------------------------------------------------------------

    def _at_line_start(self, text: str, offset: int) -> bool:
        """Whether only indentation (or a list bullet) precedes ``offset`` on its line."""
        line_start = text.rfind("\n", 0, offset) + 1
        lead = text[line_start:offset].strip()
        return lead in ("", BULLET_GLYPH)

    def _escape(self, text: str, offset: int, at_line_start: bool) -> str:
        char = text[offset]
        if char in ALWAYS_ESCAPED:
            return "\\" + char
        if at_line_start and char in LINE_START_ESCAPED:
            return "\\" + char
        if char == "_":
            before = text[offset - 1] if offset > 0 else " "
            after = text[offset + 1] if offset + 1 < len(text) else " "
            if not (before.isalnum() and after.isalnum()):
                return "\\_"
        elif char == "&" and ENTITY_PATTERN.match(text, offset):
            return "\\&"
        elif char == "<" and text[offset + 1 : offset + 2].isalpha():
            return "\\<"
        return char
