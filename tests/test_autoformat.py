"""Tests for the live heading autoformat trigger."""

from inkpad.formatting.autoformat import autoformat_heading
from inkpad.formatting.document import Position, Span, StyledDocument
from inkpad.formatting.exporter import MarkdownExporter
from inkpad.formatting.styles import StyleKind


def P(line: int, column: int) -> Position:
    return Position(line, column)


class TestAutoformatHeading:
    """Tests for turning typed '#' prefixes into headings."""

    def test_empty_heading_line(self):
        """Test typing '## ' then Enter on an empty line."""
        doc = StyledDocument(text="## \n")

        cursor = autoformat_heading(doc, 4)

        assert cursor == 1
        assert doc.text == "\n"
        assert doc.spans == [Span(StyleKind.H2, P(0, 0), P(0, 0))]

    def test_heading_with_text(self):
        """Test a finished heading line."""
        doc = StyledDocument(text="intro\n# Hello\n")

        cursor = autoformat_heading(doc, 14)

        assert cursor == 12
        assert doc.text == "intro\nHello\n"
        assert doc.spans == [Span(StyleKind.H1, P(1, 0), P(1, 5))]

    def test_deep_prefix_gives_h3(self):
        """Test that four or more '#' give h3."""
        doc = StyledDocument(text="#### Deep\n")

        autoformat_heading(doc, 10)

        assert doc.spans == [Span(StyleKind.H3, P(0, 0), P(0, 4))]

    def test_typing_into_the_new_heading(self):
        """Test that text typed on the empty heading line is styled."""
        doc = StyledDocument(text="## \n")
        autoformat_heading(doc, 4)

        doc.insert_text(0, "Notes")

        assert doc.spans == [Span(StyleKind.H2, P(0, 0), P(0, 5))]
        assert MarkdownExporter().export(doc) == "## Notes\n"

    def test_spans_after_the_line_shift(self):
        """Test that styles on later lines follow the deletion."""
        doc = StyledDocument(text="# A\nbold\n")
        doc.add_span(StyleKind.BOLD, P(1, 0), P(1, 4))

        autoformat_heading(doc, 4)

        assert Span(StyleKind.BOLD, P(1, 0), P(1, 4)) in doc.spans
        assert Span(StyleKind.H1, P(0, 0), P(0, 1)) in doc.spans

    def test_no_match(self):
        """Test lines that do not trigger."""
        for text, cursor in [
            ("plain\n", 6),
            ("#no space\n", 10),
            ("####### seven\n", 14),
            (" # indented\n", 12),
        ]:
            doc = StyledDocument(text=text)
            assert autoformat_heading(doc, cursor) is None
            assert doc.text == text
            assert doc.spans == []

    def test_cursor_not_after_newline(self):
        """Test that the trigger only fires right after a line break."""
        doc = StyledDocument(text="# Title")

        assert autoformat_heading(doc, 7) is None
        assert autoformat_heading(doc, 0) is None
