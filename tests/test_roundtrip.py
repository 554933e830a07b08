"""Round-trip tests: import -> export -> import preserves structure."""

import pytest

from inkpad.formatting.importer import MarkdownImporter
from inkpad.formatting.exporter import MarkdownExporter
from inkpad.resolvers.base import PreloadedImageResolver


CORPUS = [
    "# Title\n\nHello **world**\n",
    "## Section\n\n### Sub\n",
    "*a* and **b** and `c`\n",
    "***both***\n",
    "*outer **inner** outer*\n",
    "[text](http://u)\n",
    "see [the docs](http://example.com/a_b) now\n",
    "- one\n- two\n",
    "- a\n  - b\n- c\n",
    "- **bold** item\n\nafter\n",
    "1. first\n2. second\n",
    "a\n\n---\n\nb\n",
    "```\nprint(1)\nx = *y*\n```\n",
    "line one\nline two\n",
    "2 \\* 3 = 6\n",
    "\\# not a heading\n",
    "snake_case and \\_under\\_\n",
    "## \n",
    "# Title\n\n- item\n\n```\ncode\n```\n\n---\n\nend\n",
    "[`a`](u)\n",
    "see [`f`](http://u) now\n",
    "[a **b** c](http://u)\n",
    "- a\n- \n- b\n",
    "- a\n1. b\n",
    "- a\n\n- b\n",
    "```\n\n```\n",
    "```\n```\n\nafter\n",
]


class TestRoundTrip:
    """Tests for round-trip fidelity over a corpus."""

    @pytest.mark.parametrize("markdown", CORPUS)
    def test_structure_survives(self, importer, exporter, markdown):
        """Test that re-importing the export gives an equal document."""
        first = importer.import_markdown(markdown)
        exported = exporter.export(first)
        second = MarkdownImporter().import_markdown(exported)

        assert second.snapshot() == first.snapshot()

    @pytest.mark.parametrize("markdown", CORPUS)
    def test_export_is_stable(self, importer, exporter, markdown):
        """Test that exporting twice gives the same text."""
        exported = exporter.export(importer.import_markdown(markdown))

        assert exporter.export(importer.import_markdown(exported)) == exported

    def test_canonical_examples_reproduce_exactly(self, importer, exporter):
        """Test inputs that are already in canonical form."""
        for markdown in ("# Title\n\nHello **world**\n", "[text](http://u)\n"):
            assert exporter.export(importer.import_markdown(markdown)) == markdown

    def test_code_link_keeps_link(self, importer, exporter):
        """Test that a code label stays a link with plain text."""
        doc = importer.import_markdown("see [`f`](http://u) now\n")
        again = importer.import_markdown(exporter.export(doc))

        assert again.text == "see f now\n"
        assert again.link_marks

    def test_empty_item_has_no_glyph(self, importer, exporter):
        """Test that an empty list item exports as a marker."""
        exported = exporter.export(importer.import_markdown("- a\n- \n- b\n"))

        assert "•" not in exported

    def test_adjacent_lists_stay_apart(self, importer, exporter):
        """Test that two lists in a row do not merge."""
        first = importer.import_markdown("- a\n1. b\n")
        exported = exporter.export(first)

        assert exported == "- a\n\n* b\n"
        assert importer.import_markdown(exported).text == "• a\n\n• b\n"

    def test_images_survive(self, red_image):
        """Test round trip with resolved images."""
        resolver = PreloadedImageResolver({"a.png": red_image})
        markdown = "before ![](a.png) after\n"

        first = MarkdownImporter().import_markdown(markdown, resolver)
        exported = MarkdownExporter().export(first)
        second = MarkdownImporter().import_markdown(exported, resolver)

        assert exported == markdown
        assert second.snapshot() == first.snapshot()
