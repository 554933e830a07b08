"""Tests for the editor session."""

import threading

import pytest
from pathlib import Path

from inkpad.config import Settings
from inkpad.core.registry import UnknownDocument
from inkpad.core.session import EditorSession
from inkpad.core.source import Source, SourceError
from inkpad.formatting.document import Position, Span
from inkpad.formatting.exporter import ExportIOError
from inkpad.formatting.styles import StyleKind
from inkpad.resolvers import LocalImageResolver, PreloadedImageResolver


def P(line: int, column: int) -> Position:
    return Position(line, column)


@pytest.fixture
def session(settings: Settings):
    with EditorSession(settings=settings) as session:
        yield session


class TestOpening:
    """Tests for opening documents."""

    def test_new_document(self, session):
        """Test that new documents are empty and untitled."""
        doc_id = session.new_document()

        assert session.document(doc_id).text == ""
        assert session.title(doc_id) == "Untitled"

    def test_open_text(self, session):
        """Test importing Markdown into a new document."""
        doc_id = session.open_text("# Hi\n")

        assert session.document(doc_id).spans == [Span(StyleKind.H1, P(0, 0), P(0, 2))]

    def test_open_source_resolves_relative_images(
        self, settings, tmp_path: Path, png_file: Path
    ):
        """Test that images are found next to the Markdown file."""
        note = tmp_path / "note.md"
        note.write_text("![](pic.png)\n", encoding="utf-8")

        with EditorSession(resolver=LocalImageResolver(), settings=settings) as session:
            doc = session.document(session.open_source(Source.from_path(note)))

        assert len(doc.anchors) == 1
        assert list(doc.image_index.values()) == ["pic.png"]

    def test_max_image_width_setting(self, tmp_path: Path, png_file: Path):
        """Test that the configured width limit is applied."""
        note = tmp_path / "note.md"
        note.write_text("![](pic.png)\n", encoding="utf-8")
        settings = Settings(INKPAD_MAX_IMAGE_WIDTH=100)

        with EditorSession(resolver=LocalImageResolver(), settings=settings) as session:
            doc = session.document(session.open_source(Source.from_path(note)))

        assert doc.anchors[0].payload.width == 100

    def test_missing_images_are_dropped(self, session):
        """Test importing without a resolver."""
        doc_id = session.open_text("a ![](x.png) b\n")

        assert session.document(doc_id).anchors == []

    def test_open_missing_file(self, session, tmp_path: Path):
        """Test opening a file that does not exist."""
        with pytest.raises(SourceError):
            session.open_source(Source.from_path(tmp_path / "missing.md"))

    def test_close(self, session):
        """Test that closed documents are gone."""
        doc_id = session.new_document()
        session.close(doc_id)

        with pytest.raises(UnknownDocument):
            session.document(doc_id)


class TestEditing:
    """Tests for editing operations."""

    def test_apply_style_marks_modified(self, session):
        """Test toolbar styling."""
        doc_id = session.open_text("hello world\n")

        session.apply_style(doc_id, StyleKind.BOLD, P(0, 0), P(0, 5))
        session.apply_style(doc_id, StyleKind.H2, P(0, 3), P(0, 3))

        assert session.export(doc_id) == "## **hello** world\n"
        assert session.title(doc_id) == "Untitled*"

    def test_text_changed_runs_autoformat(self, session):
        """Test the heading trigger through the session."""
        doc_id = session.new_document()
        session.insert_text(doc_id, 0, "## \n")

        cursor = session.text_changed(doc_id, 4)

        assert cursor == 1
        assert session.document(doc_id).spans == [Span(StyleKind.H2, P(0, 0), P(0, 0))]

    def test_text_changed_without_trigger(self, session):
        """Test that ordinary typing is left alone."""
        doc_id = session.open_text("text\n")

        assert session.text_changed(doc_id, 5) is None
        assert session.title(doc_id) == "Untitled"

    def test_delete_range(self, session):
        """Test deleting through the session."""
        doc_id = session.open_text("**bold** text\n")
        session.delete_range(doc_id, 0, 5)

        assert session.export(doc_id) == "text\n"

    def test_concurrent_edits(self, session):
        """Test that edits on one document are serialized."""
        doc_id = session.new_document()

        def type_chars():
            for _ in range(50):
                session.insert_text(doc_id, 0, "x")

        threads = [threading.Thread(target=type_chars) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert session.document(doc_id).text == "x" * 200


class TestSaving:
    """Tests for saving documents."""

    def test_save_as_and_save(self, session, tmp_path: Path):
        """Test saving to a new file and then in place."""
        path = tmp_path / "note.md"
        doc_id = session.open_text("# Title\n")
        session.insert_text(doc_id, 5, "s")

        session.save(doc_id, Source.from_path(path))

        assert path.read_text(encoding="utf-8") == "# Titles\n"
        assert not session.title(doc_id).endswith("*")

        session.insert_text(doc_id, 0, "My ")
        session.save(doc_id)

        assert path.read_text(encoding="utf-8") == "# My Titles\n"

    def test_save_untitled_needs_target(self, session):
        """Test that untitled documents need a destination."""
        doc_id = session.new_document()

        with pytest.raises(SourceError):
            session.save(doc_id)

    def test_failed_save_keeps_state(self, session, tmp_path: Path):
        """Test that a failed write leaves the document modified."""
        doc_id = session.open_text("text\n")
        session.insert_text(doc_id, 0, "more ")
        target = Source.from_path(tmp_path / "missing" / "note.md")

        with pytest.raises(ExportIOError):
            session.save(doc_id, target)

        assert session.title(doc_id) == "Untitled*"

    def test_unencodable_text_fails_cleanly(self, tmp_path: Path):
        """Test that text the configured encoding cannot hold raises ExportIOError."""
        settings = Settings(
            INKPAD_MAX_IMAGE_WIDTH=800,
            INKPAD_IMAGE_WORKERS=1,
            INKPAD_ENCODING="latin-1",
            INKPAD_LOG_LEVEL="WARNING",
        )
        target = tmp_path / "note.md"
        with EditorSession(settings=settings) as session:
            doc_id = session.open_text("snowman ☃\n")
            session.insert_text(doc_id, 0, "a ")

            with pytest.raises(ExportIOError):
                session.save(doc_id, Source.from_path(target))

            assert not target.exists()
            assert list(tmp_path.iterdir()) == []
            assert session.title(doc_id).endswith("*")

    def test_open_edit_save_round_trip(self, session, tmp_markdown_file: Path):
        """Test a full edit cycle on a file."""
        doc_id = session.open_source(Source.from_path(tmp_markdown_file))
        original = session.document(doc_id).snapshot()

        session.save(doc_id)
        reopened = session.open_source(Source.from_path(tmp_markdown_file))

        assert session.document(reopened).snapshot() == original

    def test_preloaded_images(self, settings, red_image):
        """Test that sessions accept any resolver."""
        resolver = PreloadedImageResolver({"a.png": red_image})
        with EditorSession(resolver=resolver, settings=settings) as session:
            doc_id = session.open_text("![](a.png)\n")

            assert session.export(doc_id) == "![](a.png)\n"
