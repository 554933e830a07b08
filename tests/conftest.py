"""Pytest fixtures for Inkpad tests."""

import pytest
from pathlib import Path

from PIL import Image

from inkpad.config import Settings
from inkpad.formatting.document import ImageHandle, StyledDocument
from inkpad.formatting.exporter import MarkdownExporter
from inkpad.formatting.importer import MarkdownImporter


@pytest.fixture
def sample_markdown() -> str:
    """Sample note covering the supported subset."""
    return (
        "# Title\n"
        "\n"
        "Hello **world**, this is *Inkpad*.\n"
        "\n"
        "## Lists\n"
        "\n"
        "- one\n"
        "- two with `code`\n"
        "\n"
        "See [the docs](http://example.com/docs).\n"
        "\n"
        "---\n"
        "\n"
        "```\n"
        "print(1)\n"
        "```\n"
    )


@pytest.fixture
def importer() -> MarkdownImporter:
    return MarkdownImporter()


@pytest.fixture
def exporter() -> MarkdownExporter:
    return MarkdownExporter()


@pytest.fixture
def import_doc(importer: MarkdownImporter):
    """Import Markdown without images into a finished document."""

    def _import(text: str) -> StyledDocument:
        return importer.import_markdown(text)

    return _import


@pytest.fixture
def red_image() -> Image.Image:
    """A small decoded image."""
    return Image.new("RGB", (40, 20), "red")


@pytest.fixture
def image_handle(red_image: Image.Image) -> ImageHandle:
    return ImageHandle(image=red_image, format="png")


@pytest.fixture
def png_file(tmp_path: Path) -> Path:
    """A PNG image on disk."""
    path = tmp_path / "pic.png"
    Image.new("RGB", (200, 100), "blue").save(path, format="PNG")
    return path


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        INKPAD_MAX_IMAGE_WIDTH=800,
        INKPAD_IMAGE_WORKERS=2,
        INKPAD_ENCODING="utf-8",
        INKPAD_LOG_LEVEL="WARNING",
    )


@pytest.fixture
def tmp_markdown_file(tmp_path: Path, sample_markdown: str) -> Path:
    """Create a temporary Markdown file for testing."""
    file_path = tmp_path / "note.md"
    file_path.write_text(sample_markdown, encoding="utf-8")
    return file_path
