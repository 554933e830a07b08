"""Markdown <-> styled document transcoding."""

from inkpad.formatting.styles import (
    StyleKind,
    StyleAttributes,
    STYLE_TABLE,
    get_attributes,
)
from inkpad.formatting.document import (
    Position,
    Span,
    Anchor,
    AnchorKind,
    ImageHandle,
    StyledDocument,
)
from inkpad.formatting.importer import (
    MarkdownImporter,
    ImportResult,
    MalformedMarkup,
    AttachImage,
    AttachLink,
    InsertRule,
)
from inkpad.formatting.exporter import MarkdownExporter, UnbalancedSpan, ExportIOError
from inkpad.formatting.autoformat import autoformat_heading

__all__ = [
    "StyleKind",
    "StyleAttributes",
    "STYLE_TABLE",
    "get_attributes",
    "Position",
    "Span",
    "Anchor",
    "AnchorKind",
    "ImageHandle",
    "StyledDocument",
    "MarkdownImporter",
    "ImportResult",
    "MalformedMarkup",
    "AttachImage",
    "AttachLink",
    "InsertRule",
    "MarkdownExporter",
    "UnbalancedSpan",
    "ExportIOError",
    "autoformat_heading",
]
