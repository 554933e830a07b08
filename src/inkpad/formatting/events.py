"""Linear Markdown event stream.

Flattens markdown-it-py's token stream (block tokens with nested inline
children) into a single sequence of Start/End/Text events, the shape the
importer consumes.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Union

from markdown_it import MarkdownIt
from markdown_it.token import Token


logger = logging.getLogger(__name__)


class TagKind(Enum):
    """Container constructs that open and close in the event stream."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"
    BLOCKQUOTE = "blockquote"
    LIST = "list"
    ITEM = "item"
    CODE_BLOCK = "code_block"
    EMPHASIS = "emphasis"
    STRONG = "strong"
    LINK = "link"
    IMAGE = "image"


@dataclass(frozen=True)
class Tag:
    """A container construct.

    Attributes:
        kind: Which construct this is
        level: Heading level (headings only)
        url: Destination (links and images only)
    """

    kind: TagKind
    level: int = 0
    url: str = ""


@dataclass(frozen=True)
class Start:
    tag: Tag


@dataclass(frozen=True)
class End:
    tag: Tag


@dataclass(frozen=True)
class Text:
    text: str


@dataclass(frozen=True)
class Code:
    """An inline code span."""

    text: str


@dataclass(frozen=True)
class SoftBreak:
    pass


@dataclass(frozen=True)
class HardBreak:
    pass


@dataclass(frozen=True)
class Rule:
    """A thematic break."""

    pass


Event = Union[Start, End, Text, Code, SoftBreak, HardBreak, Rule]


_BLOCK_TAGS = {
    "paragraph": TagKind.PARAGRAPH,
    "heading": TagKind.HEADING,
    "blockquote": TagKind.BLOCKQUOTE,
    "bullet_list": TagKind.LIST,
    "ordered_list": TagKind.LIST,
    "list_item": TagKind.ITEM,
}

_INLINE_TAGS = {
    "strong": TagKind.STRONG,
    "em": TagKind.EMPHASIS,
}


def make_parser() -> MarkdownIt:
    """Create the CommonMark parser used for import (raw HTML disabled)."""
    return MarkdownIt("commonmark", {"html": False})


def markdown_events(
    markdown_text: str, parser: Optional[MarkdownIt] = None
) -> Iterator[Event]:
    """Parse Markdown and yield its events in document order.

    Args:
        markdown_text: Markdown source
        parser: Optional preconfigured markdown-it instance

    Yields:
        Start/End/Text/Code/SoftBreak/HardBreak/Rule events
    """
    md = parser or make_parser()
    for token in md.parse(markdown_text):
        yield from _block_events(token)


def _block_events(token: Token) -> Iterator[Event]:
    logger.debug("Token: type=%s, tag=%s, nesting=%s", token.type, token.tag, token.nesting)

    if token.type == "inline":
        for child in token.children or []:
            yield from _inline_events(child)
        return

    if token.type in ("fence", "code_block"):
        tag = Tag(TagKind.CODE_BLOCK)
        yield Start(tag)
        if token.content:
            yield Text(token.content)
        yield End(tag)
        return

    if token.type == "hr":
        yield Rule()
        return

    name, _, suffix = token.type.rpartition("_")
    kind = _BLOCK_TAGS.get(name)
    if kind is None or suffix not in ("open", "close"):
        return
    # Tight list items wrap their text in hidden paragraphs
    if kind == TagKind.PARAGRAPH and token.hidden:
        return

    level = int(token.tag[1:]) if kind == TagKind.HEADING else 0
    tag = Tag(kind, level=level)
    yield Start(tag) if suffix == "open" else End(tag)


def _inline_events(token: Token) -> Iterator[Event]:
    if token.type == "text":
        if token.content:
            yield Text(token.content)
    elif token.type == "softbreak":
        yield SoftBreak()
    elif token.type == "hardbreak":
        yield HardBreak()
    elif token.type == "code_inline":
        yield Code(token.content)
    elif token.type == "link_open":
        yield Start(Tag(TagKind.LINK, url=str(token.attrGet("href") or "")))
    elif token.type == "link_close":
        yield End(Tag(TagKind.LINK))
    elif token.type == "image":
        tag = Tag(TagKind.IMAGE, url=str(token.attrGet("src") or ""))
        yield Start(tag)
        for child in token.children or []:
            yield from _inline_events(child)
        yield End(tag)
    else:
        name, _, suffix = token.type.rpartition("_")
        kind = _INLINE_TAGS.get(name)
        if kind is None:
            logger.debug("Ignoring inline token %s", token.type)
            return
        tag = Tag(kind)
        yield Start(tag) if suffix == "open" else End(tag)
