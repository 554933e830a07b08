"""Style tag registry.

The fixed set of style kinds an Inkpad document can carry, together with
the rendering attributes the editing surface uses to display them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# Heading scale factors relative to the body font
H1_SCALE = 2.0
H2_SCALE = 1.6
H3_SCALE = 1.2

BOLD_WEIGHT = 700


class StyleKind(Enum):
    """Closed enumeration of style kinds."""

    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"
    LINK = "link"
    ITEM = "item"

    @classmethod
    def heading(cls, level: int) -> "StyleKind":
        """Map a Markdown heading level to a heading kind (3 and deeper -> H3)."""
        if level <= 1:
            return cls.H1
        if level == 2:
            return cls.H2
        return cls.H3

    @property
    def heading_level(self) -> Optional[int]:
        """Heading level for H1-H3, None for everything else."""
        return _HEADING_LEVELS.get(self)

    @property
    def is_line_style(self) -> bool:
        """Whether this style applies to whole lines."""
        return self in _LINE_STYLES

    @property
    def is_inline_style(self) -> bool:
        """Whether this style is written with paired inline delimiters."""
        return self in _INLINE_STYLES


_HEADING_LEVELS = {StyleKind.H1: 1, StyleKind.H2: 2, StyleKind.H3: 3}
_LINE_STYLES = frozenset({StyleKind.H1, StyleKind.H2, StyleKind.H3, StyleKind.ITEM})
_INLINE_STYLES = frozenset({StyleKind.BOLD, StyleKind.ITALIC, StyleKind.CODE})


@dataclass(frozen=True)
class StyleAttributes:
    """Rendering attributes for one style kind.

    Attributes:
        weight: Font weight (None keeps the surrounding weight)
        scale: Font scale factor relative to body text
        italic: Whether glyphs are slanted
        font: Font family override
        foreground: Text color name
        underline: Whether text is underlined
        left_margin: Extra left margin in pixels
    """

    weight: Optional[int] = None
    scale: float = 1.0
    italic: bool = False
    font: Optional[str] = None
    foreground: Optional[str] = None
    underline: bool = False
    left_margin: int = 0


STYLE_TABLE: dict[StyleKind, StyleAttributes] = {
    StyleKind.H1: StyleAttributes(weight=BOLD_WEIGHT, scale=H1_SCALE),
    StyleKind.H2: StyleAttributes(weight=BOLD_WEIGHT, scale=H2_SCALE),
    StyleKind.H3: StyleAttributes(weight=BOLD_WEIGHT, scale=H3_SCALE),
    StyleKind.BOLD: StyleAttributes(weight=BOLD_WEIGHT),
    StyleKind.ITALIC: StyleAttributes(italic=True),
    StyleKind.CODE: StyleAttributes(font="Courier New"),
    StyleKind.LINK: StyleAttributes(foreground="blue", underline=True),
    StyleKind.ITEM: StyleAttributes(left_margin=12),
}


def get_attributes(kind: StyleKind) -> StyleAttributes:
    """Look up the rendering attributes for a style kind."""
    return STYLE_TABLE[kind]
