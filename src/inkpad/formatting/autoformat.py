"""Live autoformat trigger.

Turns a just-finished ``# heading`` line into a styled heading while the
user types, without reparsing the document.
"""

import logging
import re
from typing import Optional

from inkpad.formatting.document import StyledDocument
from inkpad.formatting.styles import StyleKind


logger = logging.getLogger(__name__)

HEADING_TRIGGER_PATTERN = re.compile(r"(#{1,6}) ")


def autoformat_heading(document: StyledDocument, cursor: int) -> Optional[int]:
    """Style the line before the cursor as a heading if it starts with ``#``.

    Matches when the cursor sits right after a newline and the previous
    line starts with one to six ``#`` characters followed by a space. The
    prefix is removed and the rest of that line gets h1, h2 or h3 (three
    or more ``#`` all give h3), toggled the same way as the toolbar does.

    Args:
        document: The document being edited
        cursor: Cursor offset after the text change

    Returns:
        The cursor offset after the rewrite, or None if nothing matched
    """
    text = document.text
    if not 0 < cursor <= len(text) or text[cursor - 1] != "\n":
        return None

    line_end = cursor - 1
    line_start = text.rfind("\n", 0, line_end) + 1
    match = HEADING_TRIGGER_PATTERN.match(text, line_start, line_end)
    if match is None:
        return None

    kind = StyleKind.heading(len(match.group(1)))
    prefix_length = match.end() - line_start
    logger.debug(
        "Autoformat %s at offset %d (prefix %r)", kind.value, line_start, match.group(0)
    )

    document.delete_range(line_start, match.end())
    line_position = document.position_at(line_start)
    line_end_position = document.position_at(line_end - prefix_length)
    document.apply_line_tag(kind, line_position, line_end_position)
    return cursor - prefix_length
