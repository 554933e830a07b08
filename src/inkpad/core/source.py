"""Where a document comes from and is saved to."""

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlparse

from inkpad.config import get_settings


logger = logging.getLogger(__name__)

UNTITLED = "Untitled"


class SourceError(Exception):
    """The source cannot be read from or written to."""

    pass


class SourceKind(Enum):
    UNTITLED = "untitled"
    FILE = "file"
    URL = "url"


@dataclass(frozen=True)
class Source:
    """Identity of a document's backing text.

    Attributes:
        kind: Untitled, local file or remote URL
        path: File path (files only)
        url: Document URL (URLs only)
    """

    kind: SourceKind = SourceKind.UNTITLED
    path: Optional[Path] = None
    url: Optional[str] = None

    @classmethod
    def untitled(cls) -> "Source":
        return cls()

    @classmethod
    def from_path(cls, path: Path) -> "Source":
        return cls(kind=SourceKind.FILE, path=Path(path))

    @classmethod
    def from_url(cls, url: str) -> "Source":
        return cls(kind=SourceKind.URL, url=url)

    @property
    def is_writable(self) -> bool:
        return self.kind == SourceKind.FILE

    @property
    def title(self) -> str:
        """Display title: the path with the home directory shown as ``~``."""
        if self.kind == SourceKind.FILE and self.path is not None:
            home = Path.home()
            if self.path.is_absolute() and self.path.is_relative_to(home):
                return str(Path("~") / self.path.relative_to(home))
            return str(self.path)
        if self.kind == SourceKind.URL and self.url:
            return self.url
        return UNTITLED

    def __str__(self) -> str:
        return self.title

    def resolve(self, reference: str) -> str:
        """Resolve an image or link reference against this source.

        Absolute URLs and absolute paths are returned unchanged.
        """
        scheme = urlparse(reference).scheme
        # single letters are Windows drive names, not schemes
        if len(scheme) > 1 and scheme != "file":
            return reference
        if self.kind == SourceKind.URL and self.url:
            return urljoin(self.url, reference)
        if self.kind == SourceKind.FILE and self.path is not None:
            if reference.startswith("file:") or Path(reference).is_absolute():
                return reference
            return str(self.path.parent / reference)
        return reference

    def load(self, encoding: Optional[str] = None) -> str:
        """Read the full Markdown text of a file source.

        Raises:
            SourceError: For untitled and URL sources, or unreadable files
        """
        if self.kind != SourceKind.FILE or self.path is None:
            raise SourceError(f"Cannot load from {self.title}: not a local file")
        encoding = encoding or get_settings().encoding
        try:
            return self.path.read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError(f"Cannot read {self.path}: {e}") from e

    def write(self, text: str, encoding: Optional[str] = None) -> None:
        """Replace the file's contents atomically.

        The text goes to a temporary file next to the target, which then
        replaces it, so a failed write leaves the old file untouched.

        Raises:
            SourceError: For sources that are not local files
            OSError: If writing or replacing fails
            UnicodeEncodeError: If the text cannot be encoded
        """
        if not self.is_writable or self.path is None:
            raise SourceError(f"Cannot save to {self.title}: not a local file")
        encoding = encoding or get_settings().encoding
        directory = self.path.parent
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
                handle.write(text)
            os.replace(temp_name, self.path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %d characters to %s", len(text), self.path)
