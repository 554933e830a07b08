"""Local file image resolver."""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from PIL import Image, UnidentifiedImageError

from inkpad.formatting.document import ImageHandle
from inkpad.resolvers.base import ImageResolutionFailure, ImageResolver, fit_width


logger = logging.getLogger(__name__)


class LocalImageResolver(ImageResolver):
    """Load images from the local filesystem with Pillow.

    Handles plain paths and ``file://`` URLs; relative paths are taken
    from ``base_dir``. Remote URLs are reported as failures, since
    network transport belongs to the host application.
    """

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        """Initialize the resolver.

        Args:
            base_dir: Directory that relative image paths are relative to
        """
        self.base_dir = base_dir

    def path_for(self, url: str) -> Path:
        """Map an image URL to a filesystem path."""
        parsed = urlparse(url)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        # single letters are Windows drive names, not schemes
        if parsed.scheme and len(parsed.scheme) > 1:
            raise ImageResolutionFailure(f"Not a local image: {url}")
        path = Path(unquote(url))
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    def fetch(self, url: str, max_width: Optional[int] = None) -> ImageHandle:
        path = self.path_for(url)
        try:
            with Image.open(path) as opened:
                opened.load()
                image_format = (opened.format or path.suffix.lstrip(".")).lower()
                image = fit_width(opened.copy(), max_width)
        except FileNotFoundError as e:
            raise ImageResolutionFailure(f"Image file not found: {path}") from e
        except (UnidentifiedImageError, OSError) as e:
            raise ImageResolutionFailure(f"Cannot decode {path}: {e}") from e

        logger.debug("Loaded %s (%dx%d)", path, image.width, image.height)
        return ImageHandle(image=image, format=image_format)
