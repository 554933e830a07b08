"""Abstract base class for image resolvers."""

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional, Sequence

from PIL import Image

from inkpad.formatting.document import ImageHandle


logger = logging.getLogger(__name__)


class ImageResolutionFailure(Exception):
    """One image could not be fetched or decoded."""

    pass


class ImageResolver(ABC):
    """Abstract base class for image resolvers.

    A resolver turns the image URLs collected during import into decoded
    image handles. Resolution may block, so callers run it off the
    document's lock; a failure only affects its own image.
    """

    @abstractmethod
    def fetch(self, url: str, max_width: Optional[int] = None) -> ImageHandle:
        """Fetch and decode a single image.

        Args:
            url: Image location as written in the document (or resolved
                against the document's source)
            max_width: Maximum pixel width; wider images are scaled down

        Returns:
            The decoded image

        Raises:
            ImageResolutionFailure: If the image cannot be fetched or decoded
        """
        ...

    def resolve(
        self, urls: Sequence[str], max_width: Optional[int] = None
    ) -> list[Optional[ImageHandle]]:
        """Resolve every URL, in order.

        Args:
            urls: Image URLs in document order
            max_width: Maximum pixel width

        Returns:
            One handle per URL, None where resolution failed
        """
        handles: list[Optional[ImageHandle]] = []
        for url in urls:
            try:
                handles.append(self.fetch(url, max_width))
            except ImageResolutionFailure as e:
                logger.warning("Could not resolve image %s: %s", url, e)
                handles.append(None)
        return handles


def fit_width(image: Image.Image, max_width: Optional[int]) -> Image.Image:
    """Scale an image down to ``max_width`` keeping its aspect ratio."""
    if max_width is None or image.width <= max_width:
        return image
    height = max(1, round(image.height * max_width / image.width))
    return image.resize((max_width, height), Image.Resampling.LANCZOS)


class PreloadedImageResolver(ImageResolver):
    """Resolve URLs from images the editing surface already decoded.

    Each fetch yields a fresh handle, so the same URL placed twice gets
    two independent handles.
    """

    def __init__(self, images: Mapping[str, Image.Image]) -> None:
        self.images = dict(images)

    def fetch(self, url: str, max_width: Optional[int] = None) -> ImageHandle:
        image = self.images.get(url)
        if image is None:
            raise ImageResolutionFailure(f"No image loaded for {url}")
        return ImageHandle(image=fit_width(image, max_width), format=image.format)
