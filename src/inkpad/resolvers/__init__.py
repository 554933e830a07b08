"""Image resolvers: turn image URLs found during import into decoded images."""

from inkpad.resolvers.base import (
    ImageResolver,
    ImageResolutionFailure,
    PreloadedImageResolver,
)
from inkpad.resolvers.local import LocalImageResolver

__all__ = [
    "ImageResolver",
    "ImageResolutionFailure",
    "PreloadedImageResolver",
    "LocalImageResolver",
]
