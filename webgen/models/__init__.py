"""Models package initialization."""

from webgen.models.placeholder import PlaceholderToken, scan_placeholders, make_placeholder
from webgen.models.image_result import ImageResult, ImageSource, lookup_cached_image
from webgen.models.rate_limit import RateWindow

__all__ = [
    "PlaceholderToken",
    "scan_placeholders",
    "make_placeholder",
    "ImageResult",
    "ImageSource",
    "lookup_cached_image",
    "RateWindow",
]
