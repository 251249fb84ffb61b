"""
Image result model and prompt cache lookup.

An ImageResult is what a provider resolves a prompt to: a file stored
under the served image directory, a remote URL, or a labeled
placeholder image when resolution failed.
"""

from dataclasses import dataclass
from enum import Enum
from html import escape
from typing import Mapping, Optional
from urllib.parse import quote
import re


# src attribute of a legacy cache value stored as a full <img> element
IMG_SRC_PATTERN = re.compile(r"""<img\b[^>]*?\bsrc\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)


class ImageSource(str, Enum):
    """Where an image reference points."""

    LOCAL = "local"
    REMOTE = "remote"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class ImageResult:
    """
    Resolved image for one prompt.

    Attributes:
        prompt: Image description the result was resolved from
        reference: Bare path or URL, ready to insert as an image source
        source: Kind of reference
        reason: Failure reason for placeholder results
    """

    prompt: str
    reference: str
    source: ImageSource
    reason: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.source == ImageSource.PLACEHOLDER

    @property
    def is_cacheable(self) -> bool:
        """Placeholders are retried on the next request rather than cached."""
        return not self.is_placeholder

    def to_img_tag(self, alt: Optional[str] = None) -> str:
        """Render the result as an <img> element."""
        alt_text = alt if alt is not None else self.prompt
        return f'<img src="{escape(self.reference)}" alt="{escape(alt_text)}">'

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/debugging."""
        return {
            "prompt": self.prompt,
            "reference": self.reference,
            "source": self.source.value,
            "reason": self.reason,
        }


def normalize_reference(value: str) -> str:
    """
    Return the bare image reference for a cache value.

    Cache values are normally bare paths; clients of older versions
    stored complete <img> elements, whose src is extracted here.
    """
    if not value:
        return value
    match = IMG_SRC_PATTERN.search(value)
    if match:
        return match.group(2)
    return value.strip()


def lookup_cached_image(prompt: str, cache: Optional[Mapping[str, str]]) -> Optional[str]:
    """
    Look up a prompt in a client supplied prompt to image mapping.

    Exact, case-sensitive match. Cached files are trusted as-is and
    never revalidated against the image directory.

    Returns:
        Bare image reference on a hit, None on a miss
    """
    if not cache:
        return None
    value = cache.get(prompt)
    if not value:
        return None
    return normalize_reference(value)


def placeholder_reference(reason: str, base_url: str, size: str = "1024x1024") -> str:
    """
    Build a placeholder image URL that displays ``reason``.

    Every non-alphanumeric character of the reason is percent-encoded.
    """
    encoded = quote(reason, safe="")
    return f"{base_url.rstrip('/')}/{size}?text={encoded}"


def placeholder_result(prompt: str, reason: str, base_url: str, size: str = "1024x1024") -> ImageResult:
    """Build a placeholder ImageResult carrying a failure reason."""
    return ImageResult(
        prompt=prompt,
        reference=placeholder_reference(reason, base_url, size),
        source=ImageSource.PLACEHOLDER,
        reason=reason,
    )
