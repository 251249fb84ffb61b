"""
Image Service for downloading and storing provider images.

Downloads remote images, normalizes them to PNG and writes them
under the served image directory with random filenames.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional
import asyncio
import uuid

import httpx
import pillow_heif
from PIL import Image

from webgen.config import get_settings
from webgen.utils.logger import get_logger
from webgen.utils.validators import validate_image_content_type

pillow_heif.register_heif_opener()

logger = get_logger("services.image")


class ImageServiceError(Exception):
    """Base exception for image storage errors."""
    pass


class ImageDownloadError(ImageServiceError):
    """Raised when a remote image cannot be fetched."""
    pass


class ImageProcessingError(ImageServiceError):
    """Raised when downloaded bytes are not a usable image."""
    pass


class ImageStorageError(ImageServiceError):
    """Raised when a processed image cannot be written to disk."""
    pass


def resize_image(img: Image.Image, max_dimension: int) -> Image.Image:
    """
    Resize image if it exceeds max dimension.

    Preserves aspect ratio, only downsizes (never upscales).

    Args:
        img: PIL Image object
        max_dimension: Maximum allowed dimension

    Returns:
        Resized (or original) PIL Image
    """
    width, height = img.size
    longest_side = max(width, height)

    if longest_side <= max_dimension:
        return img

    ratio = max_dimension / longest_side
    new_width = int(width * ratio)
    new_height = int(height * ratio)

    resized = img.resize((new_width, new_height), Image.Resampling.LANCZOS)
    logger.debug(f"Image resized: {width}x{height} -> {new_width}x{new_height}")
    return resized


def convert_to_png(image_bytes: bytes, max_dimension: Optional[int] = None) -> bytes:
    """
    Convert image bytes (any format Pillow reads, HEIC included) to PNG.

    Args:
        image_bytes: Raw image data
        max_dimension: Maximum dimension (longest side), or None

    Returns:
        PNG image bytes

    Raises:
        ImageProcessingError: If the bytes cannot be decoded
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")

            if max_dimension:
                img = resize_image(img, max_dimension)

            output = BytesIO()
            img.save(output, format="PNG", optimize=True)
            return output.getvalue()

    except Exception as e:
        logger.error(f"Image conversion failed: {e}")
        raise ImageProcessingError(f"Failed to process image: {e}")


class ImageStore:
    """
    Append-only store of images under a served directory.

    Filenames are 128-bit random hex strings, so concurrent writers
    never collide and need no locking.

    Attributes:
        directory: Local directory files are written to
        url_prefix: URL path the directory is served under
        max_dimension: Longest side of stored images
    """

    def __init__(
        self,
        directory: Optional[str] = None,
        url_prefix: Optional[str] = None,
        max_dimension: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.directory = Path(directory or settings.generated_images_dir)
        self.url_prefix = (url_prefix or settings.generated_images_url_prefix).rstrip("/")
        self.max_dimension = max_dimension or settings.max_image_dimension

        self.client = client or httpx.AsyncClient(
            timeout=settings.download_timeout_seconds,
            follow_redirects=True,
        )
        self.directory.mkdir(parents=True, exist_ok=True)

        logger.info(f"ImageStore initialized: {self.directory} -> {self.url_prefix}")

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def download(self, url: str) -> bytes:
        """
        Download an image into memory.

        Raises:
            ImageDownloadError: On transport errors or non-200 responses
        """
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Image download failed: {e}")
            raise ImageDownloadError(f"Download failed: {e}")

        if response.status_code != 200:
            logger.warning(f"Image download returned HTTP {response.status_code}: {url[:80]}")
            raise ImageDownloadError(f"Download returned status {response.status_code}")

        content_type = response.headers.get("content-type")
        if content_type and not validate_image_content_type(content_type):
            logger.warning(f"Unexpected content type: {content_type}")
            # Try to process anyway - Pillow decides

        return response.content

    def save(self, image_bytes: bytes) -> str:
        """
        Normalize bytes to PNG and write them under a random name.

        Returns:
            Served path of the stored file, e.g. /generated-images/<hex>.png
        """
        png_bytes = convert_to_png(image_bytes, self.max_dimension)
        filename = f"{uuid.uuid4().hex}.png"
        try:
            (self.directory / filename).write_bytes(png_bytes)
        except OSError as e:
            logger.error(f"Failed to write image {filename}: {e}")
            raise ImageStorageError(f"Failed to store image: {e}")
        logger.debug(f"Saved image {filename} ({len(png_bytes) / 1024:.1f} KB)")
        return f"{self.url_prefix}/{filename}"

    async def store_remote(self, url: str) -> str:
        """
        Download a remote image and store it locally.

        Returns:
            Served path of the stored file

        Raises:
            ImageDownloadError: If the download fails
            ImageProcessingError: If the bytes are not an image
            ImageStorageError: If the file cannot be written
        """
        image_bytes = await self.download(url)

        # Decoding and writing block; keep them off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.save, image_bytes)


# Global singleton instance
_image_store: Optional[ImageStore] = None


def get_image_store() -> ImageStore:
    """Get or create the global ImageStore instance."""
    global _image_store
    if _image_store is None:
        _image_store = ImageStore()
    return _image_store


async def close_image_store() -> None:
    """Close the global ImageStore instance."""
    global _image_store
    if _image_store:
        await _image_store.close()
        _image_store = None
