"""
Image Search Service using the Google Custom Search JSON API.

Finds the first web image for a prompt and stores a local copy.
When the copy cannot be made the remote URL is used directly.

API Documentation: https://developers.google.com/custom-search/v1/reference/rest/v1/cse/list
"""

from typing import Optional
import httpx

from webgen.config import get_settings
from webgen.models.image_result import ImageResult, ImageSource, placeholder_result
from webgen.services.image_service import ImageServiceError, ImageStore, get_image_store
from webgen.services.rate_limit_service import RateLimitExhaustedError, RateLimitService
from webgen.utils.logger import get_logger

logger = get_logger("services.image_search")

REASON_NOT_CONFIGURED = "Search not configured"
REASON_SEARCH_FAILED = "Search failed"
REASON_NO_RESULTS = "No Images Found"
REASON_RATE_LIMITED = "Rate limit exceeded"


class ImageSearchService:
    """
    Web image search provider.

    Unlike generation, search has no retry loop: every error is
    permanent for the request and becomes a placeholder.

    Attributes:
        api_key: Google API key
        search_engine_id: Programmable Search Engine ID (cx)
        rate_limiter: Optional limiter for the search quota
        store: Where found images are copied to
    """

    provider = "search"

    def __init__(
        self,
        api_key: Optional[str] = None,
        search_engine_id: Optional[str] = None,
        base_url: Optional[str] = None,
        safe_mode: Optional[str] = None,
        image_size: Optional[str] = None,
        rate_limiter: Optional[RateLimitService] = None,
        store: Optional[ImageStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.google_api_key
        self.search_engine_id = search_engine_id or settings.google_search_engine_id
        self.base_url = base_url or settings.google_search_url
        self.safe_mode = safe_mode or settings.search_safe_mode
        self.image_size = image_size or settings.search_image_size
        self.placeholder_url = settings.placeholder_image_url
        self.placeholder_size = settings.image_size

        self.rate_limiter = rate_limiter
        self.store = store or get_image_store()
        self.client = client or httpx.AsyncClient(timeout=15.0)

        if self.is_configured:
            logger.info(f"ImageSearchService initialized: safe={self.safe_mode}, size={self.image_size}")
        else:
            logger.warning(
                "ImageSearchService: GOOGLE_API_KEY or GOOGLE_SEARCH_ENGINE_ID not configured, "
                "searched images will be placeholders"
            )

    @property
    def is_configured(self) -> bool:
        """Check if credentials are configured."""
        return bool(self.api_key and self.search_engine_id)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _placeholder(self, prompt: str, reason: str) -> ImageResult:
        return placeholder_result(prompt, reason, self.placeholder_url, self.placeholder_size)

    async def resolve(self, prompt: str) -> ImageResult:
        """
        Resolve a prompt to the first matching web image.

        Args:
            prompt: Search query (image description)

        Returns:
            ImageResult with a local path, the remote URL when the copy
            failed, or a placeholder with the reason
        """
        if not self.is_configured:
            return self._placeholder(prompt, REASON_NOT_CONFIGURED)

        if self.rate_limiter is not None:
            try:
                await self.rate_limiter.acquire()
            except RateLimitExhaustedError:
                return self._placeholder(prompt, REASON_RATE_LIMITED)

        params = {
            "key": self.api_key,
            "cx": self.search_engine_id,
            "q": prompt,
            "searchType": "image",
            "num": 1,
            "safe": self.safe_mode,
            "imgSize": self.image_size,
        }

        try:
            response = await self.client.get(self.base_url, params=params)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Image search request failed: {e}", extra={"prompt": prompt})
            return self._placeholder(prompt, REASON_SEARCH_FAILED)

        if not isinstance(data, dict) or data.get("error") or response.status_code != 200:
            error = data.get("error") if isinstance(data, dict) else None
            logger.error(
                f"Image search error (HTTP {response.status_code}): {str(error)[:200]}",
                extra={"prompt": prompt},
            )
            return self._placeholder(prompt, REASON_SEARCH_FAILED)

        items = data.get("items") or []
        link = None
        if isinstance(items, list) and items and isinstance(items[0], dict):
            link = items[0].get("link")
        if not link:
            logger.info("Image search returned no results", extra={"prompt": prompt})
            return self._placeholder(prompt, REASON_NO_RESULTS)

        try:
            local_path = await self.store.store_remote(link)
        except ImageServiceError as e:
            logger.warning(f"Using remote image, local copy failed: {e}", extra={"prompt": prompt})
            return ImageResult(prompt=prompt, reference=link, source=ImageSource.REMOTE)

        logger.info(f"Searched image stored at {local_path}", extra={"prompt": prompt})
        return ImageResult(prompt=prompt, reference=local_path, source=ImageSource.LOCAL)


# Global singleton instance
_image_search_service: Optional[ImageSearchService] = None


def get_image_search_service() -> ImageSearchService:
    """Get or create the global ImageSearchService instance."""
    global _image_search_service
    if _image_search_service is None:
        _image_search_service = ImageSearchService()
    return _image_search_service


async def close_image_search_service() -> None:
    """Close the global ImageSearchService instance."""
    global _image_search_service
    if _image_search_service:
        await _image_search_service.close()
        _image_search_service = None
