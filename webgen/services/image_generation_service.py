"""
Image Generation Service using the OpenAI Images API.

Generates an image for a prompt, downloads it into the served image
directory and returns the local path. Failures never raise: they
resolve to a labeled placeholder image instead.
"""

from typing import Any, Dict, Optional
import httpx

from webgen.config import get_settings
from webgen.models.image_result import ImageResult, ImageSource, placeholder_result
from webgen.services.image_service import ImageServiceError, ImageStore, get_image_store
from webgen.services.rate_limit_service import RateLimitService, get_rate_limit_service
from webgen.utils.logger import get_logger

logger = get_logger("services.image_generation")

# Timeout settings
CONNECT_TIMEOUT = 10.0  # seconds
READ_TIMEOUT = 120.0    # seconds (generation is slow)

REASON_NOT_CONFIGURED = "Image generation not configured"
REASON_RATE_LIMITED = "Rate limit exceeded"
REASON_INVALID_RESPONSE = "Invalid image response"
REASON_DOWNLOAD_FAILED = "Image download failed"
REASON_UNAVAILABLE = "Image service unavailable"


class ImageGenerationError(Exception):
    """Permanent generation failure; the message is the placeholder reason."""
    pass


class ImageGenerationRetryableError(ImageGenerationError):
    """Throttling or transport failure worth retrying after a backoff."""
    pass


def _is_rate_limit_error(error: Dict[str, Any]) -> bool:
    """Check whether an API error body signals throttling."""
    fields = (error.get("code"), error.get("type"), error.get("message"))
    text = " ".join(str(value) for value in fields if value).lower()
    return "rate limit" in text or "rate_limit" in text


class ImageGenerationService:
    """
    Generative image provider.

    Attributes:
        base_url: API base URL (e.g., https://api.openai.com/v1)
        model: Image model name (e.g., dall-e-3)
        size: Requested image size
        rate_limiter: Shared limiter all generation calls go through
        store: Where generated images are persisted
    """

    provider = "generative"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        size: Optional[str] = None,
        style: Optional[str] = None,
        quality: Optional[str] = None,
        rate_limiter: Optional[RateLimitService] = None,
        store: Optional[ImageStore] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.openai_api_key
        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self.model = model or settings.image_model
        self.size = size or settings.image_size
        self.style = style or settings.image_style
        self.quality = quality or settings.image_quality
        self.placeholder_url = settings.placeholder_image_url

        self.rate_limiter = rate_limiter or get_rate_limit_service()
        self.store = store or get_image_store()
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=CONNECT_TIMEOUT,
                read=READ_TIMEOUT,
                write=30.0,
                pool=10.0,
            )
        )

        if self.api_key:
            logger.info(f"ImageGenerationService initialized: model={self.model}, size={self.size}")
        else:
            logger.warning(
                "ImageGenerationService: OPENAI_API_KEY not configured, "
                "generated images will be placeholders"
            )

    @property
    def is_configured(self) -> bool:
        """Check if API key is configured."""
        return bool(self.api_key)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _placeholder(self, prompt: str, reason: str) -> ImageResult:
        return placeholder_result(prompt, reason, self.placeholder_url, self.size)

    async def resolve(self, prompt: str) -> ImageResult:
        """
        Resolve a prompt to a locally stored generated image.

        Throttled or timed-out calls are retried after the limiter's
        backoff, up to its retry ceiling.

        Args:
            prompt: Image description

        Returns:
            ImageResult with a local path, or a placeholder with the reason
        """
        if not self.is_configured:
            return self._placeholder(prompt, REASON_NOT_CONFIGURED)

        attempts = self.rate_limiter.max_retries + 1
        last_reason = REASON_RATE_LIMITED

        # Window refusals and provider throttling share one retry budget
        for attempt in range(1, attempts + 1):
            granted, _ = await self.rate_limiter.try_acquire()
            if not granted:
                last_reason = REASON_RATE_LIMITED
                if attempt < attempts:
                    await self.rate_limiter.backoff(attempt)
                    continue
                break

            try:
                image_url = await self._request_image(prompt)
            except ImageGenerationRetryableError as e:
                last_reason = str(e)
                if attempt < attempts:
                    await self.rate_limiter.backoff(attempt)
                    continue
                break
            except ImageGenerationError as e:
                logger.warning(f"Image generation failed: {e}", extra={"prompt": prompt})
                return self._placeholder(prompt, str(e))

            try:
                local_path = await self.store.store_remote(image_url)
            except ImageServiceError as e:
                logger.warning(f"Generated image could not be stored: {e}", extra={"prompt": prompt})
                return self._placeholder(prompt, REASON_DOWNLOAD_FAILED)

            logger.info(f"Generated image stored at {local_path}", extra={"prompt": prompt})
            return ImageResult(prompt=prompt, reference=local_path, source=ImageSource.LOCAL)

        logger.error(
            f"Image generation gave up after {attempts} attempts: {last_reason}",
            extra={"prompt": prompt},
        )
        return self._placeholder(prompt, last_reason)

    async def _request_image(self, prompt: str) -> str:
        """
        Submit one generation request.

        Returns:
            Remote URL of the generated image

        Raises:
            ImageGenerationRetryableError: On throttling or transport failure
            ImageGenerationError: On any other provider error
        """
        payload = {
            "model": self.model,
            "prompt": prompt,
            "n": 1,
            "size": self.size,
        }
        if self.model.startswith("dall-e-3"):
            payload["style"] = self.style
            payload["quality"] = self.quality

        try:
            response = await self.client.post(
                f"{self.base_url}/images/generations",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.TimeoutException as e:
            logger.warning(f"Image generation timed out: {e}")
            raise ImageGenerationRetryableError(REASON_UNAVAILABLE)
        except httpx.TransportError as e:
            logger.warning(f"Image generation transport error: {e}")
            raise ImageGenerationRetryableError(REASON_UNAVAILABLE)

        try:
            data = response.json()
        except ValueError:
            data = None

        error = data.get("error") if isinstance(data, dict) else None
        if response.status_code == 429 or (isinstance(error, dict) and _is_rate_limit_error(error)):
            logger.warning(f"Image provider throttled request (HTTP {response.status_code})")
            raise ImageGenerationRetryableError(REASON_RATE_LIMITED)

        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ImageGenerationError(message or "Image generation failed")

        if response.status_code != 200 or not isinstance(data, dict):
            raise ImageGenerationError(f"Image generation failed ({response.status_code})")

        items = data.get("data")
        image_url = None
        if isinstance(items, list) and items and isinstance(items[0], dict):
            image_url = items[0].get("url")
        if not image_url:
            logger.error(f"Image response missing data[0].url: {str(data)[:200]}")
            raise ImageGenerationError(REASON_INVALID_RESPONSE)

        return image_url


# Global singleton instance
_image_generation_service: Optional[ImageGenerationService] = None


def get_image_generation_service() -> ImageGenerationService:
    """Get or create the global ImageGenerationService instance."""
    global _image_generation_service
    if _image_generation_service is None:
        _image_generation_service = ImageGenerationService()
    return _image_generation_service


async def close_image_generation_service() -> None:
    """Close the global ImageGenerationService instance."""
    global _image_generation_service
    if _image_generation_service:
        await _image_generation_service.close()
        _image_generation_service = None
