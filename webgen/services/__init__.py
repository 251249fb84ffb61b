"""Services package initialization."""

from webgen.services.chat_service import ChatService, get_chat_service
from webgen.services.image_resolver import ImageResolver, get_image_resolver
from webgen.services.image_generation_service import ImageGenerationService, get_image_generation_service
from webgen.services.image_search_service import ImageSearchService, get_image_search_service
from webgen.services.rate_limit_service import RateLimitService, get_rate_limit_service

__all__ = [
    "ChatService",
    "get_chat_service",
    "ImageResolver",
    "get_image_resolver",
    "ImageGenerationService",
    "get_image_generation_service",
    "ImageSearchService",
    "get_image_search_service",
    "RateLimitService",
    "get_rate_limit_service",
]
