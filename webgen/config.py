"""
Configuration loader for the page generator.

Loads and validates environment variables using Pydantic Settings.
All configuration is centralized here for easy management.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Chat Completion (OpenAI-compatible)
    # ==========================================================================
    openai_api_key: Optional[str] = Field(
        default=None,
        description="API key for chat completions and image generation"
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the OpenAI-compatible API"
    )
    chat_model: str = Field(
        default="gpt-4o-mini-2024-07-18",
        description="Default chat model when the client does not pick one"
    )
    chat_max_tokens: int = Field(
        default=4096,
        ge=256,
        le=16384,
        description="Maximum completion tokens per chat request"
    )

    # ==========================================================================
    # Image Generation
    # ==========================================================================
    image_model: str = Field(default="dall-e-3", description="Image generation model")
    image_size: str = Field(default="1024x1024", description="Generated image size")
    image_style: str = Field(default="vivid", description="Generated image style")
    image_quality: str = Field(default="standard", description="Generated image quality")

    @field_validator("image_style")
    @classmethod
    def validate_image_style(cls, v: str) -> str:
        allowed = {"vivid", "natural"}
        if v.lower() not in allowed:
            raise ValueError(f"image_style must be one of: {allowed}")
        return v.lower()

    # ==========================================================================
    # Image Search (Google Custom Search)
    # ==========================================================================
    google_api_key: Optional[str] = Field(
        default=None,
        description="Google API key for image search"
    )
    google_search_engine_id: Optional[str] = Field(
        default=None,
        description="Programmable Search Engine ID (cx)"
    )
    google_search_url: str = Field(
        default="https://www.googleapis.com/customsearch/v1",
        description="Custom Search JSON API endpoint"
    )
    search_safe_mode: str = Field(default="active", description="SafeSearch level")
    search_image_size: str = Field(default="large", description="Requested image size")

    @field_validator("search_safe_mode")
    @classmethod
    def validate_safe_mode(cls, v: str) -> str:
        allowed = {"active", "off"}
        if v.lower() not in allowed:
            raise ValueError(f"search_safe_mode must be one of: {allowed}")
        return v.lower()

    # ==========================================================================
    # Image Rate Limiting
    # ==========================================================================
    image_rate_limit: int = Field(
        default=5,
        ge=1,
        le=500,
        description="Maximum image provider calls per window"
    )
    image_rate_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Length of the rate limit window in seconds"
    )
    image_backoff_seconds: float = Field(
        default=65.0,
        ge=0,
        description="Fixed delay before retrying a throttled call"
    )
    image_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after a throttled call before giving up"
    )

    # ==========================================================================
    # Image Storage
    # ==========================================================================
    generated_images_dir: str = Field(
        default="public/generated-images",
        description="Served directory for downloaded and generated images"
    )
    generated_images_url_prefix: str = Field(
        default="/generated-images",
        description="URL path under which generated_images_dir is served"
    )
    placeholder_image_url: str = Field(
        default="https://placehold.co",
        description="Placeholder image service used when an image fails"
    )
    max_image_dimension: int = Field(
        default=1920,
        ge=256,
        le=8192,
        description="Longest side of stored images before downscaling"
    )
    download_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for image downloads"
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3000, ge=1, le=65535, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of: {allowed}")
        return v.upper()

    # ==========================================================================
    # Default Prompts
    # ==========================================================================
    html_system_prompt: str = Field(
        default="""You generate complete, self-contained HTML pages with inline CSS.
Return only the HTML document and nothing else.
Wherever the page needs an image, set the image source to a token of the form
{{generate_image: short description of the image}}.""",
        description="System prompt for single-page generation"
    )
    plan_system_prompt: str = Field(
        default="""You turn a short website request into a detailed build brief.
Reply with JSON only: {"enhancedPrompt": "<brief>", "files": ["index.html", ...]}.""",
        description="System prompt for project planning"
    )
    project_system_prompt: str = Field(
        default="""You generate multi-file static websites.
Reply with JSON only: an object mapping relative file paths to file contents.
Always include index.html. Link pages with relative paths.
Wherever a page needs an image, use a token of the form
{{generate_image: short description of the image}} as the image source.""",
        description="System prompt for multi-file project generation"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Settings instance with validated configuration

    Raises:
        ValidationError: If settings are invalid
    """
    return Settings()
