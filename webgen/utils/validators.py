"""
Input validation utilities.

Provides prompt sanitization, project path checks and image
content type validation for downloaded provider images.
"""

import re
from pathlib import PurePosixPath
from typing import Optional

from webgen.utils.logger import get_logger

logger = get_logger("validators")

MAX_PROMPT_LENGTH = 4000

# Fenced code block produced by chat models (```html ... ```)
CODE_FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*\s*\n(.*?)\n?```", re.DOTALL)


def sanitize_prompt(prompt: str, max_length: int = MAX_PROMPT_LENGTH) -> str:
    """
    Sanitize a user prompt before it is sent to the chat model.

    Args:
        prompt: Raw user input
        max_length: Maximum allowed prompt length

    Returns:
        Sanitized prompt string
    """
    if not prompt:
        return ""

    sanitized = prompt.strip()

    if len(sanitized) > max_length:
        sanitized = sanitized[:max_length]
        logger.info(f"Prompt truncated from {len(prompt)} to {max_length} chars")

    return sanitized


def strip_code_fence(text: str) -> str:
    """
    Return the body of the first fenced code block, or the text itself.

    Args:
        text: Raw chat completion content

    Returns:
        Unfenced content, stripped of surrounding whitespace
    """
    if not text:
        return ""
    match = CODE_FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def validate_project_path(path: str) -> Optional[str]:
    """
    Validate a generated project file path.

    Args:
        path: File path as returned by the chat model

    Returns:
        Normalized relative POSIX path, or None if the path is unsafe
    """
    if not path or not path.strip():
        return None

    candidate = PurePosixPath(path.strip().replace("\\", "/"))
    if candidate.is_absolute() or ".." in candidate.parts:
        logger.warning(f"Rejected project path: {path!r}")
        return None

    normalized = str(candidate)
    if normalized in ("", "."):
        return None
    return normalized


def validate_image_content_type(content_type: str) -> bool:
    """
    Validate image content type is supported.

    Args:
        content_type: MIME type from Content-Type header

    Returns:
        True if supported image format
    """
    supported_types = {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/webp",
        "image/gif",
        "image/heic",
        "image/heif",
    }
    return content_type.split(";")[0].strip().lower() in supported_types
