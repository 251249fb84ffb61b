"""
Generate Handler for single-page generation.

Handles page requests by:
1. Sanitizing the prompt
2. Asking the chat model for HTML
3. Resolving image placeholders against the client's image cache
4. Returning the page, or streaming per-image progress as SSE
"""

from typing import AsyncIterator, Optional
from uuid import uuid4
import asyncio
import json

from webgen.models.schemas import GenerateRequest, GenerateResponse
from webgen.services.chat_service import ChatError, get_chat_service
from webgen.services.image_resolver import get_image_resolver
from webgen.utils.logger import get_logger, LogContext
from webgen.utils.validators import sanitize_prompt

logger = get_logger("handlers.generate")

MSG_EMPTY_PROMPT = "Prompt is required"


def _sse(data: dict) -> str:
    """Format one server-sent event frame."""
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


async def handle_generate(
    prompt: str,
    body: GenerateRequest,
    model: Optional[str] = None,
) -> GenerateResponse:
    """
    Generate a page and resolve all of its images before returning.

    Args:
        prompt: User's description
        body: Current code, image cache and provider choice
        model: Chat model override

    Returns:
        GenerateResponse with final code and newly resolved images

    Raises:
        ValueError: If the prompt is empty
        ChatError: If the chat model gives no usable page
    """
    prompt = sanitize_prompt(prompt)
    if not prompt:
        raise ValueError(MSG_EMPTY_PROMPT)

    chat_service = get_chat_service()
    resolver = get_image_resolver()

    with LogContext(logger, request_id=str(uuid4())):
        logger.info(f"Generating page: {prompt[:50]}...")

        code = await chat_service.generate_html(prompt, body.current_code, model=model)
        result = await resolver.resolve(
            code,
            cache=body.generated_images,
            use_generative=body.use_dalle,
        )

        logger.info(
            "Page ready",
            extra={
                "new_images": len(result.new_images),
                "cache_hits": result.cache_hits,
                "failed_images": len(result.failed),
            }
        )

    return GenerateResponse(code=result.text, new_images=result.new_images, pending_images=0)


async def stream_generate(
    prompt: str,
    body: GenerateRequest,
    model: Optional[str] = None,
) -> AsyncIterator[str]:
    """
    Generate a page and stream progress as server-sent events.

    Frames, in order:
    - {"type": "code"}: raw page and number of images still pending
    - {"type": "imageGenerated"}: one per resolved prompt, as it finishes
    - {"type": "done"}: final page and newly resolved images
    - {"type": "error"}: instead of the above when the page fails

    Image resolution already handed to providers keeps running if the
    client disconnects.
    """
    prompt = sanitize_prompt(prompt)
    if not prompt:
        yield _sse({"type": "error", "detail": MSG_EMPTY_PROMPT})
        return

    chat_service = get_chat_service()
    resolver = get_image_resolver()
    request_id = str(uuid4())

    try:
        code = await chat_service.generate_html(prompt, body.current_code, model=model)
    except ChatError as e:
        logger.error(f"Page generation failed: {e}", extra={"request_id": request_id})
        yield _sse({"type": "error", "detail": str(e)})
        return

    pending = resolver.pending_prompts(code, body.generated_images)
    yield _sse({"type": "code", "code": code, "pendingImages": len(pending)})

    events: asyncio.Queue = asyncio.Queue()

    async def run_resolution():
        with LogContext(logger, request_id=request_id):
            try:
                return await resolver.resolve(
                    code,
                    cache=body.generated_images,
                    use_generative=body.use_dalle,
                    on_resolved=events.put,
                )
            finally:
                await events.put(None)

    task = asyncio.create_task(run_resolution())

    while (event := await events.get()) is not None:
        yield _sse(event.to_dict())

    result = await task
    yield _sse({"type": "done", "code": result.text, "newImages": result.new_images})
