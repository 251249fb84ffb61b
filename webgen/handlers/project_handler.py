"""
Project Handler for multi-file site generation.

Handles project requests by optionally expanding the prompt into a
plan, generating the files, and resolving image placeholders across
all files in one batch.
"""

from typing import Optional
from uuid import uuid4

from webgen.models.schemas import GenerateProjectRequest, ProjectPlan, ProjectResponse
from webgen.services.chat_service import get_chat_service
from webgen.services.image_resolver import get_image_resolver
from webgen.utils.logger import get_logger, LogContext
from webgen.utils.validators import sanitize_prompt

logger = get_logger("handlers.project")

MSG_EMPTY_PROMPT = "Prompt is required"


async def handle_plan_project(prompt: str, model: Optional[str] = None) -> ProjectPlan:
    """
    Expand a short request into an enhanced brief and file list.

    Raises:
        ValueError: If the prompt is empty
        ChatError: If the plan cannot be produced
    """
    prompt = sanitize_prompt(prompt)
    if not prompt:
        raise ValueError(MSG_EMPTY_PROMPT)

    plan = await get_chat_service().plan_project(prompt, model=model)
    logger.info(f"Project planned with {len(plan.files)} file(s)")
    return plan


async def handle_generate_project(
    request: GenerateProjectRequest,
    prompt: Optional[str] = None,
    model: Optional[str] = None,
) -> ProjectResponse:
    """
    Generate or revise a project and resolve its images.

    Without a plan, the raw prompt is the brief and the current files
    are revised in place.

    Args:
        request: Request body
        prompt: Prompt passed as a query parameter (takes precedence)
        model: Model passed as a query parameter (takes precedence)

    Raises:
        ValueError: If neither a plan nor a prompt is given
        ChatError: If the chat model gives no usable project
    """
    plan = request.project_plan
    brief = sanitize_prompt(prompt or request.prompt or (plan.enhanced_prompt if plan else ""))
    if not brief:
        raise ValueError(MSG_EMPTY_PROMPT)

    is_initial = request.is_initial_prompt
    if is_initial is None:
        is_initial = not request.current_files

    chat_service = get_chat_service()
    resolver = get_image_resolver()

    with LogContext(logger, request_id=str(uuid4())):
        files = await chat_service.generate_project(
            brief,
            current_files=request.current_files,
            planned_files=plan.files if plan else None,
            model=model or request.model,
            is_initial=is_initial,
        )

        result = await resolver.resolve_files(
            files,
            cache=request.generated_images,
            use_generative=request.use_dalle,
        )

        logger.info(
            f"Project ready: {len(result.files)} file(s)",
            extra={
                "new_images": len(result.new_images),
                "cache_hits": result.cache_hits,
                "failed_images": len(result.failed),
            }
        )

    return ProjectResponse(files=result.files, new_images=result.new_images)
