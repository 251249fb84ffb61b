"""
Prompt-to-webpage generator - Main Application.

FastAPI application with:
- Page and project generation endpoints
- Server-sent event stream of per-image progress
- Static serving of generated images
- Startup/shutdown lifecycle management
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from webgen.config import get_settings
from webgen.utils.logger import setup_logging, get_logger

# Services
from webgen.services.chat_service import ChatError, ChatResponseError, close_chat_service
from webgen.services.image_generation_service import (
    close_image_generation_service,
    get_image_generation_service,
)
from webgen.services.image_search_service import close_image_search_service, get_image_search_service
from webgen.services.image_resolver import close_image_resolver
from webgen.services.image_service import close_image_store
from webgen.services.rate_limit_service import close_rate_limit_service, get_rate_limit_service

# Handlers
from webgen.handlers.generate_handler import handle_generate, stream_generate
from webgen.handlers.project_handler import handle_generate_project, handle_plan_project

# Models
from webgen.models.schemas import (
    GenerateProjectRequest,
    GenerateRequest,
    GenerateResponse,
    ProjectPlan,
    ProjectResponse,
)

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup initialization and graceful shutdown.
    """
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
    )

    logger.info("=" * 50)
    logger.info("Page generator - Starting up")
    logger.info("=" * 50)

    generation_service = get_image_generation_service()
    search_service = get_image_search_service()
    get_rate_limit_service()

    if generation_service.is_configured:
        logger.info("✅ Image generation configured")
    else:
        logger.warning("⚠️ Image generation not configured - images will be placeholders")

    if search_service.is_configured:
        logger.info("✅ Image search configured")
    else:
        logger.warning("⚠️ Image search not configured - images will be placeholders")

    logger.info(f"🚀 Server ready on {settings.host}:{settings.port}")
    logger.info("=" * 50)

    yield  # Application runs here

    logger.info("Shutting down...")

    close_image_resolver()
    await close_image_generation_service()
    await close_image_search_service()
    await close_image_store()
    await close_chat_service()
    close_rate_limit_service()

    logger.info("Shutdown complete")


app = FastAPI(
    title="Prompt to Webpage Generator",
    description="Generates web pages from prompts with generated or searched images",
    version="1.0.0",
    lifespan=lifespan,
)

# Served image directory; must exist before StaticFiles is mounted
GENERATED_IMAGES_DIR = Path(get_settings().generated_images_dir)
GENERATED_IMAGES_DIR.mkdir(parents=True, exist_ok=True)

app.mount(
    get_settings().generated_images_url_prefix,
    StaticFiles(directory=str(GENERATED_IMAGES_DIR)),
    name="generated-images",
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log unhandled errors and return them as JSON."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": f"{type(exc).__name__}: {exc}", "error_type": type(exc).__name__},
    )


def _chat_error_status(exc: ChatError) -> int:
    """Malformed upstream replies are bad gateways; outages are unavailable."""
    return 502 if isinstance(exc, ChatResponseError) else 503


@app.get("/")
async def root():
    """Root endpoint - lists the API."""
    return JSONResponse({
        "message": "Page generator is running",
        "endpoints": {
            "health": "/health",
            "generate": "/generate (POST)",
            "generate_stream": "/generate/stream (POST)",
            "plan_project": "/plan-project (POST)",
            "generate_project": "/generate-project (POST)",
        }
    })


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.

    Returns provider configuration and rate limit statistics.
    """
    generation_service = get_image_generation_service()
    search_service = get_image_search_service()
    rate_limit_service = get_rate_limit_service()

    return JSONResponse({
        "status": "healthy",
        "services": {
            "image_generation": "configured" if generation_service.is_configured else "disabled",
            "image_search": "configured" if search_service.is_configured else "disabled",
            "rate_limit": rate_limit_service.get_stats(),
        }
    })


@app.post("/generate", response_model=GenerateResponse)
async def generate(
    prompt: str = Query(default=""),
    model: Optional[str] = Query(default=None),
    body: Optional[GenerateRequest] = Body(default=None),
):
    """
    Generate a page and resolve its images.

    Per-image failures show up as placeholder images in the page;
    only a missing or malformed chat reply fails the request.
    """
    try:
        return await handle_generate(prompt, body or GenerateRequest(), model=model)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChatError as e:
        logger.error(f"Page generation failed: {e}")
        raise HTTPException(status_code=_chat_error_status(e), detail=f"Failed to generate code: {e}")


@app.post("/generate/stream")
async def generate_stream(
    prompt: str = Query(default=""),
    model: Optional[str] = Query(default=None),
    body: Optional[GenerateRequest] = Body(default=None),
):
    """Generate a page and stream image progress as server-sent events."""
    return StreamingResponse(
        stream_generate(prompt, body or GenerateRequest(), model=model),
        media_type="text/event-stream",
    )


@app.post("/plan-project", response_model=ProjectPlan)
async def plan_project(
    prompt: str = Query(default=""),
    model: Optional[str] = Query(default=None),
):
    """Expand a prompt into an enhanced project brief."""
    try:
        return await handle_plan_project(prompt, model=model)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChatError as e:
        logger.error(f"Project planning failed: {e}")
        raise HTTPException(status_code=_chat_error_status(e), detail=f"Failed to plan project: {e}")


@app.post("/generate-project", response_model=ProjectResponse)
async def generate_project(
    body: GenerateProjectRequest,
    prompt: Optional[str] = Query(default=None),
    model: Optional[str] = Query(default=None),
):
    """Generate or revise a multi-file project and resolve its images."""
    try:
        return await handle_generate_project(body, prompt=prompt, model=model)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ChatError as e:
        logger.error(f"Project generation failed: {e}")
        raise HTTPException(status_code=_chat_error_status(e), detail=f"Failed to generate project: {e}")


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )
