from __future__ import annotations

from io import BytesIO
from typing import Callable

import httpx
import pytest
from PIL import Image

from webgen.config import get_settings
from webgen.services import (
    chat_service,
    image_generation_service,
    image_resolver,
    image_search_service,
    image_service,
    rate_limit_service,
)


@pytest.fixture(autouse=True)
def settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    monkeypatch.setenv("OPENAI_API_KEY", "test-openai-key")
    monkeypatch.setenv("GOOGLE_API_KEY", "test-google-key")
    monkeypatch.setenv("GOOGLE_SEARCH_ENGINE_ID", "test-cx")
    monkeypatch.setenv("GENERATED_IMAGES_DIR", str(tmp_path / "generated-images"))
    monkeypatch.setenv("IMAGE_BACKOFF_SECONDS", "0")
    get_settings.cache_clear()

    # Fresh process-wide services for every test
    monkeypatch.setattr(chat_service, "_chat_service", None)
    monkeypatch.setattr(image_generation_service, "_image_generation_service", None)
    monkeypatch.setattr(image_search_service, "_image_search_service", None)
    monkeypatch.setattr(image_service, "_image_store", None)
    monkeypatch.setattr(image_resolver, "_image_resolver", None)
    monkeypatch.setattr(rate_limit_service, "_rate_limit_service", None)

    yield
    get_settings.cache_clear()


def png_bytes(size: tuple[int, int] = (8, 8)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class RecordingSleep:
    """Stands in for asyncio.sleep and advances a fake clock."""

    def __init__(self, log: list | None = None):
        self.now = 0.0
        self.delays: list[float] = []
        self.log = log if log is not None else []

    def clock(self) -> float:
        return self.now

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.log.append("sleep")
        self.now += delay


@pytest.fixture
def image_bytes() -> bytes:
    return png_bytes()
