from __future__ import annotations

import asyncio
from pathlib import Path

import httpx

from conftest import mock_client, png_bytes
from webgen.models.image_result import ImageSource
from webgen.services.image_search_service import ImageSearchService
from webgen.services.image_service import ImageStore

SEARCH_URL = "https://search.example.com/customsearch/v1"
IMAGE_LINK = "https://cdn.example.com/photos/red-shoe.jpg"


def make_service(tmp_path, search_handler, download_handler=None) -> ImageSearchService:
    def default_download(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=png_bytes(), headers={"content-type": "image/png"})

    store = ImageStore(
        directory=str(tmp_path / "generated-images"),
        url_prefix="/generated-images",
        client=mock_client(download_handler or default_download),
    )
    return ImageSearchService(
        api_key="key",
        search_engine_id="cx",
        base_url=SEARCH_URL,
        store=store,
        client=mock_client(search_handler),
    )


def test_first_result_is_copied_locally(tmp_path):
    seen = []

    def search(request: httpx.Request) -> httpx.Response:
        seen.append(dict(request.url.params))
        return httpx.Response(200, json={"items": [{"link": IMAGE_LINK}, {"link": "https://other"}]})

    service = make_service(tmp_path, search)

    result = asyncio.run(service.resolve("red shoe"))

    assert result.source == ImageSource.LOCAL
    assert result.reference.startswith("/generated-images/")
    assert seen[0]["q"] == "red shoe"
    assert seen[0]["searchType"] == "image"
    assert seen[0]["num"] == "1"
    assert seen[0]["safe"] == "active"


def test_zero_results_become_no_images_found_placeholder(tmp_path):
    service = make_service(tmp_path, lambda request: httpx.Response(200, json={"kind": "customsearch#search"}))

    result = asyncio.run(service.resolve("red shoe"))

    assert result.is_placeholder
    assert result.reference.endswith("?text=No%20Images%20Found")


def test_error_body_becomes_search_failed_placeholder(tmp_path):
    def search(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"error": {"code": 403, "message": "Daily limit exceeded"}})

    service = make_service(tmp_path, search)

    result = asyncio.run(service.resolve("red shoe"))

    assert result.is_placeholder
    assert result.reason == "Search failed"


def test_transport_error_becomes_search_failed_placeholder(tmp_path):
    def search(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    service = make_service(tmp_path, search)

    result = asyncio.run(service.resolve("red shoe"))

    assert result.reason == "Search failed"


def test_failed_copy_falls_back_to_remote_link(tmp_path):
    service = make_service(
        tmp_path,
        lambda request: httpx.Response(200, json={"items": [{"link": IMAGE_LINK}]}),
        download_handler=lambda request: httpx.Response(403),
    )

    result = asyncio.run(service.resolve("red shoe"))

    assert result.source == ImageSource.REMOTE
    assert result.reference == IMAGE_LINK
    assert result.is_cacheable


def test_unconfigured_search_makes_no_request(tmp_path):
    calls = []

    def search(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={})

    service = make_service(tmp_path, search)
    service.search_engine_id = None

    result = asyncio.run(service.resolve("red shoe"))

    assert result.reason == "Search not configured"
    assert calls == []


def test_failed_write_falls_back_to_remote_link(tmp_path, monkeypatch):
    service = make_service(tmp_path, lambda request: httpx.Response(200, json={"items": [{"link": IMAGE_LINK}]}))

    def disk_full(self, data):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(Path, "write_bytes", disk_full)

    result = asyncio.run(service.resolve("red shoe"))

    assert result.source == ImageSource.REMOTE
    assert result.reference == IMAGE_LINK
