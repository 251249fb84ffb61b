from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from conftest import mock_client
from webgen.services.chat_service import ChatConnectionError, ChatResponseError, ChatService


def completion(content: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "choices": [{"message": {"role": "assistant", "content": content}}],
            "usage": {"total_tokens": 42},
        },
    )


def make_service(handler) -> ChatService:
    return ChatService(api_key="key", base_url="https://chat.example.com/v1", client=mock_client(handler))


def test_generate_html_strips_code_fence_and_sends_prompt():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return completion("Here you go:\n```html\n<html><body>hi</body></html>\n```\nEnjoy!")

    service = make_service(handler)

    html = asyncio.run(service.generate_html("a landing page", current_code="<p>old</p>"))

    assert html == "<html><body>hi</body></html>"
    user_message = sent[0]["messages"][-1]["content"]
    assert user_message.startswith("in html a landing page, just return the html and nothing else")
    assert "<p>old</p>" in user_message
    assert sent[0]["messages"][0]["role"] == "system"


def test_unfenced_reply_is_returned_as_is():
    service = make_service(lambda request: completion("  <html></html>  "))

    assert asyncio.run(service.generate_html("page")) == "<html></html>"


def test_reply_without_choices_is_an_error():
    service = make_service(lambda request: httpx.Response(500, json={"error": {"message": "boom"}}))

    with pytest.raises(ChatResponseError, match="No choices found in the response"):
        asyncio.run(service.generate_html("page"))


def test_unreachable_api_is_a_connection_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    service = make_service(handler)

    with pytest.raises(ChatConnectionError):
        asyncio.run(service.generate_html("page"))


def test_plan_project_parses_brief_and_files():
    reply = json.dumps({
        "enhancedPrompt": "A bakery site with a menu page",
        "files": ["index.html", "menu.html", "../secrets.txt"],
    })
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return completion(reply)

    service = make_service(handler)

    plan = asyncio.run(service.plan_project("bakery"))

    assert plan.enhanced_prompt == "A bakery site with a menu page"
    assert plan.files == ["index.html", "menu.html"]
    assert sent[0]["response_format"] == {"type": "json_object"}


def test_plan_without_brief_is_an_error():
    service = make_service(lambda request: completion('{"files": ["index.html"]}'))

    with pytest.raises(ChatResponseError):
        asyncio.run(service.plan_project("bakery"))


def test_generate_project_drops_unsafe_paths_and_non_text_content():
    reply = json.dumps({
        "files": {
            "index.html": "<img src='{{generate_image: cake}}'>",
            "css/style.css": "body {}",
            "/etc/passwd": "nope",
            "../up.html": "nope",
            "data.json": {"not": "text"},
        }
    })
    service = make_service(lambda request: completion(reply))

    files = asyncio.run(service.generate_project("bakery"))

    assert files == {
        "index.html": "<img src='{{generate_image: cake}}'>",
        "css/style.css": "body {}",
    }


def test_generate_project_includes_current_files_on_revision():
    sent = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return completion('{"index.html": "<p>new</p>"}')

    service = make_service(handler)

    asyncio.run(service.generate_project(
        "make it blue",
        current_files={"index.html": "<p>old</p>"},
        planned_files=["index.html"],
        is_initial=False,
    ))

    user_message = sent[0]["messages"][-1]["content"]
    assert "Files to produce: index.html" in user_message
    assert "<p>old</p>" in user_message


def test_generate_project_rejects_invalid_json():
    service = make_service(lambda request: completion("not json at all"))

    with pytest.raises(ChatResponseError):
        asyncio.run(service.generate_project("bakery"))
