from __future__ import annotations

from webgen.utils.validators import (
    sanitize_prompt,
    strip_code_fence,
    validate_image_content_type,
    validate_project_path,
)


def test_sanitize_prompt_strips_and_truncates():
    assert sanitize_prompt("  hello  ") == "hello"
    assert sanitize_prompt("x" * 10, max_length=4) == "xxxx"
    assert sanitize_prompt("") == ""


def test_strip_code_fence_takes_first_block():
    text = "intro\n```html\n<p>a</p>\n```\n```css\nb{}\n```"

    assert strip_code_fence(text) == "<p>a</p>"


def test_strip_code_fence_without_language():
    assert strip_code_fence("```\n{\"a\": 1}\n```") == '{"a": 1}'


def test_project_paths_are_normalized_or_rejected():
    assert validate_project_path("css\\style.css") == "css/style.css"
    assert validate_project_path("./index.html") == "index.html"
    assert validate_project_path("/etc/passwd") is None
    assert validate_project_path("a/../../b") is None
    assert validate_project_path("  ") is None


def test_image_content_types():
    assert validate_image_content_type("image/PNG; charset=binary")
    assert validate_image_content_type("image/heic")
    assert not validate_image_content_type("text/html")
