from __future__ import annotations

from webgen.models.placeholder import (
    PlaceholderToken,
    make_placeholder,
    scan_placeholders,
    substitute_tokens,
)


def test_scan_yields_tokens_in_order_with_duplicates():
    text = (
        "<img src='{{generate_image: red shoe}}'>"
        "<img src='{{generate_image:blue hat }}'>"
        "<img src='{{generate_image: red shoe}}'>"
    )

    tokens = list(scan_placeholders(text))

    assert [t.prompt for t in tokens] == ["red shoe", "blue hat", "red shoe"]
    assert tokens[0].raw_match == "{{generate_image: red shoe}}"
    assert text[tokens[1].start:tokens[1].end] == "{{generate_image:blue hat }}"


def test_scan_is_lazy():
    tokens = scan_placeholders("{{generate_image: a}}")

    assert next(tokens).prompt == "a"


def test_scan_ignores_unterminated_token():
    text = "<img src='{{generate_image: never closed'> and more text"

    assert list(scan_placeholders(text)) == []


def test_scan_stops_at_first_closing_braces():
    text = "{{generate_image: cat}} middle }} {{generate_image: dog}}"

    assert [t.prompt for t in scan_placeholders(text)] == ["cat", "dog"]


def test_scan_is_case_sensitive_and_skips_empty_prompts():
    text = "{{GENERATE_IMAGE: loud}} {{generate_image:   }} {{generate_image: multi\nline}}"

    assert [t.prompt for t in scan_placeholders(text)] == ["multi\nline"]


def test_scan_of_empty_text():
    assert list(scan_placeholders("")) == []


def test_make_placeholder_round_trips_through_scanner():
    token = make_placeholder("  sunset over hills ")

    assert token == "{{generate_image: sunset over hills}}"
    assert [t.prompt for t in scan_placeholders(token)] == ["sunset over hills"]


def test_substitute_replaces_by_span_only():
    text = "red shoe: {{generate_image: red shoe}} / {{generate_image: red shoe}}"
    tokens = list(scan_placeholders(text))

    result = substitute_tokens(text, tokens, {"red shoe": "/generated-images/a.png"})

    assert result == "red shoe: /generated-images/a.png / /generated-images/a.png"


def test_substitute_leaves_unknown_prompts_in_place():
    text = "{{generate_image: a}} {{generate_image: b}}"
    tokens = list(scan_placeholders(text))

    result = substitute_tokens(text, tokens, {"b": "B"})

    assert result == "{{generate_image: a}} B"


def test_substitute_accepts_tokens_in_any_order():
    text = "x{{generate_image: a}}y{{generate_image: b}}z"
    tokens = list(reversed(list(scan_placeholders(text))))

    assert substitute_tokens(text, tokens, {"a": "1", "b": "2"}) == "x1y2z"


def test_token_is_immutable():
    token = PlaceholderToken(raw_match="{{generate_image: a}}", prompt="a", start=0, end=21)

    try:
        token.prompt = "b"
    except AttributeError:
        pass
    else:
        raise AssertionError("PlaceholderToken should be frozen")
