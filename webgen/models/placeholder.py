"""
Image placeholder tokens embedded in generated markup.

Generated pages mark image positions with ``{{generate_image: <description>}}``.
This module finds those tokens and rebuilds text once their images are known.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping
import re


PLACEHOLDER_PREFIX = "{{generate_image:"
PLACEHOLDER_SUFFIX = "}}"

# Non-greedy up to the first "}}"; an unterminated token never matches
PLACEHOLDER_PATTERN = re.compile(r"\{\{generate_image:\s*(.*?)\s*\}\}", re.DOTALL)


@dataclass(frozen=True)
class PlaceholderToken:
    """
    A single placeholder occurrence in a block of text.

    Attributes:
        raw_match: Exact substring to replace, delimiters included
        prompt: Trimmed image description (cache key and provider payload)
        start: Offset of the first character of raw_match
        end: Offset one past the last character of raw_match
    """

    raw_match: str
    prompt: str
    start: int
    end: int


def scan_placeholders(text: str) -> Iterator[PlaceholderToken]:
    """
    Yield placeholder tokens left to right, duplicates included.

    Tokens with an empty description are skipped.
    """
    if not text:
        return
    for match in PLACEHOLDER_PATTERN.finditer(text):
        prompt = match.group(1).strip()
        if not prompt:
            continue
        yield PlaceholderToken(
            raw_match=match.group(0),
            prompt=prompt,
            start=match.start(),
            end=match.end(),
        )


def make_placeholder(prompt: str) -> str:
    """Build a placeholder token for an image description."""
    return f"{PLACEHOLDER_PREFIX} {prompt.strip()}{PLACEHOLDER_SUFFIX}"


def substitute_tokens(
    text: str,
    tokens: Iterable[PlaceholderToken],
    replacements: Mapping[str, str],
) -> str:
    """
    Replace each token by span with the reference for its prompt.

    Tokens whose prompt has no replacement are left untouched. Text
    outside the token spans is copied verbatim, so an identical
    substring used as ordinary content is never rewritten.

    Args:
        text: Original text the tokens were scanned from
        tokens: Tokens scanned from ``text``
        replacements: Mapping of prompt to replacement string

    Returns:
        Rebuilt text
    """
    parts = []
    cursor = 0
    for token in sorted(tokens, key=lambda t: t.start):
        replacement = replacements.get(token.prompt)
        if replacement is None:
            continue
        parts.append(text[cursor:token.start])
        parts.append(replacement)
        cursor = token.end
    parts.append(text[cursor:])
    return "".join(parts)
