"""
Text sanitization for generated flashcard content.

Strips markup that must never reach the card store, removes common AI
response artifacts and normalizes tag lists.
"""

import re
from typing import Any, Iterable, List, Tuple

MAX_TAG_LENGTH = 50
MAX_TAGS = 10

_SCRIPT_BLOCK = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"\bon\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_JAVASCRIPT_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_HTML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")

_AI_PREFIX = re.compile(r"^(Answer|Response|Output):\s*", re.IGNORECASE)
_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def sanitize_text(text: str) -> str:
    """
    Remove dangerous content from card text.

    Drops script blocks, inline event handlers, ``javascript:`` references
    and HTML comments, then collapses all whitespace to single spaces.
    """
    if not text:
        return ""

    sanitized = _SCRIPT_BLOCK.sub("", text)
    sanitized = _EVENT_HANDLER.sub("", sanitized)
    sanitized = _JAVASCRIPT_SCHEME.sub("", sanitized)
    sanitized = _HTML_COMMENT.sub("", sanitized)
    return _WHITESPACE.sub(" ", sanitized).strip()


def clean_ai_artifacts(text: str) -> str:
    """Strip "Answer:"-style preambles and code fences wrapping the whole text."""
    if not text:
        return ""

    cleaned = _AI_PREFIX.sub("", text)
    cleaned = _CODE_FENCE.sub("", cleaned)
    cleaned = _EXCESS_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


def clean_card_content(front: str, back: str) -> Tuple[str, str]:
    """Clean both sides of a card: artifacts first, then sanitization."""
    return (
        sanitize_text(clean_ai_artifacts(front)),
        sanitize_text(clean_ai_artifacts(back)),
    )


def normalize_tags(tags: Iterable[Any]) -> List[str]:
    """
    Normalize a tag list.

    Lowercases and trims each tag, drops non-strings, empty tags and tags
    longer than 50 characters, removes duplicates keeping the first
    occurrence and caps the result at 10 tags.

    Example:
        >>> normalize_tags(["Tag1", "TAG1", "tag2"])
        ['tag1', 'tag2']
    """
    if not tags or isinstance(tags, (str, bytes)):
        return []

    normalized: List[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        value = tag.strip().lower()
        if not value or len(value) > MAX_TAG_LENGTH or value in normalized:
            continue
        normalized.append(value)
        if len(normalized) == MAX_TAGS:
            break

    return normalized
