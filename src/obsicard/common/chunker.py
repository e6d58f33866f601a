"""
Size-aware text chunking for flashcard generation.

Splits note text into chunks that fit the generation model's budget,
preferring paragraph boundaries and falling back to sentence boundaries for
oversized paragraphs. Token counts use a fixed approximation of 4 characters
per token; no tokenizer is involved.
"""

import math
import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import yaml

CHARS_PER_TOKEN = 4

# Above this many estimated tokens the text is summarized before generation
SUMMARIZATION_THRESHOLD = 10_000

# Largest input we are willing to send in a single request
CONTEXT_LIMIT = 16_000

PARAGRAPH_SEPARATOR = "\n\n"
SENTENCE_SEPARATOR = " "

_PARAGRAPH_BOUNDARY = re.compile(r"\n[ \t]*\n")
_SENTENCE = re.compile(r"[^.!?]*[.!?]+|[^.!?]+")


@dataclass
class TextChunk:
    """A bounded slice of source text sent to the generation service as one unit."""
    content: str
    token_count: int
    index: int


@dataclass
class ChunkingResult:
    """Chunks plus the metadata the orchestrator needs to plan generation."""
    chunks: List[TextChunk] = field(default_factory=list)
    total_tokens: int = 0
    requires_summarization: bool = False


def count_tokens(text: str) -> int:
    """
    Estimate token count for text.

    Args:
        text: Input text

    Returns:
        ceil(len(text) / 4); 0 for empty text
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def split_paragraphs(text: str) -> List[str]:
    """Split text on blank lines, dropping empty paragraphs."""
    paragraphs = (p.strip() for p in _PARAGRAPH_BOUNDARY.split(text))
    return [p for p in paragraphs if p]


def split_sentences(text: str) -> List[str]:
    """
    Split a paragraph into sentences, keeping the terminal punctuation.

    Trailing text without terminal punctuation is kept as its own sentence so
    that no content is lost.
    """
    sentences = [m.group(0).strip() for m in _SENTENCE.finditer(text)]
    sentences = [s for s in sentences if s]
    return sentences or [text.strip()]


class _ChunkPacker:
    """Greedy packer that closes a chunk when the next piece would overflow it."""

    def __init__(self, max_chunk_size: int):
        self.max_chunk_size = max_chunk_size
        self.chunks: List[TextChunk] = []
        self._current = ""

    def add(self, piece: str, separator: str) -> None:
        if not self._current:
            self._current = piece
            return

        candidate = f"{self._current}{separator}{piece}"
        if count_tokens(candidate) > self.max_chunk_size:
            self.flush()
            self._current = piece
        else:
            self._current = candidate

    def flush(self) -> None:
        content = self._current.strip()
        if content:
            self.chunks.append(
                TextChunk(
                    content=content,
                    token_count=count_tokens(content),
                    index=len(self.chunks),
                )
            )
        self._current = ""


def chunk_text(text: str, max_chunk_size: int) -> ChunkingResult:
    """
    Split text into chunks of at most ``max_chunk_size`` estimated tokens.

    Algorithm:
    1. Text that fits is returned unchanged as a single chunk.
    2. Otherwise paragraphs (blank-line separated) are packed into chunks
       until the next paragraph would exceed the limit.
    3. A paragraph that exceeds the limit on its own is split into sentences
       which are packed the same way. A single sentence over the limit is
       emitted whole.

    The result is deterministic: the same input always yields the same chunk
    boundaries.

    Args:
        text: Full text to chunk
        max_chunk_size: Maximum estimated tokens per chunk

    Returns:
        ChunkingResult with chunks, total token estimate and whether the text
        should be summarized before generation

    Raises:
        ValueError: If max_chunk_size is not positive
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")

    total_tokens = count_tokens(text)
    requires_summarization = total_tokens > SUMMARIZATION_THRESHOLD

    if total_tokens <= max_chunk_size:
        return ChunkingResult(
            chunks=[TextChunk(content=text, token_count=total_tokens, index=0)],
            total_tokens=total_tokens,
            requires_summarization=requires_summarization,
        )

    packer = _ChunkPacker(max_chunk_size)

    for paragraph in split_paragraphs(text):
        if count_tokens(paragraph) <= max_chunk_size:
            packer.add(paragraph, PARAGRAPH_SEPARATOR)
            continue

        # Oversized paragraph: close the running chunk, then pack its sentences
        packer.flush()
        for sentence in split_sentences(paragraph):
            packer.add(sentence, SENTENCE_SEPARATOR)
        packer.flush()

    packer.flush()

    return ChunkingResult(
        chunks=packer.chunks,
        total_tokens=total_tokens,
        requires_summarization=requires_summarization,
    )


def is_within_limits(text: str) -> bool:
    """Check that text fits in a single request."""
    return count_tokens(text) <= CONTEXT_LIMIT


def truncate_to_token_limit(text: str, max_tokens: int) -> str:
    """
    Hard-truncate text to roughly ``max_tokens`` estimated tokens.

    The cut is proportional to the token overshoot and marked with ``...``.
    """
    current_tokens = count_tokens(text)
    if current_tokens <= max_tokens:
        return text

    ratio = max_tokens / current_tokens
    target_length = math.floor(len(text) * ratio)
    return text[:target_length] + "..."


def parse_frontmatter(markdown: str) -> Tuple[Dict, str]:
    """
    Parse YAML frontmatter from markdown.

    Args:
        markdown: Full markdown content with optional frontmatter

    Returns:
        Tuple of (frontmatter_dict, content_without_frontmatter). Markdown
        without (or with malformed) frontmatter is returned unchanged.
    """
    if not markdown.startswith('---'):
        return {}, markdown

    # Find the closing ---
    parts = markdown.split('---', 2)
    if len(parts) < 3:
        return {}, markdown

    frontmatter_str = parts[1].strip()
    content = parts[2].strip()

    try:
        frontmatter = yaml.safe_load(frontmatter_str)
    except yaml.YAMLError:
        return {}, markdown

    if frontmatter is None:
        return {}, content
    if not isinstance(frontmatter, dict):
        return {}, markdown

    return frontmatter, content
