"""
Shared text utilities: size-aware chunking and content sanitization.
"""

from .chunker import ChunkingResult, TextChunk, chunk_text, count_tokens
from .sanitizer import clean_card_content, normalize_tags, sanitize_text

__all__ = [
    "ChunkingResult",
    "TextChunk",
    "chunk_text",
    "count_tokens",
    "clean_card_content",
    "normalize_tags",
    "sanitize_text",
]
