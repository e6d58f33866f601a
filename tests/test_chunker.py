"""
Unit tests for text chunking.

Tests token estimation, paragraph and sentence packing, the summarization
threshold, truncation and frontmatter parsing.
"""

import unittest

import pytest

from obsicard.common.chunker import (
    SUMMARIZATION_THRESHOLD,
    chunk_text,
    count_tokens,
    is_within_limits,
    parse_frontmatter,
    split_paragraphs,
    split_sentences,
    truncate_to_token_limit,
)


class TestTokenCounting(unittest.TestCase):
    """Test the 4-characters-per-token estimate."""

    def test_empty_string(self):
        self.assertEqual(count_tokens(""), 0)

    def test_rounds_up(self):
        self.assertEqual(count_tokens("a"), 1)
        self.assertEqual(count_tokens("abcd"), 1)
        self.assertEqual(count_tokens("abcde"), 2)

    def test_scales_with_length(self):
        self.assertEqual(count_tokens("x" * 4000), 1000)


class TestSplitting(unittest.TestCase):

    def test_split_paragraphs_drops_blank(self):
        text = "First para.\n\n\n  \nSecond para.\n \nThird."
        self.assertEqual(split_paragraphs(text), ["First para.", "Second para.", "Third."])

    def test_split_sentences_keeps_punctuation(self):
        self.assertEqual(
            split_sentences("One. Two! Three?"),
            ["One.", "Two!", "Three?"],
        )

    def test_split_sentences_keeps_unterminated_tail(self):
        """Trailing text without punctuation is not lost."""
        self.assertEqual(
            split_sentences("Complete sentence. and a trailing fragment"),
            ["Complete sentence.", "and a trailing fragment"],
        )

    def test_split_sentences_without_punctuation(self):
        self.assertEqual(split_sentences("no punctuation here"), ["no punctuation here"])


class TestChunkText(unittest.TestCase):
    """Test the chunking algorithm."""

    def test_small_text_single_chunk(self):
        """Text within the limit comes back unchanged as one chunk."""
        text = "Short note.\n\nWith two paragraphs."
        result = chunk_text(text, 100)

        self.assertEqual(len(result.chunks), 1)
        self.assertEqual(result.chunks[0].content, text)
        self.assertEqual(result.chunks[0].index, 0)
        self.assertEqual(result.total_tokens, count_tokens(text))
        self.assertFalse(result.requires_summarization)

    def test_paragraphs_packed_until_limit(self):
        para = "p" * 40  # 10 tokens
        text = "\n\n".join([para] * 5)

        # 10 + 1 (separator) + 10 = 21 tokens → two paragraphs per chunk fit in 22
        result = chunk_text(text, 22)

        self.assertEqual(len(result.chunks), 3)
        self.assertEqual(result.chunks[0].content, f"{para}\n\n{para}")
        self.assertEqual(result.chunks[2].content, para)
        self.assertEqual([c.index for c in result.chunks], [0, 1, 2])

    def test_no_chunk_exceeds_limit(self):
        paragraphs = [f"Paragraph {i}. " + "word " * (i * 7 % 40 + 5) for i in range(30)]
        text = "\n\n".join(paragraphs)
        limit = 60

        result = chunk_text(text, limit)

        self.assertGreater(len(result.chunks), 1)
        for chunk in result.chunks:
            self.assertLessEqual(chunk.token_count, limit)
            self.assertEqual(chunk.token_count, count_tokens(chunk.content))

    def test_paragraph_order_preserved(self):
        paragraphs = [f"Marker{i:02d} " + "filler " * 10 for i in range(12)]
        text = "\n\n".join(paragraphs)

        result = chunk_text(text, 40)
        joined = " ".join(c.content for c in result.chunks)

        positions = [joined.index(f"Marker{i:02d}") for i in range(12)]
        self.assertEqual(positions, sorted(positions))

    def test_oversized_paragraph_split_on_sentences(self):
        sentence = "This is a sentence of moderate length."  # 38 chars → 10 tokens
        paragraph = " ".join([sentence] * 6)
        text = f"Intro.\n\n{paragraph}"

        result = chunk_text(text, 25)

        # Intro flushed on its own before the oversized paragraph
        self.assertEqual(result.chunks[0].content, "Intro.")
        for chunk in result.chunks[1:]:
            self.assertLessEqual(chunk.token_count, 25)
            self.assertTrue(chunk.content.endswith("."))

    def test_single_oversized_sentence_emitted_whole(self):
        """An unbreakable sentence is the one allowed overflow."""
        giant = "x" * 400  # 100 tokens, no punctuation
        text = f"Short start.\n\n{giant}"

        result = chunk_text(text, 20)

        self.assertIn(giant, [c.content for c in result.chunks])
        oversized = [c for c in result.chunks if c.token_count > 20]
        self.assertEqual(len(oversized), 1)

    def test_requires_summarization_threshold(self):
        at_threshold = "a" * (SUMMARIZATION_THRESHOLD * 4)
        above = at_threshold + "a"

        self.assertFalse(chunk_text(at_threshold, 3500).requires_summarization)
        self.assertTrue(chunk_text(above, 3500).requires_summarization)

    def test_requires_summarization_on_single_chunk_path(self):
        text = "a" * (SUMMARIZATION_THRESHOLD * 4 + 4)
        result = chunk_text(text, 20_000)

        self.assertEqual(len(result.chunks), 1)
        self.assertTrue(result.requires_summarization)

    def test_deterministic(self):
        text = "\n\n".join(f"Para {i}. " + "text " * 20 for i in range(10))
        self.assertEqual(chunk_text(text, 50), chunk_text(text, 50))

    def test_invalid_limit(self):
        with self.assertRaises(ValueError):
            chunk_text("text", 0)


class TestLimitsAndTruncation(unittest.TestCase):

    def test_is_within_limits(self):
        self.assertTrue(is_within_limits("a" * 64_000))
        self.assertFalse(is_within_limits("a" * 64_004))

    def test_truncate_noop_when_within_limit(self):
        self.assertEqual(truncate_to_token_limit("short", 10), "short")

    def test_truncate_marks_cut(self):
        text = "a" * 4000  # 1000 tokens
        result = truncate_to_token_limit(text, 100)

        self.assertTrue(result.endswith("..."))
        self.assertEqual(len(result), 400 + 3)


class TestFrontmatter(unittest.TestCase):

    def test_parse_frontmatter(self):
        markdown = "---\ntitle: Deep Work\ntags: [focus, productivity]\n---\n\nBody text."
        metadata, body = parse_frontmatter(markdown)

        self.assertEqual(metadata["title"], "Deep Work")
        self.assertEqual(metadata["tags"], ["focus", "productivity"])
        self.assertEqual(body, "Body text.")

    def test_no_frontmatter(self):
        markdown = "# Heading\n\nBody"
        self.assertEqual(parse_frontmatter(markdown), ({}, markdown))

    def test_empty_frontmatter(self):
        metadata, body = parse_frontmatter("---\n---\nBody")
        self.assertEqual(metadata, {})
        self.assertEqual(body, "Body")

    def test_malformed_frontmatter_left_untouched(self):
        markdown = "---\ntitle: [unclosed\n---\nBody"
        self.assertEqual(parse_frontmatter(markdown), ({}, markdown))


@pytest.mark.parametrize("limit", [10, 35, 120])
def test_chunks_cover_all_words(limit):
    """Every word of the input appears in some chunk."""
    text = "\n\n".join(
        f"Sentence {i} about topic {i}. Another one here! Ends with a question?"
        for i in range(15)
    )
    result = chunk_text(text, limit)

    chunk_words = " ".join(c.content for c in result.chunks).split()
    assert chunk_words == text.split()
