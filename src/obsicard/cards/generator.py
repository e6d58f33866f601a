"""
Flashcard Generator

Turns note text into validated flashcards: chunks the text, sends chunks to
the generation service in concurrency-bounded batches, validates and repairs
each response, and tags every card with its source.

A chunk that fails (service error, unusable output, anything else) costs
only its own cards; sibling chunks and later batches still run. Missing
credentials and empty input are the only errors that reach the caller.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterable, List, Optional

from ..common.chunker import TextChunk, chunk_text, count_tokens, truncate_to_token_limit
from ..errors import (
    ConfigurationError,
    EmptyInputError,
    TransientServiceError,
    ValidationError,
)
from ..llm import BaseLLMClient, GenerationConfig, LLMResponse, estimate_cost, get_client
from ..settings import Settings
from .prompt_manager import (
    CARD_SYSTEM_PROMPT,
    SUMMARY_SYSTEM_PROMPT,
    PromptManager,
)
from .schema import Card, GenerationMode
from .validator import validate_response

logger = logging.getLogger(__name__)

# Pause between batches to stay under the provider's rate limits
DEFAULT_BATCH_DELAY = 0.5

MIN_CARDS = 3
MAX_CARDS = 10

CARD_GENERATION_CONFIG = GenerationConfig(temperature=0.7, max_output_tokens=4000)
SUMMARY_GENERATION_CONFIG = GenerationConfig(temperature=0.7, max_output_tokens=2000)

SUMMARY_TARGET_TOKENS = 1000
# Hard-truncation budget when the summary call fails
SUMMARY_TOKEN_BUDGET = 8000


@dataclass
class GenerationReport:
    """Outcome of one generation run."""
    cards: List[Card] = field(default_factory=list)
    chunks_total: int = 0
    chunks_failed: int = 0
    summarized: bool = False
    errors: List[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0

    def add_usage(self, prompt: str, response: LLMResponse) -> None:
        """Accumulate token usage, estimating where the provider reports none."""
        self.input_tokens += response.input_tokens or count_tokens(prompt)
        self.output_tokens += response.output_tokens or count_tokens(response.text)

    def summary(self) -> str:
        return f"{len(self.cards)} generated, {self.chunks_failed} chunks failed"


class FlashcardGenerator:
    """
    Generation orchestrator.

    Example:
        >>> generator = FlashcardGenerator(Settings(groq_api_key="gsk_..."))
        >>> cards = await generator.generate(note_text, source="Deep Work")
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[BaseLLMClient] = None,
        prompt_manager: Optional[PromptManager] = None,
        batch_delay: float = DEFAULT_BATCH_DELAY,
    ):
        """
        Args:
            settings: Pipeline settings
            client: LLM client to use for every run. If None, a client is
                built from the settings for each run and closed afterwards.
            prompt_manager: Prompt source (package prompts if None)
            batch_delay: Seconds to wait between batches
        """
        self.settings = settings
        self.prompt_manager = prompt_manager or PromptManager()
        self.batch_delay = batch_delay
        self._client = client

    def reconfigure(self, settings: Settings) -> None:
        """Swap settings; takes effect on the next run."""
        if (
            settings.groq_api_key != self.settings.groq_api_key
            or settings.groq_model != self.settings.groq_model
        ):
            logger.info(f"Generator reconfigured for model {settings.groq_model}")
        self.settings = settings

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[BaseLLMClient]:
        if self._client is not None:
            yield self._client
            return

        client = get_client(self.settings.groq_model, api_key=self.settings.groq_api_key)
        try:
            yield client
        finally:
            await client.aclose()

    # ========================================================================
    # Public API
    # ========================================================================

    async def generate(
        self,
        content: str,
        mode: GenerationMode = GenerationMode.DYNAMIC,
        user_tags: Optional[Iterable[str]] = None,
        source: Optional[str] = None,
    ) -> List[Card]:
        """
        Generate flashcards from text.

        Args:
            content: Note text
            mode: Dynamic (model suggests tags) or fixed (use ``user_tags``)
            user_tags: Tags for fixed mode (settings.default_tags if None)
            source: Provenance label attached to every card

        Returns:
            Flattened list of cards from every successful chunk (may be empty)

        Raises:
            ConfigurationError: If no Groq API key is configured
            EmptyInputError: If ``content`` is blank
        """
        report = await self.generate_with_report(content, mode, user_tags, source)
        return report.cards

    async def generate_with_report(
        self,
        content: str,
        mode: GenerationMode = GenerationMode.DYNAMIC,
        user_tags: Optional[Iterable[str]] = None,
        source: Optional[str] = None,
    ) -> GenerationReport:
        """Like ``generate`` but also returns chunk-level counters."""
        if not self.settings.has_api_key:
            raise ConfigurationError()

        if not content or not content.strip():
            raise EmptyInputError()

        mode = GenerationMode(mode)
        tags = list(user_tags) if user_tags is not None else list(self.settings.default_tags)

        async with self._session() as client:
            chunking = chunk_text(content, self.settings.max_chunk_size)
            summarized = False

            if chunking.requires_summarization:
                logger.info(
                    f"Content is large ({chunking.total_tokens} tokens), summarizing first"
                )
                content = await self._summarize(client, content)
                chunking = chunk_text(content, self.settings.max_chunk_size)
                summarized = True

            logger.info(
                f"Generating flashcards from {len(chunking.chunks)} chunk(s) "
                f"({chunking.total_tokens} tokens, mode={mode.value})"
            )

            report = GenerationReport(chunks_total=len(chunking.chunks), summarized=summarized)
            await self._process_chunks(client, chunking.chunks, mode, tags, source, report)

        cost = estimate_cost(report.input_tokens, report.output_tokens, self.settings.groq_model)
        cost_text = f", estimated cost ${cost:.4f}" if cost is not None else ""
        logger.info(f"Generation complete: {report.summary()}{cost_text}")

        return report

    async def summarize(self, content: str) -> str:
        """Compress content; falls back to hard truncation if the call fails."""
        async with self._session() as client:
            return await self._summarize(client, content)

    async def test_connection(self) -> dict:
        """Check credentials and reachability of the generation service."""
        async with self._session() as client:
            return await client.test_connection()

    # ========================================================================
    # Internals
    # ========================================================================

    async def _summarize(self, client: BaseLLMClient, content: str) -> str:
        prompt = self.prompt_manager.format_summary_prompt(content, SUMMARY_TARGET_TOKENS)
        try:
            response = await client.generate(
                prompt,
                config=SUMMARY_GENERATION_CONFIG,
                system_prompt=SUMMARY_SYSTEM_PROMPT,
            )
        except TransientServiceError as e:
            logger.warning(
                f"Summarization failed, truncating to {SUMMARY_TOKEN_BUDGET} tokens: {e}"
            )
            return truncate_to_token_limit(content, SUMMARY_TOKEN_BUDGET)

        return response.text

    async def _process_chunks(
        self,
        client: BaseLLMClient,
        chunks: List[TextChunk],
        mode: GenerationMode,
        tags: List[str],
        source: Optional[str],
        report: GenerationReport,
    ) -> None:
        """Run chunks in batches of ``max_parallel_requests``; batches never overlap."""
        batch_size = self.settings.max_parallel_requests

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start:start + batch_size]
            batch_number = start // batch_size + 1
            logger.debug(f"Batch {batch_number}: chunks {start + 1}-{start + len(batch)}")

            results = await asyncio.gather(
                *(self._generate_from_chunk(client, chunk, mode, tags, report) for chunk in batch),
                return_exceptions=True,
            )

            for chunk, result in zip(batch, results):
                if isinstance(result, ConfigurationError):
                    raise result
                if isinstance(result, BaseException) and not isinstance(result, Exception):
                    raise result

                if isinstance(result, Exception):
                    report.chunks_failed += 1
                    report.errors.append(f"Chunk {chunk.index + 1}: {result}")
                    if isinstance(result, (TransientServiceError, ValidationError)):
                        logger.warning(f"Chunk {chunk.index + 1} skipped: {result}")
                    else:
                        logger.error(
                            f"Chunk {chunk.index + 1} failed unexpectedly: {result}",
                            exc_info=result,
                        )
                    continue

                report.cards.extend(card.with_source(source) for card in result)

            if start + batch_size < len(chunks) and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

    async def _generate_from_chunk(
        self,
        client: BaseLLMClient,
        chunk: TextChunk,
        mode: GenerationMode,
        tags: List[str],
        report: GenerationReport,
    ) -> List[Card]:
        prompt = self.prompt_manager.format_card_prompt(
            chunk.content, mode=mode, tags=tags, min_cards=MIN_CARDS, max_cards=MAX_CARDS
        )

        response = await client.generate(
            prompt,
            config=CARD_GENERATION_CONFIG,
            system_prompt=CARD_SYSTEM_PROMPT,
        )
        report.add_usage(prompt, response)

        outcome = validate_response(response.text, default_tag=self.settings.default_tag)
        if outcome.is_valid:
            return outcome.cards

        if outcome.repaired:
            logger.warning(
                f"Chunk {chunk.index + 1}: response failed validation, "
                f"using {len(outcome.repaired)} repaired card(s): {outcome.errors}"
            )
            return outcome.repaired

        raise ValidationError(errors=outcome.errors)
