"""
Prompt Manager for Flashcard Generation

Handles loading and formatting the prompts sent to the generation service.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from ..common.chunker import count_tokens
from .schema import GenerationMode

CARD_PROMPT = "card_generation_prompt.txt"
SUMMARY_PROMPT = "summary_prompt.txt"

CARD_SYSTEM_PROMPT = (
    "You are a helpful assistant that creates educational flashcards. "
    "Always respond with valid JSON only."
)
SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that creates concise summaries."

DYNAMIC_TAG_INSTRUCTION = "Suggest relevant tags based on the content."

DEFAULT_MIN_CARDS = 3
DEFAULT_MAX_CARDS = 10
DEFAULT_SUMMARY_TOKENS = 1000


class PromptManager:
    """
    Manages prompts for flashcard generation.

    Handles:
    - Loading prompt templates from files
    - Formatting card and summary prompts
    """

    def __init__(self, prompt_dir: Optional[str] = None):
        """
        Initialize prompt manager.

        Args:
            prompt_dir: Directory containing prompt files (defaults to package prompts/)
        """
        if prompt_dir is None:
            self.prompt_dir = Path(__file__).parent / 'prompts'
        else:
            self.prompt_dir = Path(prompt_dir)

        self._prompt_cache: Dict[str, str] = {}

    def load_prompt(self, prompt_name: str = CARD_PROMPT) -> str:
        """
        Load prompt template from file.

        Args:
            prompt_name: Name of prompt file (default: card_generation_prompt.txt)

        Returns:
            Prompt template string

        Raises:
            FileNotFoundError: If prompt file doesn't exist
        """
        if prompt_name in self._prompt_cache:
            return self._prompt_cache[prompt_name]

        prompt_path = self.prompt_dir / prompt_name

        if not prompt_path.exists():
            raise FileNotFoundError(
                f"Prompt file not found: {prompt_path}. "
                f"Available prompts: {list(self.prompt_dir.glob('*.txt'))}"
            )

        with open(prompt_path, 'r', encoding='utf-8') as f:
            prompt_template = f.read()

        self._prompt_cache[prompt_name] = prompt_template

        return prompt_template

    @staticmethod
    def tag_instruction(mode: GenerationMode, tags: Iterable[str]) -> str:
        """Tag line appended to the card prompt."""
        if GenerationMode(mode) == GenerationMode.DYNAMIC:
            return DYNAMIC_TAG_INSTRUCTION
        return f"Use these tags: {', '.join(tags)}"

    def format_card_prompt(
        self,
        content: str,
        mode: GenerationMode = GenerationMode.DYNAMIC,
        tags: Iterable[str] = (),
        min_cards: int = DEFAULT_MIN_CARDS,
        max_cards: int = DEFAULT_MAX_CARDS,
    ) -> str:
        """
        Format the card generation prompt for one chunk.

        Args:
            content: Chunk text
            mode: Dynamic (model suggests tags) or fixed (use ``tags``)
            tags: Caller's tags for fixed mode
            min_cards: Lower bound of the requested card count
            max_cards: Upper bound of the requested card count

        Returns:
            Formatted prompt ready for the generation service
        """
        template = self.load_prompt(CARD_PROMPT)

        # replace() instead of format(): the template contains JSON braces
        prompt = template.replace('{min_cards}', str(min_cards))
        prompt = prompt.replace('{max_cards}', str(max_cards))
        prompt = prompt.replace('{tag_instruction}', self.tag_instruction(mode, tags))
        # Content last so braces inside the note are left alone
        prompt = prompt.replace('{content}', content if content is not None else "")

        return prompt

    def format_summary_prompt(
        self,
        content: str,
        target_tokens: int = DEFAULT_SUMMARY_TOKENS,
    ) -> str:
        """Format the summarization prompt used for oversized input."""
        template = self.load_prompt(SUMMARY_PROMPT)
        prompt = template.replace('{target_tokens}', str(target_tokens))
        return prompt.replace('{content}', content if content is not None else "")

    def get_prompt_stats(self, prompt: str) -> Dict[str, Any]:
        """
        Get statistics about a formatted prompt.

        Returns:
            Dictionary with char_count, word_count and estimated_tokens
        """
        return {
            'char_count': len(prompt),
            'word_count': len(prompt.split()),
            'estimated_tokens': count_tokens(prompt),
        }
