"""
Flashcard generation, validation and repair.
"""

from .generator import FlashcardGenerator, GenerationReport
from .prompt_manager import PromptManager
from .schema import Card, GenerationMode, ValidationOutcome
from .validator import (
    extract_candidates,
    repair_batch,
    sanitize_cards,
    validate_batch,
    validate_card,
    validate_response,
)

__all__ = [
    "Card",
    "FlashcardGenerator",
    "GenerationMode",
    "GenerationReport",
    "PromptManager",
    "ValidationOutcome",
    "extract_candidates",
    "repair_batch",
    "sanitize_cards",
    "validate_batch",
    "validate_card",
    "validate_response",
]
