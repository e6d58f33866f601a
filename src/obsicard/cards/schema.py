"""
Flashcard Schema Definition

Defines the card record produced by the pipeline and delivered to Anki.

Structure:
  {
    "front": str,        # question or prompt, non-empty, ≤5000 characters
    "back": str,         # answer, non-empty, ≤10000 characters
    "tags": list[str],   # lowercase, deduplicated, ≤10 entries of ≤50 chars
    "source": str|None   # provenance label, e.g. the originating note name
  }
"""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..common.sanitizer import MAX_TAG_LENGTH, MAX_TAGS

FRONT_MAX_LENGTH = 5000
BACK_MAX_LENGTH = 10000


class GenerationMode(str, Enum):
    """How tags are chosen for generated cards."""
    DYNAMIC = "dynamic"  # the model suggests tags from the content
    FIXED = "fixed"  # the caller's tag list is used


@dataclass
class Card:
    """
    A validated flashcard.

    Attributes:
        front: Question or prompt side
        back: Answer side
        tags: Normalized tag list
        source: Optional provenance label (originating note name)

    Constraints:
        - front and back are never empty
        - front ≤5000 chars, back ≤10000 chars
        - at most 10 tags
    """
    front: str
    back: str
    tags: List[str] = field(default_factory=list)
    source: Optional[str] = None

    def __post_init__(self):
        """Validate card constraints after initialization."""
        if not isinstance(self.front, str) or not self.front.strip():
            raise ValueError("Card front cannot be empty")
        if not isinstance(self.back, str) or not self.back.strip():
            raise ValueError("Card back cannot be empty")

        if len(self.front) > FRONT_MAX_LENGTH:
            raise ValueError(
                f"Card front exceeds {FRONT_MAX_LENGTH} character limit: {len(self.front)} chars"
            )
        if len(self.back) > BACK_MAX_LENGTH:
            raise ValueError(
                f"Card back exceeds {BACK_MAX_LENGTH} character limit: {len(self.back)} chars"
            )

        if len(self.tags) > MAX_TAGS:
            raise ValueError(f"Card has {len(self.tags)} tags, maximum is {MAX_TAGS}")
        too_long = [t for t in self.tags if len(t) > MAX_TAG_LENGTH]
        if too_long:
            raise ValueError(f"Tags exceed {MAX_TAG_LENGTH} characters: {too_long}")

    def with_source(self, source: Optional[str]) -> "Card":
        """Return a copy labelled with ``source`` (keeps the current label if None)."""
        return Card(
            front=self.front,
            back=self.back,
            tags=list(self.tags),
            source=source or self.source,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert card to a JSON-compatible dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Card':
        """
        Create card from dictionary (e.g., a persisted queue entry).

        Args:
            data: Dictionary with card fields

        Returns:
            Card instance
        """
        return cls(
            front=data['front'],
            back=data['back'],
            tags=list(data.get('tags') or []),
            source=data.get('source'),
        )

    def to_json(self) -> str:
        """Serialize card to JSON string."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> 'Card':
        """Deserialize card from JSON string."""
        return cls.from_dict(json.loads(json_str))


@dataclass
class ValidationOutcome:
    """
    Result of validating a batch of raw candidate cards.

    Attributes:
        is_valid: True only if the batch is non-empty and every candidate passed
        errors: One human-readable message per malformed candidate ("Card 2: ...")
        repaired: Cards recovered by repair; set only when repair ran and
            produced at least one card
        cards: Normalized cards of a fully valid batch
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    repaired: Optional[List[Card]] = None
    cards: List[Card] = field(default_factory=list)

    def usable_cards(self) -> List[Card]:
        """Cards the pipeline can use: the valid batch, else the repaired set."""
        if self.is_valid:
            return list(self.cards)
        return list(self.repaired or [])
