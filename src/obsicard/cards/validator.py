"""
Flashcard validation and repair.

Stateless functions that check raw generator output against the card schema
and, when it does not conform, rebuild as many cards as possible from
alternate field names and sanitized content.

Accepted response shapes:
    - a list of candidate records
    - a JSON string holding such a list (code fences and surrounding prose
      are tolerated)
    - a record with a "flashcards" or "cards" list
"""

import json
import logging
import re
from typing import Any, Iterable, List, Optional, Tuple

from ..common.sanitizer import clean_card_content, normalize_tags
from .schema import BACK_MAX_LENGTH, FRONT_MAX_LENGTH, Card, ValidationOutcome

logger = logging.getLogger(__name__)

DEFAULT_TAG = "obsidian"
ELLIPSIS = "..."

FRONT_FIELDS = ("front", "question", "prompt")
BACK_FIELDS = ("back", "answer", "response")
WRAPPER_FIELDS = ("flashcards", "cards")

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


# ============================================================================
# Validation
# ============================================================================


def validate_card(candidate: Any) -> Tuple[bool, List[str]]:
    """
    Validate a single raw candidate.

    Args:
        candidate: Anything the generator returned for one card

    Returns:
        Tuple of (is_valid, errors)
    """
    errors: List[str] = []

    if not isinstance(candidate, dict):
        return False, ["Flashcard must be an object"]

    front = candidate.get("front")
    if not isinstance(front, str) or not front:
        errors.append('Flashcard must have a valid "front" string')
    elif not front.strip():
        errors.append('Flashcard "front" cannot be empty')
    elif len(front) > FRONT_MAX_LENGTH:
        errors.append(f'Flashcard "front" is too long (max {FRONT_MAX_LENGTH} characters)')

    back = candidate.get("back")
    if not isinstance(back, str) or not back:
        errors.append('Flashcard must have a valid "back" string')
    elif not back.strip():
        errors.append('Flashcard "back" cannot be empty')
    elif len(back) > BACK_MAX_LENGTH:
        errors.append(f'Flashcard "back" is too long (max {BACK_MAX_LENGTH} characters)')

    tags = candidate.get("tags")
    if not isinstance(tags, list):
        errors.append('Flashcard must have a "tags" array')
    elif any(not isinstance(tag, str) for tag in tags):
        errors.append("All tags must be strings")

    return len(errors) == 0, errors


def validate_batch(candidates: Any, default_tag: str = DEFAULT_TAG) -> ValidationOutcome:
    """
    Validate a batch of raw candidates.

    The batch is valid only if it is a non-empty list and every candidate
    passes. A valid batch comes back normalized in ``cards``; an invalid one
    carries one error string per failing candidate and no cards.
    """
    if not isinstance(candidates, list):
        return ValidationOutcome(is_valid=False, errors=["Expected an array of flashcards"])

    if not candidates:
        return ValidationOutcome(is_valid=False, errors=["Flashcard array is empty"])

    errors: List[str] = []
    for index, candidate in enumerate(candidates):
        is_valid, card_errors = validate_card(candidate)
        if not is_valid:
            errors.append(f"Card {index + 1}: {', '.join(card_errors)}")

    if errors:
        return ValidationOutcome(is_valid=False, errors=errors)

    return ValidationOutcome(
        is_valid=True,
        errors=[],
        cards=repair_batch(candidates, default_tag=default_tag),
    )


# ============================================================================
# Repair
# ============================================================================


def _first_text(candidate: dict, fields: Iterable[str]) -> str:
    """Return the first non-empty string among ``fields``."""
    for name in fields:
        value = candidate.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return ""


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS


def _candidate_tags(raw_tags: Any) -> List[str]:
    if isinstance(raw_tags, str):
        return raw_tags.split(",")
    if isinstance(raw_tags, list):
        return [t for t in raw_tags if isinstance(t, str)]
    return []


def repair_card(candidate: Any, default_tag: str = DEFAULT_TAG) -> Optional[Card]:
    """
    Rebuild a single card from a possibly malformed candidate.

    Returns:
        Card, or None if front or back is still empty after recovery
    """
    if not isinstance(candidate, dict):
        return None

    front, back = clean_card_content(
        _first_text(candidate, FRONT_FIELDS),
        _first_text(candidate, BACK_FIELDS),
    )
    if not front or not back:
        return None

    tags = normalize_tags(_candidate_tags(candidate.get("tags")))
    if not tags:
        tags = normalize_tags([default_tag]) or [DEFAULT_TAG]

    source = candidate.get("source")

    return Card(
        front=_truncate(front, FRONT_MAX_LENGTH),
        back=_truncate(back, BACK_MAX_LENGTH),
        tags=tags,
        source=source if isinstance(source, str) and source else None,
    )


def repair_batch(candidates: Any, default_tag: str = DEFAULT_TAG) -> List[Card]:
    """
    Best-effort reconstruction of a batch. Never raises.

    Unrepairable candidates are skipped; the result may be empty.
    """
    if not isinstance(candidates, list):
        return []

    repaired: List[Card] = []
    for index, candidate in enumerate(candidates):
        try:
            card = repair_card(candidate, default_tag=default_tag)
        except (ValueError, TypeError) as e:
            logger.debug(f"Failed to repair candidate {index + 1}: {e}")
            continue
        if card is not None:
            repaired.append(card)

    return repaired


def sanitize_cards(cards: Iterable[Card], default_tag: str = DEFAULT_TAG) -> List[Card]:
    """Re-run cleaning on cards that may have been edited after generation."""
    return repair_batch([card.to_dict() for card in cards], default_tag=default_tag)


# ============================================================================
# Response-shape normalization
# ============================================================================


def _strip_code_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    # Remove opening fence (with optional language tag)
    text = text.split("\n", 1)[1] if "\n" in text else text[3:]
    text = text.rstrip()
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json_text(text: str) -> Any:
    """
    Parse generator text as JSON.

    Tries a direct parse first, then extracts the outermost JSON array from
    surrounding prose.

    Raises:
        ValueError: If no valid JSON can be found
    """
    stripped = _strip_code_fence(text.strip())
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        pass

    match = _JSON_ARRAY.search(stripped)
    if not match:
        raise ValueError("No JSON found in response")

    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ValueError(f"Could not extract valid JSON from response: {e}") from e


def extract_candidates(response: Any) -> List[Any]:
    """
    Unwrap any accepted response shape into a flat candidate list.

    Raises:
        ValueError: If ``response`` is a string that holds no parseable JSON
    """
    if isinstance(response, str):
        response = parse_json_text(response)

    if isinstance(response, list):
        return list(response)

    if isinstance(response, dict):
        for key in WRAPPER_FIELDS:
            if isinstance(response.get(key), list):
                return list(response[key])
        # A lone card object
        if any(key in response for key in FRONT_FIELDS):
            return [response]

    return []


def validate_response(response: Any, default_tag: str = DEFAULT_TAG) -> ValidationOutcome:
    """
    Validate raw generator output, repairing it when validation fails.

    ``is_valid`` reflects strict validation only. When it is False, repair is
    attempted and ``repaired`` holds whatever could be recovered.
    """
    try:
        candidates = extract_candidates(response)
    except ValueError as e:
        return ValidationOutcome(is_valid=False, errors=[f"Failed to parse response: {e}"])

    outcome = validate_batch(candidates, default_tag=default_tag)
    if outcome.is_valid:
        return outcome

    repaired = repair_batch(candidates, default_tag=default_tag)
    if repaired:
        logger.info(
            f"Repaired {len(repaired)}/{len(candidates)} candidates after validation "
            f"failed with {len(outcome.errors)} error(s)"
        )
        outcome.repaired = repaired

    return outcome
