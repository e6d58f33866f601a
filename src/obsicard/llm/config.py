"""
LLM Configuration and Model Registry

Defines known models and their configurations. The configured model name may
also be one the registry does not know; Groq adds models often.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .base import LLMProvider

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "llama-3.1-8b-instant"


@dataclass
class ModelInfo:
    """Information about a specific model."""
    model_id: str
    provider: LLMProvider
    description: str
    input_cost_per_1m: float  # USD per 1M input tokens
    output_cost_per_1m: float  # USD per 1M output tokens
    max_context: int  # Max context window
    max_output: int  # Max output tokens


# Model Registry - known Groq models
MODEL_REGISTRY: Dict[str, ModelInfo] = {
    "llama-3.1-8b-instant": ModelInfo(
        model_id="llama-3.1-8b-instant",
        provider=LLMProvider.GROQ,
        description="Llama 3.1 8B Instant - Fast, cheapest",
        input_cost_per_1m=0.05,
        output_cost_per_1m=0.08,
        max_context=131_072,
        max_output=131_072,
    ),
    "llama-3.3-70b-versatile": ModelInfo(
        model_id="llama-3.3-70b-versatile",
        provider=LLMProvider.GROQ,
        description="Llama 3.3 70B Versatile - Higher quality cards",
        input_cost_per_1m=0.59,
        output_cost_per_1m=0.79,
        max_context=131_072,
        max_output=32_768,
    ),
    "openai/gpt-oss-20b": ModelInfo(
        model_id="openai/gpt-oss-20b",
        provider=LLMProvider.GROQ,
        description="GPT-OSS 20B - Balanced speed/quality",
        input_cost_per_1m=0.075,
        output_cost_per_1m=0.30,
        max_context=131_072,
        max_output=65_536,
    ),
}

# Aliases for convenience
MODEL_ALIASES: Dict[str, str] = {
    "llama": "llama-3.1-8b-instant",
    "llama-instant": "llama-3.1-8b-instant",
    "llama-70b": "llama-3.3-70b-versatile",
    "versatile": "llama-3.3-70b-versatile",
    "gpt-oss": "openai/gpt-oss-20b",
}


def resolve_model_name(name: str) -> str:
    """
    Resolve model name from alias or return as-is.

    Args:
        name: Model name or alias

    Returns:
        Resolved model name
    """
    return MODEL_ALIASES.get(name.strip().lower(), name.strip())


def get_model_info(name: str) -> Optional[ModelInfo]:
    """
    Get model info by name or alias.

    Args:
        name: Model name or alias

    Returns:
        ModelInfo or None if not found
    """
    return MODEL_REGISTRY.get(resolve_model_name(name))


def list_available_models() -> Dict[str, ModelInfo]:
    """Return all known models."""
    return MODEL_REGISTRY.copy()


def estimate_cost(
    input_tokens: int,
    output_tokens: int,
    model: str = DEFAULT_MODEL,
) -> Optional[float]:
    """
    Estimate the USD cost of a run.

    Args:
        input_tokens: Estimated prompt tokens across all calls
        output_tokens: Estimated completion tokens across all calls
        model: Model name or alias

    Returns:
        Cost in USD, or None if the model is not in the registry
    """
    info = get_model_info(model)
    if info is None:
        return None

    input_cost = (input_tokens / 1_000_000) * info.input_cost_per_1m
    output_cost = (output_tokens / 1_000_000) * info.output_cost_per_1m
    return input_cost + output_cost
