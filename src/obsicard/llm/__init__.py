"""
LLM Provider Abstraction Layer

Unified async interface for chat-completion providers (Groq and any
OpenAI-compatible endpoint).

Usage:
    # Simple - uses the default model
    from obsicard.llm import get_client
    client = get_client(api_key="gsk_...")
    response = await client.generate("Summarize this text...")

    # Explicit model selection
    client = get_client("llama-70b", api_key="gsk_...")

    # List available models
    from obsicard.llm import list_models
    for name, info in list_models().items():
        print(f"{name}: {info.description}")

Environment Variables:
    GROQ_API_KEY: API key (read by obsicard.settings, not here)
    LLM_MODEL: Default model (read by obsicard.settings, not here)
"""

import logging
from typing import Dict, Optional

import httpx

from .base import BaseLLMClient, GenerationConfig, LLMProvider, LLMResponse
from .config import (
    DEFAULT_MODEL,
    GROQ_BASE_URL,
    MODEL_ALIASES,
    MODEL_REGISTRY,
    ModelInfo,
    estimate_cost,
    get_model_info,
    list_available_models,
    resolve_model_name,
)
from .groq import GroqClient

logger = logging.getLogger(__name__)


def get_client(
    model: Optional[str] = None,
    api_key: str = "",
    base_url: Optional[str] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> BaseLLMClient:
    """
    Get an LLM client for the specified model.

    Clients are not cached: each one owns an httpx pool bound to the event
    loop it first runs on.

    Args:
        model: Model name or alias (e.g., "llama-3.1-8b-instant", "llama-70b").
               Uses the default model if None.
        api_key: Provider API key
        base_url: API base URL (Groq if None)
        transport: Optional httpx transport (used by tests)

    Returns:
        Configured LLM client

    Example:
        >>> client = get_client("llama-70b", api_key="gsk_...")
        >>> response = await client.generate("Hello!")
        >>> print(response.text)
    """
    model_name = resolve_model_name(model) if model else DEFAULT_MODEL

    if get_model_info(model_name) is None:
        logger.warning(
            f"Model {model_name} is not in the registry; cost estimates will be unavailable"
        )

    client = GroqClient(
        model_id=model_name,
        api_key=api_key,
        base_url=base_url or GROQ_BASE_URL,
        transport=transport,
    )
    logger.debug(f"Created LLM client: {client}")
    return client


def list_models() -> Dict[str, ModelInfo]:
    """
    List all available models.

    Returns:
        Dictionary of model name -> ModelInfo
    """
    return list_available_models()


# Convenience exports
__all__ = [
    # Main factory
    "get_client",
    # Types
    "BaseLLMClient",
    "GenerationConfig",
    "LLMProvider",
    "LLMResponse",
    "ModelInfo",
    # Clients
    "GroqClient",
    # Config utilities
    "DEFAULT_MODEL",
    "GROQ_BASE_URL",
    "MODEL_ALIASES",
    "MODEL_REGISTRY",
    "estimate_cost",
    "get_model_info",
    "list_models",
    "resolve_model_name",
]
