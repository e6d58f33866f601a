"""
LLM Provider Abstraction Layer - Base Classes

Provides a unified async interface for chat-completion providers so the
card generator does not depend on a specific vendor.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    GROQ = "groq"
    OPENAI_COMPATIBLE = "openai-compatible"


@dataclass
class GenerationConfig:
    """
    Model-agnostic generation configuration.

    Maps to the provider's request body internally.
    """
    temperature: float = 0.7
    max_output_tokens: int = 4000

    # Provider-specific overrides (optional)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMResponse:
    """
    Unified response from any LLM provider.
    """
    text: str
    model: str
    provider: LLMProvider

    # Usage stats (if available)
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None

    # Raw response for debugging
    raw_response: Optional[Any] = None

    # Finish reason
    finish_reason: Optional[str] = None


class BaseLLMClient(ABC):
    """
    Abstract base class for LLM clients.

    All provider implementations must inherit from this class.
    """

    def __init__(self, model_id: str, api_key: str, base_url: str):
        """
        Initialize LLM client.

        Args:
            model_id: Model identifier (e.g., "llama-3.1-8b-instant")
            api_key: Provider API key
            base_url: API base URL (without the endpoint path)
        """
        self.model_id = model_id
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._initialized = False

    @property
    @abstractmethod
    def provider(self) -> LLMProvider:
        """Return the provider type."""
        pass

    @abstractmethod
    def _initialize(self) -> None:
        """Initialize the underlying client. Called lazily on first use."""
        pass

    def _ensure_initialized(self) -> None:
        """Ensure client is initialized before use."""
        if not self._initialized:
            self._initialize()
            self._initialized = True

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        system_prompt: Optional[str] = None
    ) -> LLMResponse:
        """
        Generate text from a prompt.

        Args:
            prompt: User prompt
            config: Generation configuration (uses defaults if None)
            system_prompt: Optional system message

        Returns:
            LLMResponse with generated text and metadata

        Raises:
            TransientServiceError: If the call fails for any reason
        """
        pass

    @abstractmethod
    async def test_connection(self) -> Dict[str, Any]:
        """
        Check credentials and reachability with a minimal request.

        Returns:
            Dict with success flag, message and optional details
        """
        pass

    async def aclose(self) -> None:
        """Release network resources. Safe to call more than once."""
        self._initialized = False

    async def __aenter__(self) -> "BaseLLMClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self.model_id}, base_url={self.base_url})"
