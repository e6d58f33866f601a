"""
Groq LLM Client Implementation

Talks to Groq's OpenAI-compatible chat-completions endpoint over httpx.
Any OpenAI-compatible server can be used by passing a different base_url.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ConfigurationError, TransientServiceError
from .base import BaseLLMClient, GenerationConfig, LLMProvider, LLMResponse
from .config import DEFAULT_MODEL, GROQ_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
API_KEY_PREFIX = "gsk_"


class GroqClient(BaseLLMClient):
    """
    Async client for Groq chat completions.

    The HTTP client is created lazily on first use. No retries happen here:
    a failed call surfaces as TransientServiceError and the caller decides
    what to skip.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL,
        api_key: str = "",
        base_url: str = GROQ_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Groq client.

        Args:
            model_id: Groq model ID (e.g., "llama-3.1-8b-instant")
            api_key: Groq API key
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        super().__init__(model_id, api_key, base_url)
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def provider(self) -> LLMProvider:
        if self.base_url == GROQ_BASE_URL.rstrip("/"):
            return LLMProvider.GROQ
        return LLMProvider.OPENAI_COMPATIBLE

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _initialize(self) -> None:
        """Create the pooled httpx client."""
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        logger.debug(f"Groq client initialized: {self.model_id}")

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await super().aclose()

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        self._ensure_initialized()
        try:
            return await self._client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise TransientServiceError(f"Groq request failed: {e}") from e

    async def generate(
        self,
        prompt: str,
        config: Optional[GenerationConfig] = None,
        system_prompt: Optional[str] = None
    ) -> LLMResponse:
        """
        Generate text using a Groq chat completion.

        Args:
            prompt: User prompt
            config: Generation configuration
            system_prompt: Optional system message

        Returns:
            LLMResponse with generated text

        Raises:
            ConfigurationError: If the API key is rejected (401/403)
            TransientServiceError: On transport errors, non-200 status,
                missing choices or empty content
        """
        config = config or GenerationConfig()

        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model_id,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": config.max_output_tokens,
            **config.extra,
        }

        response = await self._post(payload)

        if response.status_code in (401, 403):
            raise ConfigurationError(
                f"Groq API rejected the API key ({response.status_code})",
                details=response.text[:500],
            )
        if response.status_code != 200:
            raise TransientServiceError(
                f"Groq API error ({response.status_code}): {response.text[:500]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientServiceError("Groq API returned a non-JSON body") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices[0], dict) or not choices[0].get("message"):
            raise TransientServiceError("Invalid response format from Groq API")

        text = choices[0]["message"].get("content")
        if not text or not isinstance(text, str):
            raise TransientServiceError("No content in response from Groq API")

        usage = data.get("usage") or {}
        return LLMResponse(
            text=text,
            model=data.get("model", self.model_id),
            provider=self.provider,
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
            finish_reason=choices[0].get("finish_reason"),
            raw_response=data,
        )

    async def test_connection(self) -> Dict[str, Any]:
        """
        Test API connectivity with detailed error reporting.

        Returns:
            Dict with success flag, message and optional details
        """
        if not self.api_key or not self.api_key.strip():
            return {"success": False, "message": "Groq API key is not configured"}

        if self.provider == LLMProvider.GROQ and not self.api_key.startswith(API_KEY_PREFIX):
            return {
                "success": False,
                "message": f'Invalid API key format. Groq API keys should start with "{API_KEY_PREFIX}"',
            }

        payload = {
            "model": self.model_id,
            "messages": [{"role": "user", "content": "Test"}],
            "max_tokens": 10,
        }

        try:
            response = await self._post(payload)
        except TransientServiceError as e:
            return {"success": False, "message": f"Connection failed: {e}"}

        if response.status_code != 200:
            message = f"HTTP {response.status_code}"
            try:
                error = response.json().get("error") or {}
                message = error.get("message") or error.get("type") or message
            except (ValueError, AttributeError):
                message = response.text or message
            return {
                "success": False,
                "message": f"Groq API error: {message}",
                "details": {"status": response.status_code, "response": response.text[:500]},
            }

        return {
            "success": True,
            "message": "Successfully connected to Groq API",
            "details": {"model": self.model_id},
        }
