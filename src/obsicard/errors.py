"""
Error taxonomy for the ObsiCard pipeline.

Every error carries a stable ``code`` (useful in logs and reports) and a
``retryable`` flag. Only configuration and input errors are allowed to reach
the caller of the generation pipeline; service and validation errors are
handled per chunk or per queued item.
"""

from typing import Optional


class ObsiCardError(Exception):
    """Base for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "UNKNOWN",
        retryable: bool = False,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.retryable = retryable
        self.details = details or ""


class ConfigurationError(ObsiCardError):
    """Missing or invalid configuration, e.g. no Groq API key."""

    def __init__(self, message: str = "Groq API key not configured", **kwargs: object) -> None:
        super().__init__(message, code="CONFIGURATION", retryable=False, **kwargs)


class EmptyInputError(ObsiCardError):
    """No content was provided for flashcard generation."""

    def __init__(self, message: str = "Empty content", **kwargs: object) -> None:
        super().__init__(message, code="EMPTY_INPUT", retryable=False, **kwargs)


class TransientServiceError(ObsiCardError):
    """The generation service or the card store failed or is unreachable."""

    def __init__(self, message: str = "Service unavailable", **kwargs: object) -> None:
        kwargs.setdefault("code", "SERVICE_UNAVAILABLE")
        super().__init__(message, retryable=True, **kwargs)


class StoreCallError(TransientServiceError):
    """The store answered, but reported an error for the requested action."""

    def __init__(self, message: str, *, action: str = "", **kwargs: object) -> None:
        super().__init__(message, code="STORE_CALL_FAILED", **kwargs)
        self.action = action


class ValidationError(ObsiCardError):
    """Generator output could not be turned into any usable card."""

    def __init__(
        self,
        message: str = "Failed to generate valid flashcards",
        *,
        errors: Optional[list] = None,
        **kwargs: object,
    ) -> None:
        super().__init__(message, code="VALIDATION", retryable=False, **kwargs)
        self.errors = list(errors or [])


class RetryExhaustedError(ObsiCardError):
    """A queued card was dropped after reaching the retry ceiling.

    Never raised by the queue manager; instances are logged and kept in
    ``SyncQueueManager.dropped`` for inspection.
    """

    def __init__(self, message: str, *, retry_count: int = 0, **kwargs: object) -> None:
        super().__init__(message, code="RETRY_EXHAUSTED", retryable=False, **kwargs)
        self.retry_count = retry_count
