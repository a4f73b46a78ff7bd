"""
Pipeline Error Handler
======================

Exception taxonomy for the diagram pipeline plus the timeout and response
checks shared by every LLM call.

Every exception carries an ``error_type`` tag (used in API failure payloads)
and an optional ``stage`` naming the pipeline step that raised it.
"""

import asyncio
import logging
from typing import Callable, Any, Optional

logger = logging.getLogger(__name__)


class DiagramServiceError(Exception):
    """Base exception for the diagram service."""
    error_type = 'internal_error'

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class QueryValidationError(DiagramServiceError):
    """Raised when the incoming query is empty or unusable."""
    error_type = 'validation_error'


class LLMServiceError(DiagramServiceError):
    """Base exception for LLM call failures."""
    error_type = 'provider_error'


class LLMConfigurationError(LLMServiceError):
    """Raised when the provider credential is missing - fatal, never retried."""
    error_type = 'configuration_error'


class LLMTimeoutError(LLMServiceError):
    """Raised when an LLM attempt exceeds its wall-clock budget."""
    error_type = 'timeout_error'


class LLMEmptyResponseError(LLMServiceError):
    """Raised when the provider answers 2xx but no text can be extracted."""


class LLMProviderError(LLMServiceError):
    """Raised for non-2xx provider responses."""
    def __init__(
        self,
        message: str,
        provider: str = None,
        error_code: str = None,
        status_code: int = None,
        stage: Optional[str] = None
    ):
        super().__init__(message, stage=stage)
        self.provider = provider
        self.error_code = error_code
        self.status_code = status_code
        self.user_message = None  # User-friendly error message


class LLMRateLimitError(LLMProviderError):
    """Raised when the provider rate limit is exceeded."""
    pass


class LLMContentFilterError(LLMProviderError):
    """Raised when content is flagged by the provider's safety system."""
    pass


class LLMInvalidParameterError(LLMProviderError):
    """Raised when request parameters are rejected."""
    def __init__(self, message: str, parameter: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self.parameter = parameter


class LLMQuotaExhaustedError(LLMProviderError):
    """Raised when the account quota or billing limit is exhausted."""
    pass


class LLMModelNotFoundError(LLMProviderError):
    """Raised when the requested model doesn't exist."""
    pass


class LLMAccessDeniedError(LLMProviderError):
    """Raised when the credential is rejected."""
    pass


class ParseError(DiagramServiceError):
    """Raised when a response can't be turned into the expected shape."""
    error_type = 'parse_error'


class MissingDiagramSourceError(ParseError):
    """Raised when no diagram source can be located in a response."""
    pass


def error_type_for(exc: BaseException) -> str:
    """Return the API ``error_type`` tag for any exception."""
    if isinstance(exc, DiagramServiceError):
        return exc.error_type
    return 'internal_error'


def annotate_stage(exc: BaseException, stage: str) -> BaseException:
    """
    Record the originating stage on an exception without overwriting one set
    deeper in the call stack.
    """
    if getattr(exc, 'stage', None) is None:
        try:
            exc.stage = stage
        except AttributeError:
            logger.debug(f"[ErrorHandler] Cannot annotate {type(exc).__name__} with stage '{stage}'")
    return exc


class ErrorHandler:
    """
    Timeout and response checks for LLM calls.

    There is no generic retry loop: the only retry in the pipeline is the
    token-budget retry inside the executor, and the single unified-to-sequential
    fallback in the orchestrator.
    """

    @staticmethod
    async def with_timeout(
        func: Callable,
        *args,
        timeout: float,
        **kwargs
    ) -> Any:
        """
        Execute async function with timeout.

        Args:
            func: Async function to execute
            *args: Positional arguments
            timeout: Timeout in seconds
            **kwargs: Keyword arguments

        Returns:
            Result from function

        Raises:
            LLMTimeoutError: If function exceeds timeout
        """
        try:
            coro = func(*args, **kwargs)
            return await asyncio.wait_for(coro, timeout=timeout)
        except asyncio.TimeoutError:
            raise LLMTimeoutError(f"Operation exceeded timeout of {timeout}s")

    @staticmethod
    def validate_response(text: Optional[str], provider: str = None) -> str:
        """
        Ensure a normalized provider response carries text.

        Raises:
            LLMEmptyResponseError: If the text is missing or blank
        """
        if text is None or (isinstance(text, str) and not text.strip()):
            raise LLMEmptyResponseError(f"{provider or 'LLM'} returned no text")
        return text


# Singleton instance
error_handler = ErrorHandler()
