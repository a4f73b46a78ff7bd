"""
Provider Error Parser
=====================

Maps OpenAI-compatible error bodies (``{"error": {"message", "type",
"code", "param"}}``) and HTTP status codes to typed exceptions with
user-friendly messages.
"""

import json
import logging
from typing import Dict, Optional, Tuple

from services.error_handler import (
    LLMProviderError,
    LLMRateLimitError,
    LLMContentFilterError,
    LLMInvalidParameterError,
    LLMQuotaExhaustedError,
    LLMModelNotFoundError,
    LLMAccessDeniedError,
)

logger = logging.getLogger(__name__)

PROVIDER = 'openai'

CONTENT_FILTER_CODES = {'content_filter', 'content_policy_violation', 'moderation_blocked'}
QUOTA_CODES = {'insufficient_quota', 'billing_hard_limit_reached', 'billing_not_active'}


def _error_fields(error_text: str, error_data: Optional[Dict]) -> Tuple[str, str, str, Optional[str]]:
    """Pull (message, type, code, param) out of an error body, tolerating junk."""
    if error_data is None:
        try:
            error_data = json.loads(error_text)
        except (json.JSONDecodeError, TypeError):
            error_data = {}
    if not isinstance(error_data, dict):
        error_data = {}

    error_info = error_data.get('error') or {}
    if isinstance(error_info, str):
        return error_info, '', '', None
    if not isinstance(error_info, dict):
        error_info = {}

    message = error_info.get('message') or error_text or 'Unknown provider error'
    error_type = error_info.get('type') or ''
    code = error_info.get('code') or ''
    param = error_info.get('param')
    return str(message), str(error_type), str(code), param


def parse_openai_error(
    status_code: int,
    error_text: str,
    error_data: Optional[Dict] = None
) -> Tuple[Exception, str]:
    """
    Parse a provider error and return the exception to raise plus a
    user-facing message.

    Args:
        status_code: HTTP status code
        error_text: Raw error text from API
        error_data: Parsed error JSON data (if available)

    Returns:
        Tuple of (exception, user_friendly_message)
    """
    message, error_type, code, param = _error_fields(error_text, error_data)
    msg_lower = message.lower()
    code_lower = code.lower()
    common = {'provider': PROVIDER, 'status_code': status_code}

    # Content filtering can come back as 400 with a dedicated code
    if code_lower in CONTENT_FILTER_CODES or 'safety system' in msg_lower:
        return LLMContentFilterError(
            f"Content filtered: {message}",
            error_code=code or 'content_filter',
            **common
        ), "The request was blocked by the provider's content policy."

    if status_code == 401:
        return LLMAccessDeniedError(
            f"Unauthorized: {message}",
            error_code=code or 'invalid_api_key',
            **common
        ), "The provider rejected the API key. Check OPENAI_API_KEY."

    if status_code == 403:
        return LLMAccessDeniedError(
            f"Access denied: {message}",
            error_code=code or 'forbidden',
            **common
        ), "This account is not allowed to use the requested model."

    if status_code == 404 or code_lower == 'model_not_found':
        return LLMModelNotFoundError(
            f"Model not found: {message}",
            error_code=code or 'model_not_found',
            **common
        ), "The configured model does not exist or is unavailable."

    if status_code == 429:
        if code_lower in QUOTA_CODES or error_type == 'insufficient_quota':
            return LLMQuotaExhaustedError(
                f"Quota exhausted: {message}",
                error_code=code or 'insufficient_quota',
                **common
            ), "The provider quota is exhausted."
        return LLMRateLimitError(
            f"Rate limited: {message}",
            error_code=code or 'rate_limit_exceeded',
            **common
        ), "The provider is rate limiting requests. Please try again shortly."

    if status_code in (400, 422):
        return LLMInvalidParameterError(
            f"Invalid request: {message}",
            parameter=param,
            error_code=code or 'invalid_request_error',
            **common
        ), "The provider rejected the request parameters."

    return LLMProviderError(
        f"Provider error ({status_code}): {message}",
        error_code=code or f'HTTP{status_code}',
        **common
    ), "The LLM provider returned an error. Please try again later."


def parse_and_raise_openai_error(status_code: int, error_text: str, error_data: Optional[Dict] = None):
    """
    Parse a provider error and raise the matching exception.

    Raises:
        LLMProviderError subclass chosen from status and error code
    """
    exception, user_message = parse_openai_error(status_code, error_text, error_data)

    logger.error(
        f"Provider API error ({status_code}): {exception.__class__.__name__} - {str(exception)}",
        extra={
            'status_code': status_code,
            'error_code': getattr(exception, 'error_code', None),
            'parameter': getattr(exception, 'parameter', None),
            'user_message': user_message
        }
    )

    exception.user_message = user_message
    raise exception
