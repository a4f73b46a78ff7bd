"""
LLM Request Executor

Async client that turns a ModelChoice plus prompts into one provider call
and returns plain text. Two wire protocols are supported:

- responses: POST {base}/responses (reasoning models, effort hint)
- chat:      POST {base}/chat/completions (effort mapped to temperature)

Protocol field names never leave this module. Each attempt gets its own
wall-clock budget; the only retry is a single doubled-budget retry when a
responses-protocol answer is cut off by max_output_tokens.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from config.settings import config
from models.common import LLMProtocol, ReasoningEffort
from models.generation import ModelChoice
from services.error_handler import (
    ErrorHandler,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMProviderError,
    LLMTimeoutError,
)
from services.openai_error_parser import parse_and_raise_openai_error
from services.performance_tracker import PerformanceTracker, performance_tracker

logger = logging.getLogger(__name__)

ENDPOINTS = {
    LLMProtocol.RESPONSES: '/responses',
    LLMProtocol.CHAT: '/chat/completions',
}

EFFORT_TEMPERATURE = {
    ReasoningEffort.LOW: 0.3,
    ReasoningEffort.MEDIUM: 0.7,
    ReasoningEffort.HIGH: 0.9,
}

TEXT_BLOCK_TYPES = ('output_text', 'text')


# ============================================================================
# REQUEST BUILDERS
# ============================================================================

def build_responses_body(choice: ModelChoice, system_prompt: str, user_message: str) -> Dict[str, Any]:
    return {
        'model': choice.model_id,
        'instructions': system_prompt,
        'input': [
            {
                'role': 'user',
                'content': [{'type': 'input_text', 'text': user_message}]
            }
        ],
        'max_output_tokens': choice.max_output_tokens,
        'reasoning': {'effort': choice.effort.value},
    }


def build_chat_body(choice: ModelChoice, system_prompt: str, user_message: str) -> Dict[str, Any]:
    return {
        'model': choice.model_id,
        'messages': [
            {'role': 'system', 'content': system_prompt},
            {'role': 'user', 'content': user_message}
        ],
        'max_tokens': choice.max_output_tokens,
        'temperature': EFFORT_TEMPERATURE[choice.effort],
    }


# ============================================================================
# RESPONSE NORMALIZERS
# ============================================================================

def normalize_responses_output(data: Dict[str, Any]) -> str:
    """
    Extract text from a responses-protocol payload.

    Walks ``output[*].content[*]`` and concatenates every text block; falls
    back to the top-level ``output_text`` convenience field.
    """
    if not isinstance(data, dict):
        return ''

    parts = []
    for item in data.get('output') or []:
        if not isinstance(item, dict):
            continue
        for block in item.get('content') or []:
            if not isinstance(block, dict):
                continue
            if block.get('type') in TEXT_BLOCK_TYPES and isinstance(block.get('text'), str):
                parts.append(block['text'])

    text = ''.join(parts)
    if not text.strip():
        fallback = data.get('output_text')
        if isinstance(fallback, list):
            fallback = ''.join(p for p in fallback if isinstance(p, str))
        text = fallback if isinstance(fallback, str) else ''
    return text.strip()


def normalize_chat_output(data: Dict[str, Any]) -> str:
    """Extract text from ``choices[0].message.content`` (string or list of parts)."""
    if not isinstance(data, dict):
        return ''
    choices = data.get('choices') or []
    if not choices or not isinstance(choices[0], dict):
        return ''
    content = (choices[0].get('message') or {}).get('content')
    if isinstance(content, list):
        content = ''.join(
            part.get('text', '') for part in content
            if isinstance(part, dict) and isinstance(part.get('text'), str)
        )
    return content.strip() if isinstance(content, str) else ''


def is_truncated_by_budget(protocol: LLMProtocol, data: Dict[str, Any]) -> bool:
    """True when a responses-protocol answer stopped at max_output_tokens."""
    if protocol != LLMProtocol.RESPONSES or not isinstance(data, dict):
        return False
    details = data.get('incomplete_details') or {}
    return data.get('status') == 'incomplete' and details.get('reason') == 'max_output_tokens'


REQUEST_BUILDERS: Dict[LLMProtocol, Callable[[ModelChoice, str, str], Dict[str, Any]]] = {
    LLMProtocol.RESPONSES: build_responses_body,
    LLMProtocol.CHAT: build_chat_body,
}

RESPONSE_NORMALIZERS: Dict[LLMProtocol, Callable[[Dict[str, Any]], str]] = {
    LLMProtocol.RESPONSES: normalize_responses_output,
    LLMProtocol.CHAT: normalize_chat_output,
}


# ============================================================================
# EXECUTOR
# ============================================================================

class LLMExecutor:
    """Async executor for OpenAI-compatible LLM APIs"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        tracker: Optional[PerformanceTracker] = None
    ):
        """
        Args:
            api_key: Bearer credential; read from config when omitted
            base_url: Provider base URL; read from config when omitted
            timeout: Per-attempt wall-clock budget in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
            tracker: Metrics sink, defaults to the shared tracker
        """
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.tracker = tracker or performance_tracker

    @property
    def api_key(self) -> Optional[str]:
        key = self._api_key if self._api_key is not None else config.OPENAI_API_KEY
        return key.strip() if key and key.strip() else None

    @property
    def base_url(self) -> str:
        return (self._base_url or config.OPENAI_BASE_URL).rstrip('/')

    @property
    def timeout(self) -> float:
        return self._timeout if self._timeout is not None else config.LLM_TIMEOUT

    def ensure_configured(self):
        """
        Raises:
            LLMConfigurationError: If no credential is configured
        """
        if not self.api_key:
            raise LLMConfigurationError("OPENAI_API_KEY is not configured")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            # The wall-clock budget is enforced per attempt by ErrorHandler.with_timeout
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout + 5),
                transport=self._transport
            )
        return self._client

    async def close(self):
        """Close HTTP client (call on shutdown)"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def execute(self, choice: ModelChoice, system_prompt: str, user_message: str) -> str:
        """
        Run one logical LLM call and return its text.

        Raises:
            LLMConfigurationError: credential missing (before any network I/O)
            LLMTimeoutError: an attempt exceeded its budget
            LLMProviderError: non-2xx response (typed subclass)
            LLMEmptyResponseError: 2xx response without text
        """
        self.ensure_configured()

        start_time = time.time()
        try:
            text = await self._execute_with_budget_retry(choice, system_prompt, user_message)
        except Exception as e:
            self.tracker.record_request(choice.model_id, time.time() - start_time, success=False, error=str(e))
            raise

        duration = time.time() - start_time
        self.tracker.record_request(choice.model_id, duration, success=True)
        logger.debug(f"[LLMExecutor] {choice.model_id} ({choice.protocol.value}) returned {len(text)} chars in {duration:.2f}s")
        return text

    async def _execute_with_budget_retry(self, choice: ModelChoice, system_prompt: str, user_message: str) -> str:
        text, truncated = await self._attempt(choice, system_prompt, user_message)

        if truncated:
            retry_choice = choice.model_copy(update={
                'max_output_tokens': choice.max_output_tokens * 2,
                'effort': choice.effort.lowered(),
            })
            logger.warning(
                f"[LLMExecutor] {choice.model_id} hit max_output_tokens={choice.max_output_tokens}, "
                f"retrying once with {retry_choice.max_output_tokens} tokens / effort {retry_choice.effort.value}"
            )
            text, still_truncated = await self._attempt(retry_choice, system_prompt, user_message)
            if still_truncated:
                logger.warning(f"[LLMExecutor] {choice.model_id} still truncated after budget retry")

        return ErrorHandler.validate_response(text, provider=choice.model_id)

    async def _attempt(self, choice: ModelChoice, system_prompt: str, user_message: str) -> Tuple[str, bool]:
        """One HTTP round trip under the wall-clock budget. Returns (text, truncated)."""
        return await ErrorHandler.with_timeout(
            self._send,
            choice,
            system_prompt,
            user_message,
            timeout=self.timeout
        )

    async def _send(self, choice: ModelChoice, system_prompt: str, user_message: str) -> Tuple[str, bool]:
        protocol = choice.protocol
        url = f"{self.base_url}{ENDPOINTS[protocol]}"
        payload = REQUEST_BUILDERS[protocol](choice, system_prompt, user_message)
        headers = {
            'Authorization': f'Bearer {self.api_key}',
            'Content-Type': 'application/json'
        }

        client = await self._get_client()
        try:
            response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise LLMTimeoutError(f"{choice.model_id} request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise LLMProviderError(
                f"{choice.model_id} transport error: {e}",
                provider='openai',
                error_code='transport_error'
            ) from e

        if not response.is_success:
            error_text = response.text
            try:
                error_data = json.loads(error_text)
            except json.JSONDecodeError:
                error_data = None
            parse_and_raise_openai_error(response.status_code, error_text, error_data)

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise LLMEmptyResponseError(f"{choice.model_id} returned a non-JSON body") from e

        text = RESPONSE_NORMALIZERS[protocol](data)
        if not text:
            logger.debug(f"[LLMExecutor] Empty normalized output: {str(data)[:300]}")
        return text, is_truncated_by_budget(protocol, data)
