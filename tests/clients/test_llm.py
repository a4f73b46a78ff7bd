"""
Unit tests for LLMExecutor
==========================

Both wire protocols against httpx.MockTransport: request shape, output
normalisation, the token-budget retry and error mapping.
"""

import asyncio
import json

import httpx
import pytest

from clients.llm import (
    LLMExecutor,
    normalize_chat_output,
    normalize_responses_output,
)
from models.common import LLMProtocol, ReasoningEffort
from models.generation import ModelChoice
from services.error_handler import (
    LLMAccessDeniedError,
    LLMConfigurationError,
    LLMEmptyResponseError,
    LLMProviderError,
    LLMRateLimitError,
    LLMTimeoutError,
)
from services.performance_tracker import PerformanceTracker


def responses_payload(text, status='completed', reason=None):
    payload = {
        'status': status,
        'output': [
            {'type': 'reasoning', 'summary': []},
            {'type': 'message', 'content': [{'type': 'output_text', 'text': text}]},
        ],
    }
    if reason:
        payload['incomplete_details'] = {'reason': reason}
    return payload


def chat_payload(text):
    return {'choices': [{'message': {'role': 'assistant', 'content': text}}]}


def make_choice(protocol=LLMProtocol.RESPONSES, effort=ReasoningEffort.HIGH, tokens=1200):
    return ModelChoice(model_id='test-model', protocol=protocol, max_output_tokens=tokens, effort=effort)


class RecordingTransport:
    """Wraps a handler in httpx.MockTransport and keeps every request."""

    def __init__(self, handler):
        self.requests = []
        self.handler = handler
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request):
        self.requests.append(request)
        return self.handler(request)

    def bodies(self):
        return [json.loads(r.content) for r in self.requests]


def make_executor(handler, **kwargs):
    recorder = RecordingTransport(handler)
    executor = LLMExecutor(
        api_key=kwargs.pop('api_key', 'sk-test'),
        base_url='https://llm.test/v1/',
        timeout=kwargs.pop('timeout', 5),
        transport=recorder.transport,
        tracker=kwargs.pop('tracker', PerformanceTracker()),
    )
    return executor, recorder


class TestResponsesProtocol:
    """POST /responses"""

    @pytest.mark.asyncio
    async def test_request_shape_and_text(self):
        executor, recorder = make_executor(lambda request: httpx.Response(200, json=responses_payload("  Hello  ")))

        text = await executor.execute(make_choice(), "system rules", "user query")
        await executor.close()

        assert text == "Hello"
        request = recorder.requests[0]
        assert str(request.url) == 'https://llm.test/v1/responses'
        assert request.headers['Authorization'] == 'Bearer sk-test'

        body = recorder.bodies()[0]
        assert body['model'] == 'test-model'
        assert body['instructions'] == "system rules"
        assert body['input'][0]['content'][0] == {'type': 'input_text', 'text': "user query"}
        assert body['max_output_tokens'] == 1200
        assert body['reasoning'] == {'effort': 'high'}

    @pytest.mark.asyncio
    async def test_truncated_answer_retried_once_with_doubled_budget(self):
        answers = [
            httpx.Response(200, json=responses_payload("partial", status='incomplete', reason='max_output_tokens')),
            httpx.Response(200, json=responses_payload("complete answer")),
        ]
        executor, recorder = make_executor(lambda request: answers.pop(0))

        text = await executor.execute(make_choice(tokens=600), "system", "query")
        await executor.close()

        assert text == "complete answer"
        bodies = recorder.bodies()
        assert len(bodies) == 2
        assert bodies[1]['max_output_tokens'] == 1200
        assert bodies[1]['reasoning'] == {'effort': 'medium'}

    @pytest.mark.asyncio
    async def test_still_truncated_returns_text(self):
        executor, recorder = make_executor(
            lambda request: httpx.Response(
                200, json=responses_payload("partial", status='incomplete', reason='max_output_tokens')
            )
        )

        text = await executor.execute(make_choice(), "system", "query")
        await executor.close()

        assert text == "partial"
        assert len(recorder.requests) == 2

    @pytest.mark.asyncio
    async def test_empty_output_raises(self):
        executor, _ = make_executor(lambda request: httpx.Response(200, json={'status': 'completed', 'output': []}))

        with pytest.raises(LLMEmptyResponseError):
            await executor.execute(make_choice(), "system", "query")
        await executor.close()


class TestChatProtocol:
    """POST /chat/completions"""

    @pytest.mark.asyncio
    async def test_request_shape_and_text(self):
        executor, recorder = make_executor(lambda request: httpx.Response(200, json=chat_payload("Hi there")))

        text = await executor.execute(
            make_choice(protocol=LLMProtocol.CHAT, effort=ReasoningEffort.MEDIUM, tokens=600),
            "system rules",
            "user query"
        )
        await executor.close()

        assert text == "Hi there"
        assert str(recorder.requests[0].url) == 'https://llm.test/v1/chat/completions'
        body = recorder.bodies()[0]
        assert body['messages'] == [
            {'role': 'system', 'content': "system rules"},
            {'role': 'user', 'content': "user query"},
        ]
        assert body['max_tokens'] == 600
        assert body['temperature'] == 0.7
        assert 'reasoning' not in body

    @pytest.mark.asyncio
    async def test_length_cutoff_is_not_retried(self):
        payload = chat_payload("cut off")
        payload['choices'][0]['finish_reason'] = 'length'
        executor, recorder = make_executor(lambda request: httpx.Response(200, json=payload))

        text = await executor.execute(make_choice(protocol=LLMProtocol.CHAT), "system", "query")
        await executor.close()

        assert text == "cut off"
        assert len(recorder.requests) == 1


class TestErrors:
    """Failure mapping and metrics."""

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_network(self):
        executor, recorder = make_executor(lambda request: httpx.Response(200, json=chat_payload("x")), api_key='')

        with pytest.raises(LLMConfigurationError):
            await executor.execute(make_choice(), "system", "query")

        assert recorder.requests == []

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        body = {'error': {'message': 'Rate limit reached', 'code': 'rate_limit_exceeded'}}
        tracker = PerformanceTracker()
        executor, _ = make_executor(lambda request: httpx.Response(429, json=body), tracker=tracker)

        with pytest.raises(LLMRateLimitError):
            await executor.execute(make_choice(), "system", "query")
        await executor.close()

        metrics = tracker.get_metrics('test-model')
        assert metrics['failed_requests'] == 1

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        executor, _ = make_executor(lambda request: httpx.Response(401, text='bad key'))

        with pytest.raises(LLMAccessDeniedError):
            await executor.execute(make_choice(), "system", "query")
        await executor.close()

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        executor, _ = make_executor(handler)

        with pytest.raises(LLMProviderError) as exc_info:
            await executor.execute(make_choice(), "system", "query")
        await executor.close()

        assert exc_info.value.error_code == 'transport_error'

    @pytest.mark.asyncio
    async def test_wall_clock_timeout(self):
        async def slow_handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, json=chat_payload("late"))

        executor, _ = make_executor(slow_handler, timeout=0.05)

        with pytest.raises(LLMTimeoutError):
            await executor.execute(make_choice(protocol=LLMProtocol.CHAT), "system", "query")
        await executor.close()

    @pytest.mark.asyncio
    async def test_success_recorded(self):
        tracker = PerformanceTracker()
        executor, _ = make_executor(lambda request: httpx.Response(200, json=chat_payload("ok")), tracker=tracker)

        await executor.execute(make_choice(protocol=LLMProtocol.CHAT), "system", "query")
        await executor.close()

        assert tracker.get_metrics('test-model')['successful_requests'] == 1


class TestNormalizers:
    """Pure output normalisation."""

    def test_responses_concatenates_text_blocks(self):
        data = {'output': [{'content': [{'type': 'output_text', 'text': 'Hello '}, {'type': 'output_text', 'text': 'world'}]}]}

        assert normalize_responses_output(data) == 'Hello world'

    def test_responses_output_text_fallback(self):
        assert normalize_responses_output({'output': [], 'output_text': ' fallback '}) == 'fallback'

    def test_chat_content_parts(self):
        data = {'choices': [{'message': {'content': [{'type': 'text', 'text': 'a'}, {'type': 'text', 'text': 'b'}]}}]}

        assert normalize_chat_output(data) == 'ab'

    def test_malformed_payloads(self):
        assert normalize_chat_output({'choices': []}) == ''
        assert normalize_responses_output(None) == ''
