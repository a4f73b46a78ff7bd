"""
Pytest Configuration
====================

Puts the project root on the Python path, pins the environment the
pipeline reads and provides a scripted stand-in for the LLM executor.
"""

import sys
from collections import namedtuple
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from config.settings import config
from services.error_handler import LLMConfigurationError
from services.model_router import ModelRouter

ExecutorCall = namedtuple('ExecutorCall', ['choice', 'system_prompt', 'user_message'])


class FakeExecutor:
    """
    Records every call and answers through ``handler(choice, system_prompt,
    user_message)``. A handler that returns an exception instance makes the
    call raise it.
    """

    def __init__(self, handler=None, configured: bool = True):
        self.handler = handler or (lambda choice, system_prompt, user_message: '')
        self.configured = configured
        self.calls = []

    def ensure_configured(self):
        if not self.configured:
            raise LLMConfigurationError("OPENAI_API_KEY is not configured")

    async def execute(self, choice, system_prompt, user_message):
        self.ensure_configured()
        self.calls.append(ExecutorCall(choice, system_prompt, user_message))
        result = self.handler(choice, system_prompt, user_message)
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        pass


@pytest.fixture(autouse=True)
def pinned_environment(monkeypatch):
    """Deterministic settings for every test; the config cache is reset around each one."""
    monkeypatch.setenv('OPENAI_API_KEY', 'sk-test')
    monkeypatch.setenv('OPENAI_BASE_URL', 'https://llm.test/v1')
    monkeypatch.setenv('LLM_PROTOCOL', 'responses')
    monkeypatch.setenv('CLASSIFIER_MODE', 'heuristic')
    monkeypatch.setenv('CONTENT_CACHE_TTL', '120')
    monkeypatch.delenv('DEFAULT_DIAGRAM_TYPE', raising=False)
    config.clear_cache()
    yield
    config.clear_cache()


@pytest.fixture
def make_executor():
    return FakeExecutor


@pytest.fixture
def router():
    """Router with explicit models so tests don't depend on the environment."""
    return ModelRouter(
        capable_model='capable-model',
        fast_model='fast-model',
        protocol='responses',
        short_query_threshold=5
    )
