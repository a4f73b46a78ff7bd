"""
External API Clients Package

This package contains clients for external services:
- LLM: protocol-aware executor for OpenAI-compatible providers
"""

from .llm import LLMExecutor, normalize_responses_output, normalize_chat_output

__all__ = [
    'LLMExecutor',
    'normalize_responses_output',
    'normalize_chat_output',
]
