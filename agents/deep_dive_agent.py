"""
Deep Dive Agent

Answers a follow-up question about a passage the user selected from a
generated answer. One short LLM call routed as a deep-dive operation.
"""

import logging
from typing import Optional

from models.common import OperationKind
from prompts import get_prompt
from services.error_handler import QueryValidationError, annotate_stage

logger = logging.getLogger(__name__)


class DeepDiveAgent:
    """Follow-up answers for selected text."""

    def __init__(self, executor, router=None):
        if router is None:
            from services.model_router import model_router
            router = model_router
        self.executor = executor
        self.router = router

    @staticmethod
    def build_message(selected_text: str, question: str, original_query: Optional[str] = None) -> str:
        message = f'Selected text from the answer: "{selected_text.strip()}"\n\nUser\'s question: {question.strip()}'
        if original_query and original_query.strip():
            message += f"\n\nOriginal query: {original_query.strip()}"
        return message

    async def answer(self, selected_text: Optional[str], question: Optional[str], original_query: Optional[str] = None) -> str:
        """
        Raises:
            QueryValidationError: when the selected text or the question is blank
            LLMServiceError: provider failures, unchanged
        """
        if not (selected_text or '').strip():
            raise QueryValidationError("Selected text is required", stage='validation')
        if not (question or '').strip():
            raise QueryValidationError("Question is required", stage='validation')

        choice = self.router.select_model(question, OperationKind.DEEP_DIVE)
        message = self.build_message(selected_text, question, original_query)
        try:
            response = await self.executor.execute(choice, get_prompt("deep_dive"), message)
        except Exception as e:
            raise annotate_stage(e, 'deep_dive')

        logger.debug(f"[DeepDive] Answered in {len(response)} chars with {choice.model_id}")
        return response.strip()
