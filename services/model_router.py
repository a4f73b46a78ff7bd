"""
Model Router
============

Chooses model, protocol, output budget and reasoning effort for each LLM
call. Pure: reads configuration, never touches the network, never fails.

Routing rules:
- classification always goes to the fast model
- queries shorter than SHORT_QUERY_THRESHOLD go to the fast model
- everything else goes to the capable model
"""

import logging
from typing import Dict, Optional

from config.settings import config, DEFAULT_CAPABLE_MODEL, DEFAULT_FAST_MODEL
from models.common import OperationKind, LLMProtocol, ReasoningEffort
from models.generation import ModelChoice

logger = logging.getLogger(__name__)

TOKEN_BUDGETS: Dict[OperationKind, int] = {
    OperationKind.CLASSIFICATION: 50,
    OperationKind.CONTENT: 600,
    OperationKind.DIAGRAM: 1200,
    OperationKind.UNIFIED: 2000,
    OperationKind.DEEP_DIVE: 300,
}


class ModelRouter:
    """
    Maps (query, operation) to a ModelChoice.

    Settings default to the live ``config``; tests pass explicit values.
    """

    def __init__(
        self,
        capable_model: Optional[str] = None,
        fast_model: Optional[str] = None,
        protocol: Optional[str] = None,
        short_query_threshold: Optional[int] = None
    ):
        self._capable_model = capable_model
        self._fast_model = fast_model
        self._protocol = protocol
        self._short_query_threshold = short_query_threshold

    @property
    def capable_model(self) -> str:
        model = self._capable_model if self._capable_model is not None else config.OPENAI_MODEL
        return model.strip() if model and model.strip() else DEFAULT_CAPABLE_MODEL

    @property
    def fast_model(self) -> str:
        model = self._fast_model if self._fast_model is not None else config.OPENAI_FALLBACK_MODEL
        return model.strip() if model and model.strip() else DEFAULT_FAST_MODEL

    @property
    def protocol(self) -> LLMProtocol:
        raw = self._protocol if self._protocol is not None else config.LLM_PROTOCOL
        try:
            return LLMProtocol((raw or '').strip().lower())
        except ValueError:
            return LLMProtocol.RESPONSES

    @property
    def short_query_threshold(self) -> int:
        if self._short_query_threshold is not None and self._short_query_threshold > 0:
            return self._short_query_threshold
        return config.SHORT_QUERY_THRESHOLD

    def is_short_query(self, query: str) -> bool:
        return len((query or '').strip()) < self.short_query_threshold

    def select_model(self, query: str, operation: OperationKind) -> ModelChoice:
        """
        Pick the model for one call.

        Args:
            query: The user query the call is about (may be empty)
            operation: Kind of call being made

        Returns:
            ModelChoice for this call
        """
        use_fast = operation == OperationKind.CLASSIFICATION or self.is_short_query(query)

        if use_fast:
            model_id = self.fast_model
            effort = ReasoningEffort.LOW
        else:
            model_id = self.capable_model
            effort = ReasoningEffort.HIGH if operation == OperationKind.DIAGRAM else ReasoningEffort.MEDIUM

        choice = ModelChoice(
            model_id=model_id,
            protocol=self.protocol,
            max_output_tokens=TOKEN_BUDGETS[operation],
            effort=effort,
        )
        logger.debug(
            f"[ModelRouter] {operation.value} ({len((query or '').strip())} chars) -> "
            f"{choice.model_id} / {choice.protocol.value} / {choice.max_output_tokens} tokens / {choice.effort.value}"
        )
        return choice


# Shared router reading the live configuration
model_router = ModelRouter()


def select_model(query: str, operation: OperationKind) -> ModelChoice:
    """Module-level convenience wrapper around the shared router."""
    return model_router.select_model(query, operation)
