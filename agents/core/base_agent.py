"""
Base Agent Class

This module provides the abstract base class that all diagram agents
inherit from. An agent knows the prompts for one diagram type and runs the
content and diagram-source steps of the sequential pipeline for it.
"""

from abc import ABC, abstractmethod
import logging

from models.common import DiagramType, OperationKind
from models.generation import ParsedContent
from prompts import get_content_prompt, get_diagram_prompt, get_combined_prompt
from services.error_handler import annotate_stage
from .response_parser import (
    ensure_topic,
    extract_diagram_source,
    parse,
    validate_structured_content,
)

logger = logging.getLogger(__name__)


class BaseDiagramAgent(ABC):
    """
    Abstract base class for all diagram agents.

    Subclasses set ``diagram_type`` and describe how the diagram step
    should be asked for.
    """

    diagram_type: DiagramType = None

    def __init__(self, executor, router=None):
        """
        Args:
            executor: LLMExecutor (or any object with an async ``execute``)
            router: ModelRouter; the shared router when omitted
        """
        if router is None:
            from services.model_router import model_router
            router = model_router
        self.executor = executor
        self.router = router
        self.logger = logger

    @property
    def name(self) -> str:
        return type(self).__name__

    def content_prompt(self) -> str:
        return get_content_prompt(self.diagram_type)

    def diagram_prompt(self) -> str:
        return get_diagram_prompt(self.diagram_type)

    def combined_prompt(self) -> str:
        return get_combined_prompt(self.diagram_type)

    @abstractmethod
    def build_diagram_message(self, query: str, structured_content: str) -> str:
        """
        Build the user message for the diagram-source call.

        Args:
            query: Original user query
            structured_content: Canonical content from the content step

        Returns:
            str: User message sent alongside ``diagram_prompt()``
        """
        pass

    async def generate_content(self, query: str) -> ParsedContent:
        """
        Run the structured-content step.

        Raises:
            ParseError: when the response lacks the shape this type needs
        """
        choice = self.router.select_model(query, OperationKind.CONTENT)
        raw = await self.executor.execute(choice, self.content_prompt(), query)
        try:
            parsed = parse(raw, self.diagram_type)
            structured = ensure_topic(parsed.structured_content, query)
            validate_structured_content(structured, self.diagram_type)
        except Exception as e:
            raise annotate_stage(e, 'content')

        self.logger.debug(f"{self.name}: content ready ({len(parsed.facts)} facts)")
        return parsed.model_copy(update={'structured_content': structured})

    async def generate_diagram_source(self, query: str, structured_content: str) -> str:
        """Run the diagram-source step and return raw (unsanitized) Mermaid."""
        choice = self.router.select_model(query, OperationKind.DIAGRAM)
        message = self.build_diagram_message(query, structured_content)
        raw = await self.executor.execute(choice, self.diagram_prompt(), message)
        try:
            return extract_diagram_source(raw)
        except Exception as e:
            raise annotate_stage(e, 'diagram')
