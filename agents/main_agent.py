"""
Main Agent Module

Orchestrates one diagram request end to end. The pipeline always tries a
single unified LLM call first (type, prose, structured content, Mermaid
source and metadata in one response). Any failure in that attempt falls
back, once and in full, to the sequential pipeline:

    classify -> structured content -> universal content -> diagram source

Both paths sanitize the diagram source and write the result to the
content cache. Every step is timed by a PipelineTimer, and errors carry the
name of the stage that raised them.
"""

import logging
from contextlib import contextmanager
from enum import Enum
from typing import List, Optional

from agents import get_agent
from agents.core.response_parser import COMBINED, UNIFIED, UNIVERSAL, ensure_topic, parse
from agents.diagram_classifier import DiagramClassifier
from models.common import DiagramType, OperationKind, normalize_diagram_type
from models.generation import FactMetadata, GenerationRequest, GenerationResult
from prompts import get_prompt
from services.content_cache import ContentCache
from services.error_handler import (
    MissingDiagramSourceError,
    ParseError,
    QueryValidationError,
    annotate_stage,
)
from services.performance_tracker import PipelineTimer
from utils.mermaid_sanitizer import sanitize_mermaid

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 10000
SUMMARY_UNAVAILABLE = "Summary unavailable for {query}"


class PipelineState(str, Enum):
    START = "start"
    UNIFIED_ATTEMPT = "unified_attempt"
    FALLBACK = "fallback"
    TYPE_SELECTED = "type_selected"
    CONTENT_GENERATED = "content_generated"
    DIAGRAM_GENERATED = "diagram_generated"
    SANITIZED = "sanitized"
    DONE = "done"


def validate_query(query: Optional[str]) -> str:
    """
    Validate and trim the user query.

    Raises:
        QueryValidationError: If the query is empty or too long
    """
    if not query or not isinstance(query, str) or not query.strip():
        raise QueryValidationError("Query cannot be empty", stage='validation')
    query = query.strip()
    if len(query) > MAX_QUERY_LENGTH:
        raise QueryValidationError(f"Query too long (max {MAX_QUERY_LENGTH:,} characters)", stage='validation')
    return query


class DiagramPipeline:
    """
    Two-tier diagram generation pipeline.

    Collaborators are injected so tests can run the whole flow against a
    fake executor. Without an injected cache each pipeline owns a private one.
    """

    def __init__(self, executor, router=None, cache: Optional[ContentCache] = None, classifier=None):
        if router is None:
            from services.model_router import model_router
            router = model_router
        self.executor = executor
        self.router = router
        self.cache = cache if cache is not None else ContentCache()
        self.classifier = classifier or DiagramClassifier(executor=executor, router=router)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(
        self,
        query: Optional[str],
        diagram_type_hint: Optional[DiagramType] = None,
        timer: Optional[PipelineTimer] = None
    ) -> GenerationResult:
        """
        Generate a diagram for a query.

        Args:
            query: Free-text user query
            diagram_type_hint: Optional caller-chosen diagram type
            timer: Request timer; created when omitted

        Returns:
            GenerationResult with sanitized diagram source

        Raises:
            QueryValidationError: blank query (nothing is called)
            LLMConfigurationError: no credential (no fallback attempted)
            DiagramServiceError: the sequential fallback failed too
        """
        timer = timer or PipelineTimer()
        timer.transition(PipelineState.START)

        try:
            query = validate_query(query)
            try:
                self.executor.ensure_configured()
            except Exception as e:
                raise annotate_stage(e, 'configuration')

            known_type = self.resolve_known_type(diagram_type_hint)
            if known_type is not None:
                cached = self.cache.get(known_type, query)
                if cached is not None:
                    logger.info(f"[Pipeline] [{timer.request_id}] Cache hit for {known_type.value}")
                    timer.transition(PipelineState.DONE)
                    timer.finish(success=True)
                    return cached

            try:
                result = await self.run_unified(query, known_type, timer)
            except Exception as e:
                logger.warning(
                    f"[Pipeline] [{timer.request_id}] Unified attempt failed "
                    f"({type(e).__name__}: {e}), falling back to sequential pipeline"
                )
                timer.transition(PipelineState.FALLBACK)
                result = await self.run_sequential(query, known_type, timer)

            timer.transition(PipelineState.DONE)
            timer.finish(success=True)
            return result

        except Exception as e:
            timer.finish(success=False, error=f"{type(e).__name__}: {e}")
            raise

    async def generate(self, request: GenerationRequest, timer: Optional[PipelineTimer] = None) -> GenerationResult:
        """Run the pipeline for a validated request model."""
        return await self.run(request.query, diagram_type_hint=request.diagram_type_hint, timer=timer)

    def resolve_known_type(self, diagram_type_hint) -> Optional[DiagramType]:
        """Caller hint first, then the configured override."""
        hint = normalize_diagram_type(diagram_type_hint)
        if hint is not None:
            return hint
        return self.classifier.override

    # ------------------------------------------------------------------
    # Unified attempt
    # ------------------------------------------------------------------

    async def run_unified(self, query: str, known_type: Optional[DiagramType], timer: PipelineTimer) -> GenerationResult:
        """One LLM call producing everything; known types use the combined prompt for that type."""
        timer.transition(PipelineState.UNIFIED_ATTEMPT)

        if known_type is not None:
            system_prompt = get_agent(known_type, self.executor, self.router).combined_prompt()
            shape = COMBINED
        else:
            system_prompt = get_prompt("unified")
            shape = UNIFIED

        choice = self.router.select_model(query, OperationKind.UNIFIED)
        with self._stage(timer, 'unified'):
            raw = await self.executor.execute(choice, system_prompt, query)
            parsed = parse(raw, shape, known_type)
            if not parsed.structured_content:
                raise ParseError("Unified response has no diagram content", stage='unified')

        diagram_type = known_type or parsed.diagram_type or DiagramType.RADIAL_MINDMAP
        with self._stage(timer, 'sanitize'):
            source = sanitize_mermaid(parsed.diagram_source)
        timer.transition(PipelineState.SANITIZED)

        result = self._build_result(
            diagram_type=diagram_type,
            query=query,
            universal_content=parsed.universal_content,
            structured_content=parsed.structured_content,
            diagram_source=source,
            diagram_meta=parsed.diagram_meta,
        )
        self.cache.put(diagram_type, query, result)
        logger.debug(f"[Pipeline] [{timer.request_id}] Unified generation produced {diagram_type.value}")
        return result

    # ------------------------------------------------------------------
    # Sequential fallback
    # ------------------------------------------------------------------

    async def run_sequential(self, query: str, known_type: Optional[DiagramType], timer: PipelineTimer) -> GenerationResult:
        """Classify, then run content, universal and diagram steps as separate calls."""
        with self._stage(timer, 'classification'):
            diagram_type = known_type or await self.classifier.classify(query)
        timer.transition(PipelineState.TYPE_SELECTED)
        logger.info(f"[Pipeline] [{timer.request_id}] Sequential pipeline using {diagram_type.value}")

        # A result written by a concurrent unified run wins
        cached = self.cache.get(diagram_type, query)
        if cached is not None:
            return cached

        agent = get_agent(diagram_type, self.executor, self.router)

        content = self.cache.get_step('content', diagram_type, query)
        if content is None:
            with self._stage(timer, 'content'):
                content = await agent.generate_content(query)
            self.cache.put_step('content', diagram_type, query, content)
        timer.transition(PipelineState.CONTENT_GENERATED)

        universal = self.cache.get_step(UNIVERSAL, diagram_type, query)
        if universal is None:
            with self._stage(timer, UNIVERSAL):
                universal = await self.generate_universal_content(query)
            self.cache.put_step(UNIVERSAL, diagram_type, query, universal)

        with self._stage(timer, 'diagram'):
            raw_source = await agent.generate_diagram_source(query, content.structured_content)
        timer.transition(PipelineState.DIAGRAM_GENERATED)

        with self._stage(timer, 'sanitize'):
            source = sanitize_mermaid(raw_source)
        timer.transition(PipelineState.SANITIZED)

        result = self._build_result(
            diagram_type=diagram_type,
            query=query,
            universal_content=universal,
            structured_content=content.structured_content,
            diagram_source=source,
            diagram_meta=content.diagram_meta,
        )
        self.cache.put(diagram_type, query, result)
        return result

    async def generate_universal_content(self, query: str) -> str:
        choice = self.router.select_model(query, OperationKind.CONTENT)
        raw = await self.executor.execute(choice, get_prompt(UNIVERSAL, prompt_type='content'), query)
        return parse(raw, UNIVERSAL)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _stage(self, timer: PipelineTimer, name: str):
        """Time a step and tag any error with the step name."""
        with timer.step(name):
            try:
                yield
            except Exception as e:
                annotate_stage(e, name)
                raise

    @staticmethod
    def _build_result(
        diagram_type: DiagramType,
        query: str,
        universal_content: Optional[str],
        structured_content: str,
        diagram_source: str,
        diagram_meta: Optional[List[FactMetadata]]
    ) -> GenerationResult:
        if not diagram_source or not diagram_source.strip():
            raise MissingDiagramSourceError("Diagram source is empty after sanitization", stage='sanitize')
        return GenerationResult(
            diagram_type=diagram_type,
            universal_content=(universal_content or '').strip() or SUMMARY_UNAVAILABLE.format(query=query),
            structured_content=ensure_topic(structured_content, query),
            diagram_source=diagram_source,
            diagram_meta=diagram_meta or None,
        )
