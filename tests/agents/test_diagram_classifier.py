"""
Unit tests for the diagram type classifier
==========================================
"""

import pytest

from agents.diagram_classifier import (
    DiagramClassifier,
    heuristic_classify,
    parse_classification_answer,
)
from models.common import DiagramType
from prompts import get_prompt
from services.error_handler import LLMTimeoutError


class TestHeuristicClassify:
    """Keyword and pattern tables."""

    @pytest.mark.parametrize('query, expected', [
        ("Cats vs dogs", DiagramType.SEQUENCE_COMPARISON),
        ("compare Python and Java", DiagramType.SEQUENCE_COMPARISON),
        ("What is the difference between weather and climate?", DiagramType.SEQUENCE_COMPARISON),
        ("pros and cons of remote work", DiagramType.SEQUENCE_COMPARISON),
        ("How do I bake sourdough bread?", DiagramType.FLOWCHART),
        ("steps to renew a passport", DiagramType.FLOWCHART),
        ("the hiring workflow at a startup", DiagramType.FLOWCHART),
        ("Photosynthesis", DiagramType.RADIAL_MINDMAP),
        ("The Roman Empire", DiagramType.RADIAL_MINDMAP),
        ("", DiagramType.RADIAL_MINDMAP),
        ("   ", DiagramType.RADIAL_MINDMAP),
    ])
    def test_scenarios(self, query, expected):
        assert heuristic_classify(query) == expected

    def test_comparison_wins_over_flowchart(self):
        assert heuristic_classify("compare the process of baking vs frying") == DiagramType.SEQUENCE_COMPARISON


class TestParseClassificationAnswer:
    @pytest.mark.parametrize('answer, expected', [
        ("flowchart", DiagramType.FLOWCHART),
        ("  Sequence_Comparison. ", DiagramType.SEQUENCE_COMPARISON),
        ("The best fit is: sequence_comparison", DiagramType.SEQUENCE_COMPARISON),
        ("Radial mind map", DiagramType.RADIAL_MINDMAP),
        ("I don't know", DiagramType.RADIAL_MINDMAP),
        (None, DiagramType.RADIAL_MINDMAP),
    ])
    def test_answers(self, answer, expected):
        assert parse_classification_answer(answer) == expected


class TestDiagramClassifier:
    """Modes, override and failure handling."""

    @pytest.mark.asyncio
    async def test_heuristic_mode_makes_no_calls(self, make_executor, router):
        executor = make_executor()
        classifier = DiagramClassifier(executor=executor, router=router, mode='heuristic')

        result = await classifier.classify("How do I change a tyre?")

        assert result == DiagramType.FLOWCHART
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_override_short_circuits(self, make_executor, router):
        executor = make_executor(lambda *args: "radial_mindmap")
        classifier = DiagramClassifier(executor=executor, router=router, mode='llm', override='flowchart')

        assert await classifier.classify("cats vs dogs") == DiagramType.FLOWCHART
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_invalid_override_ignored(self, router):
        classifier = DiagramClassifier(router=router, override='pie_chart')

        assert classifier.override is None
        assert await classifier.classify("cats vs dogs") == DiagramType.SEQUENCE_COMPARISON

    @pytest.mark.asyncio
    async def test_override_from_environment(self, monkeypatch, router):
        from config.settings import config

        monkeypatch.setenv('DEFAULT_DIAGRAM_TYPE', 'sequence_comparison')
        config.clear_cache()

        assert await DiagramClassifier(router=router).classify("photosynthesis") == DiagramType.SEQUENCE_COMPARISON

    @pytest.mark.asyncio
    async def test_llm_mode(self, make_executor, router):
        executor = make_executor(lambda *args: "sequence_comparison")
        classifier = DiagramClassifier(executor=executor, router=router, mode='llm')

        result = await classifier.classify("tea or coffee in the morning")

        assert result == DiagramType.SEQUENCE_COMPARISON
        call = executor.calls[0]
        assert call.system_prompt == get_prompt("classification")
        assert call.user_message == "tea or coffee in the morning"
        assert call.choice.model_id == 'fast-model'
        assert call.choice.max_output_tokens == 50

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_heuristic(self, make_executor, router):
        executor = make_executor(lambda *args: LLMTimeoutError("slow"))
        classifier = DiagramClassifier(executor=executor, router=router, mode='llm')

        assert await classifier.classify("How do I file taxes?") == DiagramType.FLOWCHART

    @pytest.mark.asyncio
    async def test_llm_mode_without_executor(self, router):
        classifier = DiagramClassifier(router=router, mode='llm')

        assert await classifier.classify("Rust vs Go") == DiagramType.SEQUENCE_COMPARISON

    @pytest.mark.asyncio
    async def test_blank_query(self, make_executor, router):
        executor = make_executor(lambda *args: "flowchart")
        classifier = DiagramClassifier(executor=executor, router=router, mode='llm')

        assert await classifier.classify("  ") == DiagramType.RADIAL_MINDMAP
        assert executor.calls == []
