"""
Diagram Type Classifier

Picks the diagram shape for a query. Two modes, chosen by CLASSIFIER_MODE:

- heuristic (default): keyword and regex tables, no network call
- llm: one short classification call on the fast model

A valid DEFAULT_DIAGRAM_TYPE setting short-circuits both. Classification
never raises; anything unrecognised ends up as a radial mind map.
"""

import logging
import re
from typing import Optional

from config.settings import config
from models.common import DiagramType, OperationKind, normalize_diagram_type
from prompts import get_prompt

logger = logging.getLogger(__name__)

DEFAULT_TYPE = DiagramType.RADIAL_MINDMAP

COMPARISON_KEYWORDS = (
    ' vs ',
    ' vs. ',
    ' versus ',
    'compare',
    'comparison',
    'comparisons',
    'difference between',
    'differences between',
    'differences',
    'similarities',
    'pros and cons',
    'pros vs cons',
    'advantages and disadvantages',
)

FLOWCHART_KEYWORDS = (
    'how to ',
    'how do i',
    'how does one',
    'process',
    'workflow',
    'procedure',
    'sequence of steps',
    'steps to',
    'step by step',
    'step-by-step',
    'when should',
    'decision tree',
    'if ',
    'should i',
    'plan for',
    'strategy to',
)

COMPARISON_PATTERNS = tuple(re.compile(p) for p in (
    r'\bvs\.?\b',
    r'\bversus\b',
    r'\bcompare(s|d|ing)?\b',
    r'\bcomparison(s)?\b',
    r'\bdifference(s)?\b',
    r'\bsimilarit(y|ies)\b',
    r'\bpros?\s*(and|&)\s*cons?\b',
    r'( vs |\bversus\b)',
))

FLOWCHART_PATTERNS = tuple(re.compile(p) for p in (
    r'^\s*how\s+(do|does|can|should)\b',
    r'^\s*what\s+is\s+the\s+process\b',
    r'\bworkflow\b',
    r'\bprocess\b',
    r'\bsteps?\b',
    r'\bdecision\b.*\bpath\b',
    r'\bchoose\b.*\bwhen\b',
))

LOOSE_VS_PATTERN = re.compile(r'\b(.{2,40})\s+vs\.?\s+(.{2,40})\b')

ANSWER_TOKEN_RE = re.compile(r'[a-z_\-]+')


def _matches(text: str, keywords, patterns) -> bool:
    return any(k in text for k in keywords) or any(p.search(text) for p in patterns)


def heuristic_classify(query: str) -> DiagramType:
    """Keyword/regex classification. Comparison wins over flowchart."""
    normalized = (query or '').lower()
    if not normalized.strip():
        return DEFAULT_TYPE

    if _matches(normalized, COMPARISON_KEYWORDS, COMPARISON_PATTERNS):
        return DiagramType.SEQUENCE_COMPARISON
    if _matches(normalized, FLOWCHART_KEYWORDS, FLOWCHART_PATTERNS):
        return DiagramType.FLOWCHART
    if LOOSE_VS_PATTERN.search(normalized):
        return DiagramType.SEQUENCE_COMPARISON
    return DEFAULT_TYPE


def parse_classification_answer(answer: Optional[str]) -> DiagramType:
    """Map a free-text model answer onto a DiagramType; unknown answers become the default."""
    text = (answer or '').strip().lower()
    direct = normalize_diagram_type(text.strip('."\'` '))
    if direct is not None:
        return direct
    for token in ANSWER_TOKEN_RE.findall(text):
        found = normalize_diagram_type(token)
        if found is not None:
            return found
    return DEFAULT_TYPE


class DiagramClassifier:
    """
    Classifies queries into diagram types.

    The executor is only needed in llm mode; router defaults to the shared one.
    """

    def __init__(self, executor=None, router=None, mode: Optional[str] = None, override: Optional[str] = None):
        self.executor = executor
        if router is None:
            from services.model_router import model_router
            router = model_router
        self.router = router
        self._mode = mode
        self._override = override

    @property
    def mode(self) -> str:
        return (self._mode or config.CLASSIFIER_MODE).strip().lower()

    @property
    def override(self) -> Optional[DiagramType]:
        raw = self._override if self._override is not None else config.DEFAULT_DIAGRAM_TYPE
        if not raw:
            return None
        try:
            return DiagramType(str(raw).strip().lower())
        except ValueError:
            return None

    async def classify(self, query: str) -> DiagramType:
        """Return the diagram type for a query. Never raises."""
        override = self.override
        if override is not None:
            logger.debug(f"[Classifier] Using configured override: {override.value}")
            return override

        if not (query or '').strip():
            return DEFAULT_TYPE

        if self.mode == 'llm' and self.executor is not None:
            return await self._classify_with_llm(query)

        result = heuristic_classify(query)
        logger.debug(f"[Classifier] Heuristic selection: {result.value}")
        return result

    async def _classify_with_llm(self, query: str) -> DiagramType:
        choice = self.router.select_model(query, OperationKind.CLASSIFICATION)
        try:
            answer = await self.executor.execute(choice, get_prompt("classification"), query)
        except Exception as e:
            result = heuristic_classify(query)
            logger.warning(f"[Classifier] LLM classification failed ({type(e).__name__}: {e}), heuristic gives {result.value}")
            return result

        result = parse_classification_answer(answer)
        logger.debug(f"[Classifier] LLM answered {answer!r} -> {result.value}")
        return result
