"""
Common Enums
============

Shared enumerations used across the pipeline, the executor and the API.
"""

from enum import Enum
from typing import Optional


class DiagramType(str, Enum):
    """Supported diagram shapes"""
    FLOWCHART = "flowchart"
    RADIAL_MINDMAP = "radial_mindmap"
    SEQUENCE_COMPARISON = "sequence_comparison"


# Loose spellings accepted from clients and from LLM classification answers
DIAGRAM_TYPE_ALIASES = {
    'flowchart': DiagramType.FLOWCHART,
    'flow_chart': DiagramType.FLOWCHART,
    'graph': DiagramType.FLOWCHART,
    'radial_mindmap': DiagramType.RADIAL_MINDMAP,
    'radial': DiagramType.RADIAL_MINDMAP,
    'mindmap': DiagramType.RADIAL_MINDMAP,
    'mind_map': DiagramType.RADIAL_MINDMAP,
    'sequence_comparison': DiagramType.SEQUENCE_COMPARISON,
    'sequence': DiagramType.SEQUENCE_COMPARISON,
    'comparison': DiagramType.SEQUENCE_COMPARISON,
}


def normalize_diagram_type(value) -> Optional[DiagramType]:
    """Map a raw string (or enum) onto a DiagramType, None when unrecognised."""
    if value is None:
        return None
    if isinstance(value, DiagramType):
        return value
    key = str(value).strip().lower().replace('-', '_').replace(' ', '_')
    return DIAGRAM_TYPE_ALIASES.get(key)


class OperationKind(str, Enum):
    """Kinds of LLM call the pipeline makes"""
    CLASSIFICATION = "classification"
    CONTENT = "content"
    DIAGRAM = "diagram"
    UNIFIED = "unified"
    DEEP_DIVE = "deep_dive"


class LLMProtocol(str, Enum):
    """Provider wire protocols"""
    RESPONSES = "responses"
    CHAT = "chat"


class ReasoningEffort(str, Enum):
    """Reasoning effort hint; mapped to temperature on the chat protocol"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    def lowered(self) -> "ReasoningEffort":
        """One notch lower, bottoming out at LOW."""
        if self is ReasoningEffort.HIGH:
            return ReasoningEffort.MEDIUM
        return ReasoningEffort.LOW
