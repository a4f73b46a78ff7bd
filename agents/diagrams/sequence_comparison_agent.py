"""
Sequence Comparison Agent

Comparisons of two to four items drawn as a Mermaid sequence diagram:
shared traits as messages between participants, unique traits as
self-messages.
"""

from models.common import DiagramType
from ..core.base_agent import BaseDiagramAgent


class SequenceComparisonAgent(BaseDiagramAgent):
    """Agent for comparison queries."""

    diagram_type = DiagramType.SEQUENCE_COMPARISON

    def build_diagram_message(self, query: str, structured_content: str) -> str:
        return (
            f"Create a Mermaid sequence diagram for this comparison query:\n\n{query}\n\n"
            f"Content details:\n{structured_content}"
        )
