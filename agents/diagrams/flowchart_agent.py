"""
Flowchart Agent

Step-by-step processes, how-to questions and decision paths rendered as a
top-down Mermaid flowchart.
"""

from models.common import DiagramType
from ..core.base_agent import BaseDiagramAgent


class FlowchartAgent(BaseDiagramAgent):
    """Agent for sequential processes and decisions."""

    diagram_type = DiagramType.FLOWCHART

    def build_diagram_message(self, query: str, structured_content: str) -> str:
        return (
            f"Create a Mermaid flowchart that answers this query:\n\n{query}\n\n"
            f"Content details:\n{structured_content}"
        )
