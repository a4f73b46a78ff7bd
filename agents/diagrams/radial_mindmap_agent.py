"""
Radial Mind Map Agent

Overviews and definitions drawn as a flowchart whose facts radiate from
a central node holding the user's query.
"""

from models.common import DiagramType
from ..core.base_agent import BaseDiagramAgent


class RadialMindmapAgent(BaseDiagramAgent):
    """Agent for concept overviews; the default diagram type."""

    diagram_type = DiagramType.RADIAL_MINDMAP

    def build_diagram_message(self, query: str, structured_content: str) -> str:
        # Double quotes would break the A("...") label
        center = query.strip().replace('"', "'")
        return (
            f"Create a radial Mermaid mind map from this content:\n{structured_content}\n\n"
            f"The central node A must contain exactly this text: \"{center}\"\n"
            f"Write it as A(\"{center}\") and keep it visible."
        )
